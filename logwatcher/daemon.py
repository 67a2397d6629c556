import dataclasses
import logging
import os
import time

import daemon
import psutil
from daemon.pidfile import PIDLockFile

from logwatcher.monitor import start_monitor

DEFAULT_PID_FILENAME = "logwatcher.pid"


def get_run_dir(settings):
    """Directory holding the PID file: the log dir, else next to the config file."""
    if settings.log_dir:
        return settings.log_dir
    config_path = settings.config_path or "."
    return os.path.dirname(os.path.abspath(config_path))


def get_pid_file(settings):
    return os.path.join(get_run_dir(settings), DEFAULT_PID_FILENAME)


def read_pid(pid_file):
    """Return the PID recorded in pid_file, or None if there is none."""
    if not os.path.exists(pid_file):
        return None
    with open(pid_file, "r") as f:
        content = f.read().strip()
    return int(content) if content.isdigit() else None


def process_status(pid):
    """
    Collect process information for a running daemon.

    Returns:
        dict: Status values keyed by label, or None if the process is gone.
    """
    try:
        proc = psutil.Process(pid)
        return {
            "PID": proc.pid,
            "CPU %": proc.cpu_percent(interval=0.1),
            "Memory %": round(proc.memory_percent(), 2),
            "Memory RSS": proc.memory_info().rss,
            "Started At": time.strftime(
                "%Y-%m-%d %H:%M:%S", time.localtime(proc.create_time())
            ),
        }
    except psutil.NoSuchProcess:
        return None


def log_daemon_status(root_logger, settings):
    """Log the daemon's own process status and what it is watching."""
    status_info = process_status(os.getpid()) or {}
    status_info["Watched Path"] = settings.log_path
    status_info["Log Id"] = settings.log_id
    root_logger.info(
        "Daemon Status:\n" + "\n".join(f"{k}: {v}" for k, v in status_info.items())
    )


def run_daemon(settings, root_logger):
    """
    Detach from the terminal and run the monitor until killed.

    The inotify descriptor is opened inside the daemon context because
    DaemonContext closes inherited descriptors.
    """
    # The daemon changes directory, so pin the watched path first.
    settings = dataclasses.replace(settings, log_path=os.path.abspath(settings.log_path))
    pid_file = get_pid_file(settings)
    os.makedirs(os.path.dirname(pid_file), exist_ok=True)
    root_logger.info(f"Starting daemon, pid file: {pid_file}")

    context = daemon.DaemonContext(
        pidfile=PIDLockFile(pid_file),
        working_directory=get_run_dir(settings),
        files_preserve=[
            handler.stream.fileno()
            for handler in root_logger.handlers
            if isinstance(handler, logging.FileHandler)
        ],
    )

    with context:
        log_daemon_status(root_logger, settings)
        start_monitor(settings)
