import logging
import os

import psutil
import pytest

from logwatcher import daemon as daemon_module
from logwatcher.config import Settings


def make_settings(log_dir=None, config_path=None):
    return Settings(
        log_id="app-server",
        log_path="/var/log/app.log",
        username="bot@example.com",
        password="secret",
        smtp="smtp.example.com",
        target="ops@example.com",
        count_threshold=3,
        time_threshold=5000,
        log_dir=log_dir,
        config_path=config_path,
    )


def test_pid_file_lives_in_log_dir(tmp_path):
    settings = make_settings(log_dir=str(tmp_path / "logs"))
    assert daemon_module.get_run_dir(settings) == str(tmp_path / "logs")
    assert daemon_module.get_pid_file(settings) == str(tmp_path / "logs" / "logwatcher.pid")


def test_pid_file_next_to_config_without_log_dir(tmp_path):
    settings = make_settings(config_path=str(tmp_path / "application.yml"))
    assert daemon_module.get_run_dir(settings) == str(tmp_path)
    assert daemon_module.get_pid_file(settings) == os.path.join(str(tmp_path), "logwatcher.pid")


def test_read_pid_missing_file(tmp_path):
    assert daemon_module.read_pid(str(tmp_path / "logwatcher.pid")) is None


def test_read_pid_non_numeric(tmp_path):
    pid_file = tmp_path / "logwatcher.pid"
    pid_file.write_text("not-a-pid\n")
    assert daemon_module.read_pid(str(pid_file)) is None


def test_read_pid_valid(tmp_path):
    pid_file = tmp_path / "logwatcher.pid"
    pid_file.write_text("4242\n")
    assert daemon_module.read_pid(str(pid_file)) == 4242


def test_process_status_for_live_process():
    info = daemon_module.process_status(os.getpid())
    assert info["PID"] == os.getpid()
    assert set(info) == {"PID", "CPU %", "Memory %", "Memory RSS", "Started At"}


def test_process_status_for_missing_process(monkeypatch):
    def gone(pid):
        raise psutil.NoSuchProcess(pid)

    monkeypatch.setattr(daemon_module.psutil, "Process", gone)
    assert daemon_module.process_status(999999) is None


def test_log_daemon_status(caplog):
    log = logging.getLogger("logwatcher-test-daemon")
    with caplog.at_level(logging.INFO, logger="logwatcher-test-daemon"):
        daemon_module.log_daemon_status(log, make_settings())
    assert "Watched Path: /var/log/app.log" in caplog.text
    assert f"PID: {os.getpid()}" in caplog.text
