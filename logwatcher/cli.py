import os
import signal
import time

import click
import yaml
from rich.console import Console
from rich.table import Table

from logwatcher import config
from logwatcher import daemon as daemon_module
from logwatcher import logger as lw_logger
from logwatcher.alert import AlertDispatcher
from logwatcher.errors import ConfigError
from logwatcher.monitor import start_monitor

LOGGER_NAME = "logwatcher"


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to configuration YAML/TOML file.")
@click.option("--debug", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx, config_path, debug):
    """
    LogWatcher CLI: email alerts when a log file changes too often.
    """
    ctx.obj = {"config_path": config_path, "debug": debug}


def get_settings(ctx):
    """Load the configuration on first use; exit with status 1 if it is unusable."""
    if "settings" not in ctx.obj:
        try:
            ctx.obj["settings"] = config.load_config(ctx.obj["config_path"])
        except ConfigError as e:
            click.echo(f"Error loading configuration: {e}", err=True)
            ctx.exit(1)
    return ctx.obj["settings"]


def setup_root_logger(ctx):
    return lw_logger.setup_from_settings(get_settings(ctx), debug=ctx.obj["debug"], name=LOGGER_NAME)


@main.command()
@click.pass_context
def show_config(ctx):
    """
    Show the loaded configuration (password masked).
    """
    settings = get_settings(ctx)
    click.echo(f"# loaded from {settings.config_path}")
    click.echo(yaml.safe_dump(settings.masked(), sort_keys=False))


@main.command()
@click.option("--daemon", "as_daemon", is_flag=True, help="Detach and run in the background.")
@click.pass_context
def start(ctx, as_daemon):
    """
    Start watching the configured log file.
    """
    settings = get_settings(ctx)
    root_logger = setup_root_logger(ctx)
    if as_daemon:
        click.echo("Starting daemon...")
        daemon_module.run_daemon(settings, root_logger)
    else:
        click.echo("Running in foreground...")
        try:
            start_monitor(settings)
        except KeyboardInterrupt:
            root_logger.info("Monitor interrupted by user")


@main.command()
@click.pass_context
def stop(ctx):
    """
    Stop the LogWatcher daemon.
    """
    pid_file = daemon_module.get_pid_file(get_settings(ctx))
    pid = daemon_module.read_pid(pid_file)
    if pid is None:
        click.echo("Daemon is not running (pid file not found).")
        return
    try:
        os.kill(pid, signal.SIGTERM)
        click.echo(f"Sent SIGTERM to daemon (pid {pid}).")
        time.sleep(2)
        if os.path.exists(pid_file):
            os.remove(pid_file)
    except OSError as e:
        click.echo(f"Error stopping daemon: {e}")


@main.command()
@click.pass_context
def status(ctx):
    """
    Check the status of the LogWatcher daemon.
    """
    settings = get_settings(ctx)
    pid = daemon_module.read_pid(daemon_module.get_pid_file(settings))
    if pid is None:
        click.echo("Daemon is not running (pid file not found).")
        return

    info = daemon_module.process_status(pid)
    if info is None:
        click.echo("Daemon process not found.")
        return

    status_table = Table(title="LogWatcher Daemon Status")
    status_table.add_column("Property", style="cyan")
    status_table.add_column("Value", style="magenta")
    for key, value in info.items():
        status_table.add_row(key, str(value))
    status_table.add_row("Log Id", settings.log_id)
    status_table.add_row("Watched Path", settings.log_path)
    status_table.add_row("Count Threshold", str(settings.count_threshold))
    status_table.add_row("Time Threshold (ms)", str(settings.time_threshold))
    Console().print(status_table)


@main.command()
@click.pass_context
def send_test_alert(ctx):
    """
    Send one alert email right away to check the SMTP settings.
    """
    setup_root_logger(ctx)
    settings = get_settings(ctx)
    if AlertDispatcher(settings).dispatch():
        click.echo(f"Test alert sent to {settings.target}.")
    else:
        click.echo("Test alert failed; see log for details.")
        ctx.exit(1)


if __name__ == "__main__":
    main()
