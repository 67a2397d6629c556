import logging
import os

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logger(name, log_dir=None, log_filename="logwatcher.log", level=logging.INFO, console=True):
    """
    Set up and return a logger with optional file and console handlers.

    Args:
        name (str): The logger name.
        log_dir (str): Directory where the log file will be stored. No file
            handler is attached when this is None.
        log_filename (str): Log file name.
        level (int): Logging level.
        console (bool): Whether to add a console handler.

    Returns:
        logging.Logger: The configured logger.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)

    # Clear out any existing handlers.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(os.path.join(log_dir, log_filename))
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def level_from_name(level_name):
    """Translate a level name such as 'debug' into its logging constant."""
    return getattr(logging, str(level_name).upper(), logging.INFO)


def setup_from_settings(settings, debug=False, name="logwatcher"):
    """
    Configure the package logger from loaded Settings.

    Modules log through children of ``name`` (``logwatcher.monitor`` and so
    on), so one call covers the whole package. The log file goes to
    ``settings.log_dir`` when it is set; --debug overrides the configured level.
    """
    level = logging.DEBUG if debug else level_from_name(settings.log_level)
    logger = setup_logger(name, settings.log_dir, level=level)
    logger.debug(f"Logging configured at {logging.getLevelName(level)} for '{settings.log_id}'")
    return logger
