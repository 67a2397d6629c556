"""Exception types raised across LogWatcher."""


class LogWatcherError(Exception):
    """Base class for all LogWatcher errors."""


class ConfigError(LogWatcherError):
    """Raised when the configuration file is missing or invalid."""


class WatchError(LogWatcherError):
    """Raised when the watch on the log file cannot be registered."""


class RearmError(WatchError):
    """Raised when re-registering the watch after a delete/attribute change fails."""


class EventReadError(LogWatcherError):
    """Raised when reading the next batch of change events fails."""


class SendError(LogWatcherError):
    """Raised when an alert email cannot be composed or sent."""
