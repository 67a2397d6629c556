import logging
import time

from logwatcher.errors import RearmError, WatchError
from logwatcher.source import WATCH_MASK, WatchHandle

logger = logging.getLogger(__name__)

# Wait before re-arming after a deletion so rotate-and-recreate can finish.
GRACE_DELAY_MS = 1000


class WatchManager:
    """
    Keeps exactly one active watch on the log file.

    Attributes:
        source: The notification source the watch is registered with.
        sleep: Callable used for the grace delay (seconds).
    """

    def __init__(self, source, sleep=time.sleep):
        self.source = source
        self.sleep = sleep

    def arm(self, path) -> WatchHandle:
        """
        Register for modification, attribute-change and self-deletion events.

        Raises:
            WatchError: If the notification source refuses the registration.
        """
        handle = self.source.watch(path, WATCH_MASK)
        logger.info(f"Watching {path} (wd={handle.wd})")
        return handle

    def rearm(self, old_handle, path, grace_delay_ms=0) -> WatchHandle:
        """
        Release old_handle and arm a fresh watch on path.

        Args:
            old_handle: The handle to release; it may already be invalid.
            path: The path to watch again.
            grace_delay_ms: How long to wait before re-registering.

        Raises:
            RearmError: If the new watch cannot be registered.
        """
        if grace_delay_ms > 0:
            logger.debug(f"Waiting {grace_delay_ms} ms before re-arming {path}")
            self.sleep(grace_delay_ms / 1000.0)
        self.source.unwatch(old_handle)
        try:
            return self.arm(path)
        except WatchError as e:
            raise RearmError(f"Failed to re-arm watch on {path}: {e}") from e
