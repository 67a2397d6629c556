"""
Monitor module for LogWatcher.

This module holds the alerting state machine:
- Counting change events on the watched log file
- Re-arming the watch after attribute changes and deletions
- Evaluating the count/time-window fire condition once per event batch
- Dispatching an alert when the condition holds
"""

import logging
import time
from dataclasses import dataclass
from typing import Iterable

from logwatcher.alert import AlertDispatcher
from logwatcher.source import ChangeEvent, EventKind, NotificationSource, WatchHandle
from logwatcher.watch import GRACE_DELAY_MS, WatchManager

logger = logging.getLogger(__name__)


def monotonic_ms() -> int:
    """Current monotonic clock reading in milliseconds."""
    return int(time.monotonic() * 1000)


@dataclass
class MonitorState:
    """Counter and last-alert time owned by a single monitor loop."""

    count: int
    last_alert_ms: int


def should_fire(state: MonitorState, count_threshold: int, time_threshold: int, now_ms: int) -> bool:
    """The fire condition: enough events and enough time since the last alert."""
    return state.count >= count_threshold and (now_ms - state.last_alert_ms) >= time_threshold


class ThresholdMonitor:
    """
    Consumes change-event batches and fires alerts when thresholds are crossed.

    Attributes:
        settings: Loaded Settings
        watches: WatchManager owning the single watch
        dispatcher: AlertDispatcher used when the fire condition holds
        clock: Callable returning monotonic milliseconds
    """

    def __init__(self, settings, watches: WatchManager, dispatcher: AlertDispatcher, clock=monotonic_ms):
        self.settings = settings
        self.watches = watches
        self.dispatcher = dispatcher
        self.clock = clock

    def new_state(self) -> MonitorState:
        return MonitorState(count=0, last_alert_ms=self.clock())

    def apply_event(self, event: ChangeEvent, state: MonitorState, handle: WatchHandle) -> WatchHandle:
        """
        Update state for one event and return the handle that is live afterwards.
        """
        path = self.settings.log_path
        if event.kind is EventKind.MODIFIED:
            logger.info(f"File modified: {path} (count={state.count + 1})")
            state.count += 1
        elif event.kind is EventKind.ATTRIBUTE_CHANGED:
            logger.info(f"File attribute modified: {path} (count={state.count + 1})")
            handle = self.watches.rearm(event.handle, path)
            state.count += 1
        elif event.kind is EventKind.DELETED:
            logger.info(f"File deleted: {path}; re-arming in {GRACE_DELAY_MS} ms")
            handle = self.watches.rearm(event.handle, path, grace_delay_ms=GRACE_DELAY_MS)
        else:
            raise ValueError(f"Unknown event kind: {event.kind!r}")
        return handle

    def check_threshold(self, state: MonitorState) -> bool:
        """
        Evaluate the fire condition and dispatch an alert if it holds.

        The counter and timestamp are reset whether or not the send succeeded.

        Returns:
            bool: True if an alert was attempted.
        """
        now = self.clock()
        if not should_fire(state, self.settings.count_threshold, self.settings.time_threshold, now):
            return False
        logger.warning(
            f"{state.count} changes on {self.settings.log_id} "
            f"(threshold {self.settings.count_threshold}); sending alert"
        )
        self.dispatcher.dispatch()
        state.count = 0
        state.last_alert_ms = self.clock()
        return True

    def process_batch(self, events: Iterable[ChangeEvent], state: MonitorState, handle: WatchHandle) -> WatchHandle:
        """Apply every event of a batch, then evaluate the fire condition once."""
        for event in events:
            handle = self.apply_event(event, state, handle)
        self.check_threshold(state)
        return handle

    def run(self, handle: WatchHandle):
        """
        Block on the notification source forever.

        Raises:
            EventReadError: If the source cannot deliver the next batch.
            RearmError: If the watch cannot be re-registered.
        """
        state = self.new_state()
        logger.info(
            f"Monitoring {self.settings.log_path} for '{self.settings.log_id}': "
            f"alert after {self.settings.count_threshold} changes, "
            f"at most every {self.settings.time_threshold} ms"
        )
        while True:
            events = self.watches.source.next_events()
            handle = self.process_batch(events, state, handle)


def start_monitor(settings, source=None):
    """
    Arm the watch on the configured path and run the monitor loop.

    Any failure to arm the initial watch is fatal and raised before the loop
    starts.
    """
    try:
        if source is None:
            source = NotificationSource()
        watches = WatchManager(source)
        handle = watches.arm(settings.log_path)
        monitor = ThresholdMonitor(settings, watches, AlertDispatcher(settings))
        monitor.run(handle)
    except Exception as e:
        logger.critical(f"Fatal error in monitor: {e}", exc_info=True)
        raise
