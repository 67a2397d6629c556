"""
Notification source for LogWatcher.

Registers watches through the ``inotify`` package's syscall bindings and
reads the inotify descriptor directly. A batch is everything a single
blocking read returned: every event the kernel had queued at that moment,
whichever watch descriptor it was delivered on.
"""

import logging
import os
import struct
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

import inotify.calls
from inotify.calls import InotifyError
from inotify.constants import IN_ATTRIB, IN_DELETE_SELF, IN_MODIFY, IN_Q_OVERFLOW, IN_UNMOUNT

from logwatcher.errors import EventReadError, WatchError

logger = logging.getLogger(__name__)

WATCH_MASK = IN_MODIFY | IN_ATTRIB | IN_DELETE_SELF

# Large enough for a couple of thousand events on a single file.
READ_BUFFER_SIZE = 40960

_HEADER = struct.Struct("iIII")


class EventKind(Enum):
    """The change classes the monitor reacts to."""

    MODIFIED = "modified"
    ATTRIBUTE_CHANGED = "attribute_changed"
    DELETED = "deleted"


@dataclass(frozen=True)
class WatchHandle:
    """An active registration for one path."""

    path: str
    wd: int


@dataclass(frozen=True)
class ChangeEvent:
    """A single filesystem change delivered on a watch."""

    kind: EventKind
    handle: WatchHandle
    name: Optional[str] = None


def classify(mask: int) -> Optional[EventKind]:
    """
    Map an inotify event mask to an EventKind.

    Deletion wins over attribute changes, which win over modifications.
    Anything else (IN_IGNORED, IN_OPEN, ...) is not a change we track.
    """
    if mask & IN_DELETE_SELF:
        return EventKind.DELETED
    if mask & IN_ATTRIB:
        return EventKind.ATTRIBUTE_CHANGED
    if mask & IN_MODIFY:
        return EventKind.MODIFIED
    return None


def parse_events(data: bytes):
    """Split a raw read into (wd, mask, cookie, name) tuples."""
    offset = 0
    while offset + _HEADER.size <= len(data):
        wd, mask, cookie, length = _HEADER.unpack_from(data, offset)
        offset += _HEADER.size
        name = data[offset:offset + length].rstrip(b"\0").decode("utf8", "replace")
        offset += length
        yield wd, mask, cookie, name


def build_batch(raw_events, paths) -> List[ChangeEvent]:
    """
    Turn parsed events into ChangeEvents.

    Unlinking a file raises IN_ATTRIB (link count) right before
    IN_DELETE_SELF; when both are in the same read the attribute change is
    folded into the deletion so the monitor does not re-arm on a path that
    is already gone.
    """
    raw_events = list(raw_events)
    deleted_wds = {wd for wd, mask, _, _ in raw_events if mask & IN_DELETE_SELF}
    batch = []
    for wd, mask, _, name in raw_events:
        if mask & (IN_Q_OVERFLOW | IN_UNMOUNT):
            raise EventReadError(f"inotify stream terminated (mask=0x{mask:x})")
        kind = classify(mask)
        if kind is None:
            logger.debug(f"Ignoring inotify event mask=0x{mask:x} on wd {wd}")
            continue
        if kind is EventKind.ATTRIBUTE_CHANGED and wd in deleted_wds:
            logger.debug(f"Folding attribute change on wd {wd} into its deletion")
            continue
        handle = WatchHandle(path=paths.get(wd, ""), wd=wd)
        batch.append(ChangeEvent(kind=kind, handle=handle, name=name or None))
    return batch


class NotificationSource:
    """
    Blocking source of change-event batches backed by an inotify descriptor.

    Only one path is expected to be watched at a time. Descriptors stay in the
    wd-to-path table after release so events already queued on them are
    still reported.
    """

    def __init__(self, buffer_size=READ_BUFFER_SIZE):
        try:
            self._fd = inotify.calls.inotify_init()
        except (InotifyError, OSError) as e:
            raise WatchError(f"Failed to initialize inotify: {e}") from e
        self._buffer_size = buffer_size
        self._paths = {}

    def watch(self, path, mask=WATCH_MASK) -> WatchHandle:
        """Register interest in the given event mask on path."""
        try:
            wd = inotify.calls.inotify_add_watch(self._fd, path.encode("utf8"), mask)
        except (InotifyError, OSError) as e:
            raise WatchError(f"Failed to add inotify watch on {path}: {e}") from e
        self._paths[wd] = path
        return WatchHandle(path=path, wd=wd)

    def unwatch(self, handle: WatchHandle):
        """
        Release a watch. Releasing a handle the kernel already dropped (for
        example after the file was deleted) is not an error.
        """
        try:
            inotify.calls.inotify_rm_watch(self._fd, handle.wd)
        except InotifyError as e:
            logger.debug(f"Watch {handle.wd} on {handle.path} was already released: {e}")

    def next_events(self) -> List[ChangeEvent]:
        """
        Block until at least one tracked change is available and return every
        change that arrived together with it.

        Raises:
            EventReadError: If the read fails or the stream terminates.
        """
        while True:
            try:
                data = os.read(self._fd, self._buffer_size)
            except OSError as e:
                raise EventReadError(f"Failed to read inotify events: {e}") from e
            if not data:
                raise EventReadError("inotify descriptor returned end of file")
            batch = build_batch(parse_events(data), self._paths)
            if batch:
                return batch

    def close(self):
        os.close(self._fd)
