# echochamber/core/event_log.py
from __future__ import annotations
import os
from dataclasses import replace
from typing import List, Optional

import structlog

from echochamber.core.codec import Codec
from echochamber.core.errors import CorruptLogError, LogInitError
from echochamber.core.events import Event
from echochamber.core.locking import locked

log = structlog.get_logger()

# Smallest step used to keep timestamps strictly descending when the clock stalls.
TIMESTAMP_STEP = 1e-6


class EventLog:
    """
    Newest-first event sequence stored in a single file.

    Readers take a shared flock, writers an exclusive one for the whole
    read-modify-write. Nothing else guards the file.
    """
    def __init__(self, path: str, codec: Codec, backlog_seconds: float, max_events: Optional[int] = None):
        self.path = path
        self.codec = codec
        self.backlog_seconds = backlog_seconds
        self.max_events = max_events
        try:
            fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o666)
        except OSError as e:
            raise LogInitError(f"failed to create event log at {path}: {e}") from e
        os.close(fd)

    def read_snapshot(self) -> List[Event]:
        with locked(self.path, shared=True) as fh:
            raw = fh.read()
        return self._load(raw)

    def append_and_trim(self, event: Event, now: float) -> Event:
        """
        Drop events older than the backlog window and put event in front.

        The window is measured from now, or from the newest stored timestamp if
        that is later (the clock stepped back), so bumped future timestamps
        still age out. At most max_events entries are kept.
        """
        with locked(self.path, shared=False) as fh:
            events = self._load(fh.read())
            ref = max(now, events[0].timestamp) if events else now
            kept = [ev for ev in events if ref - ev.timestamp <= self.backlog_seconds]
            if self.max_events is not None:
                del kept[max(self.max_events - 1, 0):]
            if events and event.timestamp <= events[0].timestamp:
                event = replace(event, timestamp=events[0].timestamp + TIMESTAMP_STEP)
            kept.insert(0, event)
            data = self.codec.encode(kept)
            fh.seek(0)
            fh.truncate()
            fh.write(data)
            fh.flush()
        return event

    def _load(self, raw: bytes) -> List[Event]:
        # A corrupt log is treated as empty; the next publish overwrites it.
        try:
            return self.codec.decode(raw)
        except CorruptLogError as e:
            log.warning("event_log.corrupt", path=self.path, size=len(raw), err=str(e))
            return []
