# echochamber/app/chamber.py
from __future__ import annotations
import threading
import time
from typing import Any, Callable, FrozenSet, List, Optional

import structlog

from echochamber.app.config import ChamberConfig
from echochamber.core.codec import Codec, pick_codec
from echochamber.core.errors import WorkerContextError
from echochamber.core.event_log import EventLog
from echochamber.core.events import ALL_CHANNELS, Channels, Event, normalize_channels
from echochamber.core.wakeup import WakeupChannel

log = structlog.get_logger()

# Returning False stops the subscription; None counts as True.
EventCallback = Callable[[Event], Optional[bool]]


class EchoChamber:
    """
    Pub/sub between processes on one host through a shared log file.

    publish() appends to the log and wakes subscribers; subscribe() replays
    what is still inside the backlog window, then sleeps until the next publish.
    """
    ALL_CHANNELS = ALL_CHANNELS

    def __init__(
        self,
        config: Optional[ChamberConfig] = None,
        codec: Optional[Codec] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cfg = config or ChamberConfig()
        self.codec = codec or pick_codec(self.cfg.codec)
        self.clock = clock
        self.wakeup = WakeupChannel(self.cfg.fifo_path)
        self.event_log = EventLog(self.cfg.log_path, self.codec, self.cfg.backlog_seconds, self.cfg.max_events)

    def publish(self, channels: Channels, payload: Any) -> Event:
        names = normalize_channels(channels)
        now = self.clock()
        stored = self.event_log.append_and_trim(Event(channels=names, payload=payload, timestamp=now), now)
        woken = self.wakeup.signal()
        log.debug("chamber.publish", channels=sorted(names), timestamp=stored.timestamp, woken=woken)
        return stored

    def subscribe(
        self,
        channels: Channels,
        callback: EventCallback,
        timestamp: Optional[float] = None,
        *,
        is_alive: Optional[Callable[[], bool]] = None,
        flush: Optional[Callable[[], None]] = None,
    ) -> None:
        """
        Blocks until the callback returns False or is_alive() reports False.

        timestamp: replay events newer than this; defaults to now - backlog_seconds.
        is_alive: checked once per cycle, e.g. "client still connected".
        flush: called after every dispatch pass, e.g. to push a streaming response.

        Events that arrived during one wait are delivered newest first.
        """
        sub = Subscriber(self, channels, callback, timestamp)
        alive = is_alive or (lambda: True)
        log.debug("chamber.subscribe.start", channels=sorted(sub.channels), since=sub.last_timestamp)
        # register before the first read so a publish in between is not missed
        with self.wakeup.waiter() as waiter:
            while sub.running and alive():
                sub.poll()
                if flush is not None:
                    flush()
                if not sub.running:
                    break
                waiter.wait(self.cfg.wait_timeout)
        log.debug("chamber.subscribe.stop", channels=sorted(sub.channels), stopped=not sub.running)

    def run_as_worker(self, restart: bool = True) -> None:
        """Run the heartbeat and ingest roles until killed. Main thread only."""
        if threading.current_thread() is not threading.main_thread():
            raise WorkerContextError("the worker may only be started from the main thread of a process")
        from echochamber.app.worker import WorkerSupervisor
        WorkerSupervisor(self.cfg, codec=self.codec, restart=restart).run()


class Subscriber:
    """Cursor and dispatch state for one subscribe() call."""
    def __init__(self, chamber: EchoChamber, channels: Channels, callback: EventCallback,
                 timestamp: Optional[float] = None):
        self.chamber = chamber
        self.channels: FrozenSet[str] = normalize_channels(channels)
        self.callback = callback
        if timestamp is None:
            timestamp = chamber.clock() - chamber.cfg.backlog_seconds
        self.last_timestamp = timestamp
        self.running = True

    def poll(self) -> List[Event]:
        """One snapshot pass. Returns the events handed to the callback."""
        events = self.chamber.event_log.read_snapshot()
        delivered: List[Event] = []
        for ev in events:
            if ev.timestamp <= self.last_timestamp:
                break
            if not ev.matches(self.channels):
                continue
            delivered.append(ev)
            result = self.callback(ev)
            self.running = True if result is None else bool(result)
            if not self.running:
                break
        # filtered events move the cursor too, so they are never rescanned
        if events:
            self.last_timestamp = max(self.last_timestamp, events[0].timestamp)
        return delivered
