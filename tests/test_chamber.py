# tests/test_chamber.py
# What this covers:
#   - Delivery by channel and wildcard (publish side and subscribe side)
#   - Trimming: an event older than the backlog window is gone after the next publish
#   - Newest-first delivery within one wake cycle
#   - Cursor advance (filtered events included, never regresses, no redelivery)
#   - Callback returning False stops without waiting again
#   - is_alive / flush hooks

import threading
import time
from dataclasses import replace

from echochamber.app.chamber import EchoChamber, Subscriber
from echochamber.core.events import ALL_CHANNELS
from echochamber.core.wakeup import Waiter


def cycles(n):
    """is_alive() that allows n subscribe cycles."""
    left = [n]

    def alive():
        left[0] -= 1
        return left[0] >= 0
    return alive


def collect(chamber, channels, timestamp=0.0, n=1, **kw):
    got = []
    chamber.subscribe(channels, lambda ev: got.append(ev.payload), timestamp, is_alive=cycles(n), **kw)
    return got


def test_delivery_by_channel(chamber, clock):
    chamber.publish("a", "a1")
    clock.advance(0.01)
    chamber.publish("a", "a2")
    assert collect(chamber, "a") == ["a2", "a1"]
    assert collect(chamber, "b") == []
    assert collect(chamber, ["b", "a"]) == ["a2", "a1"]


def test_wildcard_publish_reaches_everyone(chamber):
    chamber.publish(ALL_CHANNELS, "all")
    assert collect(chamber, "b") == ["all"]
    assert collect(chamber, ["x", "y"]) == ["all"]


def test_wildcard_subscriber_gets_everything(chamber, clock):
    chamber.publish("a", 1)
    clock.advance(0.01)
    chamber.publish({"b", "c"}, 2)
    assert collect(chamber, EchoChamber.ALL_CHANNELS) == [2, 1]


def test_trimming_drops_events_outside_backlog(chamber, clock):
    chamber.publish("a", "A")
    clock.advance(0.2)
    chamber.publish("a", "B")
    assert [e.payload for e in chamber.event_log.read_snapshot()] == ["B"]
    # fresh subscriber: default start is now - backlog_seconds
    assert collect(chamber, "a", timestamp=None) == ["B"]


def test_fresh_subscriber_skips_history_older_than_backlog(cfg, clock):
    chamber = EchoChamber(replace(cfg, backlog_seconds=5.0), clock=clock)
    chamber.publish("a", "old")
    clock.advance(1.0)
    chamber.publish("a", "new")
    clock.advance(0.5)
    chamber2 = EchoChamber(replace(cfg, backlog_seconds=1.0), clock=clock)
    assert collect(chamber2, "a", timestamp=None) == ["new"]


def test_newest_first_within_one_cycle(cfg, clock):
    chamber = EchoChamber(replace(cfg, backlog_seconds=5.0), clock=clock)
    clock.now = 10.0
    chamber.publish("a", "X")
    clock.now = 11.0
    chamber.publish("a", "Y")
    assert collect(chamber, "a", timestamp=9.0) == ["Y", "X"]


def test_cursor_advances_past_filtered_events(chamber, clock):
    got = []
    sub = Subscriber(chamber, "b", got.append, timestamp=0.0)
    chamber.publish("a", "ignored")
    assert sub.poll() == []
    assert sub.last_timestamp == clock.now

    clock.advance(0.01)
    chamber.publish("b", "wanted")
    assert [e.payload for e in sub.poll()] == ["wanted"]
    assert sub.last_timestamp == clock.now
    assert sub.poll() == []
    assert [e.payload for e in got] == ["wanted"]


def test_cursor_never_regresses(chamber, clock):
    sub = Subscriber(chamber, "a", lambda ev: None, timestamp=clock.now + 50)
    chamber.publish("a", "past")
    assert sub.poll() == []
    assert sub.last_timestamp == clock.now + 50


def test_no_redelivery_across_cycles(chamber, clock):
    chamber.publish("a", "first")
    published = []

    def flush():
        if not published:
            clock.advance(0.01)
            chamber.publish("a", "second")
            published.append(True)

    assert collect(chamber, "a", n=2, flush=flush) == ["first", "second"]


def test_false_stops_without_waiting(chamber, clock, monkeypatch):
    waits = []
    monkeypatch.setattr(Waiter, "wait", lambda self, timeout=None: waits.append(timeout))
    chamber.publish("a", 1)
    clock.advance(0.01)
    chamber.publish("a", 2)

    seen = []

    def cb(ev):
        seen.append(ev.payload)
        return False

    chamber.subscribe("a", cb, 0.0)
    assert seen == [2]
    assert waits == []


def test_none_return_keeps_running(chamber, monkeypatch):
    waits = []
    monkeypatch.setattr(Waiter, "wait", lambda self, timeout=None: waits.append(timeout))
    chamber.publish("a", 1)
    seen = []
    chamber.subscribe("a", seen.append, 0.0, is_alive=cycles(2))
    assert len(seen) == 1
    assert waits == [chamber.cfg.wait_timeout, chamber.cfg.wait_timeout]


def test_dead_host_never_polls(chamber):
    chamber.publish("a", 1)
    seen = []
    chamber.subscribe("a", seen.append, 0.0, is_alive=lambda: False)
    assert seen == []


def test_cancellation_bounded_without_publishes(chamber):
    t0 = time.monotonic()
    collect(chamber, "a", n=3)
    # three waits of wait_timeout (0.05s), not an indefinite block
    assert time.monotonic() - t0 < 2.0


def test_publish_wakes_blocked_subscriber(cfg):
    chamber = EchoChamber(replace(cfg, wait_timeout=10.0, backlog_seconds=5.0))
    got = []
    started = threading.Event()

    def run():
        started.set()
        chamber.subscribe("a", lambda ev: got.append(ev.payload) or False)

    thr = threading.Thread(target=run, daemon=True)
    thr.start()
    started.wait()
    time.sleep(0.1)
    t0 = time.monotonic()
    chamber.publish("a", "ping")
    thr.join(timeout=5.0)
    assert not thr.is_alive()
    assert got == ["ping"]
    assert time.monotonic() - t0 < 5.0
