"""
Pub/sub for processes on one host that share a filesystem.

    from echochamber import EchoChamber, ALL_CHANNELS

    chamber = EchoChamber()
    chamber.publish("orders", {"id": 7})
    chamber.subscribe(["orders", "heartbeat"], lambda ev: print(ev.payload))
"""
from echochamber.app.chamber import EchoChamber, Subscriber
from echochamber.app.config import ChamberConfig
from echochamber.core.codec import Codec, JsonCodec, PickleCodec, pick_codec
from echochamber.core.errors import (
    ChannelInitError,
    CorruptLogError,
    EchoChamberError,
    LockError,
    LogInitError,
    WorkerContextError,
)
from echochamber.core.events import ALL_CHANNELS, Event

__all__ = [
    "ALL_CHANNELS",
    "ChamberConfig",
    "ChannelInitError",
    "Codec",
    "CorruptLogError",
    "EchoChamber",
    "EchoChamberError",
    "Event",
    "JsonCodec",
    "LockError",
    "LogInitError",
    "PickleCodec",
    "Subscriber",
    "WorkerContextError",
    "pick_codec",
]
