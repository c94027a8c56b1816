# echochamber/core/events.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Union

# Publishing to it reaches every subscriber; subscribing to it receives every event.
ALL_CHANNELS = "*"

Channels = Union[str, Iterable[str]]


def normalize_channels(channels: Channels) -> FrozenSet[str]:
    """Accept a single channel name or a collection of names; reject empty sets."""
    if isinstance(channels, str):
        names = frozenset([channels])
    else:
        names = frozenset(channels)
    if not names:
        raise ValueError("at least one channel is required")
    for name in names:
        if not isinstance(name, str) or not name:
            raise ValueError(f"channel names must be non-empty strings, got {name!r}")
    return names


def channels_match(wanted: FrozenSet[str], tagged: FrozenSet[str]) -> bool:
    if ALL_CHANNELS in wanted or ALL_CHANNELS in tagged:
        return True
    return not wanted.isdisjoint(tagged)


@dataclass(frozen=True)
class Event:
    """One published event as stored in the shared log."""
    channels: FrozenSet[str]
    payload: Any
    timestamp: float

    def __post_init__(self):
        object.__setattr__(self, "channels", normalize_channels(self.channels))

    def matches(self, channels: FrozenSet[str]) -> bool:
        return channels_match(channels, self.channels)

    def to_record(self) -> Dict[str, Any]:
        return {
            "channels": sorted(self.channels),
            "payload": self.payload,
            "timestamp": self.timestamp,
            "t_utc": datetime.fromtimestamp(self.timestamp, timezone.utc).isoformat(timespec="milliseconds"),
        }

    @classmethod
    def from_record(cls, rec: Dict[str, Any]) -> "Event":
        return cls(channels=frozenset(rec["channels"]), payload=rec["payload"], timestamp=float(rec["timestamp"]))
