# echochamber/core/codec.py
from __future__ import annotations
import json
import pickle
from typing import Any, Dict, List, Type

from blake3 import blake3

from echochamber.core.errors import CorruptLogError
from echochamber.core.events import Event

MAGIC = b"ECH1"
DIGEST_LEN = 32
HEADER_LEN = len(MAGIC) + DIGEST_LEN


def _digest(codec_name: str, body: bytes) -> bytes:
    h = blake3()
    h.update(codec_name.encode("ascii"))
    h.update(body)
    return h.digest()


class Codec:
    """
    Encodes a whole event sequence to bytes and back.

    Subclasses implement dumps/loads for the body. The frame around it is
    MAGIC + blake3(name + body) + body, so a torn write, a log written by a
    different codec, or random bytes all fail the same way: CorruptLogError.
    """
    name: str = "base"

    def dumps(self, events: List[Event]) -> bytes:
        raise NotImplementedError

    def loads(self, body: bytes) -> List[Event]:
        raise NotImplementedError

    def encode(self, events: List[Event]) -> bytes:
        body = self.dumps(events)
        return MAGIC + _digest(self.name, body) + body

    def decode(self, raw: bytes) -> List[Event]:
        if not raw:
            return []
        if len(raw) < HEADER_LEN or not raw.startswith(MAGIC):
            raise CorruptLogError("missing frame header")
        digest, body = raw[len(MAGIC):HEADER_LEN], raw[HEADER_LEN:]
        if digest != _digest(self.name, body):
            raise CorruptLogError(f"checksum mismatch for codec {self.name!r}")
        try:
            return self.loads(body)
        except Exception as e:
            raise CorruptLogError(f"{self.name} body could not be decoded: {e}") from e


class PickleCodec(Codec):
    """Any picklable payload. Only share the log with processes you trust."""
    name = "pickle"

    def dumps(self, events: List[Event]) -> bytes:
        rows = [(tuple(sorted(ev.channels)), ev.payload, ev.timestamp) for ev in events]
        return pickle.dumps(rows, protocol=pickle.HIGHEST_PROTOCOL)

    def loads(self, body: bytes) -> List[Event]:
        rows = pickle.loads(body)
        return [Event(channels=frozenset(ch), payload=data, timestamp=float(ts)) for ch, data, ts in rows]


def _check_plain_json(value: Any, where: str) -> None:
    if value is None or isinstance(value, (str, bool, int, float)):
        return
    if type(value) is list:
        for i, item in enumerate(value):
            _check_plain_json(item, f"{where}[{i}]")
        return
    if type(value) is dict:
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"{where}: json keys must be str, got {type(key).__name__} {key!r}")
            _check_plain_json(item, f"{where}[{key!r}]")
        return
    raise TypeError(f"{where}: {type(value).__name__} does not survive a json round trip")


class JsonCodec(Codec):
    """
    Plain JSON payloads only (dict with str keys, list, str, int, float, bool,
    None) so the log stays human-inspectable. Anything json would silently
    reshape (tuples, sets, int keys) raises TypeError before the log is touched.
    """
    name = "json"

    def dumps(self, events: List[Event]) -> bytes:
        for ev in events:
            _check_plain_json(ev.payload, "payload")
        rows = [{"channels": sorted(ev.channels), "payload": ev.payload, "timestamp": ev.timestamp} for ev in events]
        return json.dumps(rows, separators=(",", ":")).encode("utf-8")

    def loads(self, body: bytes) -> List[Event]:
        rows: List[Dict[str, Any]] = json.loads(body.decode("utf-8"))
        return [Event.from_record(r) for r in rows]


CODECS: Dict[str, Type[Codec]] = {
    PickleCodec.name: PickleCodec,
    JsonCodec.name: JsonCodec,
}


def pick_codec(name: str) -> Codec:
    try:
        return CODECS[name]()
    except KeyError:
        raise ValueError(f"unknown codec {name!r} (available: {', '.join(sorted(CODECS))})") from None
