# echochamber/core/errors.py
from __future__ import annotations


class EchoChamberError(Exception):
    """Base class for everything raised by echochamber."""


class LogInitError(EchoChamberError):
    """The shared event-log file could not be created."""


class ChannelInitError(EchoChamberError):
    """The wakeup channel directory could not be created."""


class LockError(EchoChamberError):
    """A shared or exclusive lock on the event log could not be taken or released."""


class CorruptLogError(EchoChamberError):
    """Stored bytes are not a valid encoding of an event sequence."""


class WorkerContextError(EchoChamberError):
    """The worker was started somewhere it cannot own the process (not the main thread)."""
