# echochamber/app/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, fields
from typing import Mapping, Optional

from echochamber.core.codec import CODECS

ENV_PREFIX = "ECHO_"

@dataclass(frozen=True)
class ChamberConfig:
    # shared files
    log_path: str = "events.bin"
    fifo_path: str = "wakeup.fifo"   # directory of per-subscriber FIFOs

    # retention window (seconds) for trimming and for a fresh subscriber's replay start
    backlog_seconds: float = 0.1

    # hard cap on stored events, whatever their age
    max_events: int = 10000

    # longest a subscriber sleeps without a publish before re-checking liveness
    wait_timeout: float = 1.0

    codec: str = "pickle"

    # worker roles
    heartbeat_interval: float = 1.0
    report_interval: float = 1.0
    debug: bool = False

    def __post_init__(self):
        if self.backlog_seconds < 0:
            raise ValueError(f"backlog_seconds must be >= 0, got {self.backlog_seconds}")
        if self.max_events < 1:
            raise ValueError(f"max_events must be >= 1, got {self.max_events}")
        if self.wait_timeout <= 0:
            raise ValueError(f"wait_timeout must be > 0, got {self.wait_timeout}")
        if self.heartbeat_interval <= 0 or self.report_interval <= 0:
            raise ValueError("worker intervals must be > 0")
        if self.codec not in CODECS:
            raise ValueError(f"unknown codec {self.codec!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "ChamberConfig":
        """Build from ECHO_* variables (e.g. ECHO_BACKLOG_SECONDS=0.5); keyword overrides win."""
        env = os.environ if environ is None else environ
        values = {}
        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.type in ("float", float):
                values[f.name] = float(raw)
            elif f.type in ("int", int):
                values[f.name] = int(raw)
            elif f.type in ("bool", bool):
                values[f.name] = raw.lower() in ("1", "true", "yes", "on")
            else:
                values[f.name] = raw
        values.update(overrides)
        return cls(**values)
