# echochamber/app/metrics.py
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Optional
import time
import numpy as np

@dataclass
class ThroughputSnapshot:
    count: int          # events seen in the interval just closed
    elapsed_s: float
    per_second: float
    mean_per_second: float
    peak_per_second: float

class ThroughputTracker:
    """
    Counts events and closes an interval once report_interval_s has passed
    since the last report. Keeps the last `history` per-second rates for a
    rolling mean/peak.
    """
    def __init__(self, report_interval_s: float = 1.0, history: int = 60,
                 clock: Callable[[], float] = time.monotonic):
        self.report_interval_s = report_interval_s
        self.clock = clock
        self._rates: Deque[float] = deque(maxlen=history)
        self._count = 0
        self._started = clock()

    def observe(self) -> Optional[ThroughputSnapshot]:
        """Count one event; returns a snapshot when the interval closes, else None."""
        self._count += 1
        now = self.clock()
        elapsed = now - self._started
        if elapsed < self.report_interval_s:
            return None

        rate = self._count / elapsed
        self._rates.append(rate)
        rates = np.array(self._rates, dtype=float)
        snap = ThroughputSnapshot(
            count=self._count,
            elapsed_s=elapsed,
            per_second=rate,
            mean_per_second=float(rates.mean()),
            peak_per_second=float(rates.max()),
        )
        self._count = 0
        self._started = now
        return snap
