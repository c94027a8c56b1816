# echochamber/app/worker.py
from __future__ import annotations
import multiprocessing
import time
from typing import Callable, Dict, Optional

import structlog

from echochamber.app.chamber import EchoChamber
from echochamber.app.config import ChamberConfig
from echochamber.app.logging_config import configure_logging
from echochamber.app.metrics import ThroughputTracker
from echochamber.core.codec import Codec
from echochamber.core.events import ALL_CHANNELS, Event

log = structlog.get_logger()

HEARTBEAT_CHANNEL = "heartbeat"


def heartbeat_role(config: ChamberConfig, codec: Optional[Codec] = None, beats: Optional[int] = None) -> None:
    """Publish an empty heartbeat every heartbeat_interval. beats=None runs forever."""
    configure_logging(debug=config.debug)
    chamber = EchoChamber(config, codec=codec)
    log.info("worker.heartbeat.start", interval=config.heartbeat_interval)
    sent = 0
    while beats is None or sent < beats:
        time.sleep(config.heartbeat_interval)
        chamber.publish(HEARTBEAT_CHANNEL, None)
        sent += 1


class IngestCounter:
    """Subscriber callback for the ingest role: counts events, logs throughput per interval."""
    def __init__(self, tracker: ThroughputTracker):
        self.tracker = tracker
        self.total = 0

    def __call__(self, ev: Event) -> bool:
        self.total += 1
        snap = self.tracker.observe()
        if snap is not None:
            log.info(
                "ingest.throughput",
                events_per_second=round(snap.per_second, 2),
                count=snap.count,
                mean=round(snap.mean_per_second, 2),
                peak=round(snap.peak_per_second, 2),
            )
        return True


def ingest_role(config: ChamberConfig, codec: Optional[Codec] = None) -> None:
    configure_logging(debug=config.debug)
    chamber = EchoChamber(config, codec=codec)
    log.info("worker.ingest.start", codec=chamber.codec.name, log_path=config.log_path)
    counter = IngestCounter(ThroughputTracker(report_interval_s=config.report_interval))
    chamber.subscribe(ALL_CHANNELS, counter)


ROLES: Dict[str, Callable[..., None]] = {
    "heartbeat": heartbeat_role,
    "ingest": ingest_role,
}


class WorkerSupervisor:
    """
    Runs each role in its own process and restarts any that exit.
    With restart=False a dead role stays dead and the others carry on.
    """
    def __init__(
        self,
        config: ChamberConfig,
        codec: Optional[Codec] = None,
        restart: bool = True,
        poll_sec: float = 0.5,
        roles: Optional[Dict[str, Callable[..., None]]] = None,
        mp_context=None,
    ):
        self.cfg = config
        self.codec = codec
        self.restart = restart
        self.poll_sec = poll_sec
        self.roles = roles or ROLES
        self.ctx = mp_context or multiprocessing.get_context()
        self.procs: Dict[str, multiprocessing.process.BaseProcess] = {}
        self.restarts: Dict[str, int] = {name: 0 for name in self.roles}

    def start(self) -> None:
        for name in self.roles:
            self._spawn(name)
        log.info("worker.start", roles=sorted(self.roles), restart=self.restart)

    def check(self) -> None:
        """One supervision pass: report dead roles, restart them if enabled."""
        for name, proc in list(self.procs.items()):
            if proc.is_alive():
                continue
            proc.join()
            log.warning("worker.role.exit", role=name, pid=proc.pid, exitcode=proc.exitcode)
            del self.procs[name]
            if self.restart:
                self.restarts[name] += 1
                self._spawn(name)

    def run(self) -> None:
        self.start()
        try:
            while True:
                time.sleep(self.poll_sec)
                self.check()
        finally:
            self.stop()

    def stop(self) -> None:
        for proc in self.procs.values():
            if proc.is_alive():
                proc.terminate()
        for proc in self.procs.values():
            proc.join(timeout=1.0)
        self.procs.clear()
        log.info("worker.stop")

    def _spawn(self, name: str) -> None:
        proc = self.ctx.Process(
            target=self.roles[name],
            args=(self.cfg, self.codec),
            name=f"echochamber-{name}",
            daemon=True,
        )
        proc.start()
        self.procs[name] = proc
        log.info("worker.role.start", role=name, pid=proc.pid)
