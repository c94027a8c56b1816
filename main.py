# main.py
from __future__ import annotations
import structlog
from echochamber.app.chamber import EchoChamber
from echochamber.app.config import ChamberConfig
from echochamber.app.logging_config import configure_logging

def main() -> None:
    cfg = ChamberConfig.from_env()
    configure_logging(debug=cfg.debug)
    log = structlog.get_logger()

    log.info("app.start", msg="Launching EchoChamber worker", log_path=cfg.log_path, fifo_path=cfg.fifo_path)
    try:
        EchoChamber(cfg).run_as_worker()
    except KeyboardInterrupt:
        log.info("app.stop", msg="Interrupted")

if __name__ == "__main__":
    main()
