from __future__ import annotations
import argparse, json, sys

from echochamber.app.chamber import EchoChamber
from echochamber.app.config import ChamberConfig
from echochamber.app.logging_config import configure_logging
from echochamber.core.errors import CorruptLogError
from echochamber.core.locking import locked

def _print_event(ev) -> None:
    print(json.dumps(ev.to_record(), default=repr), flush=True)

def main(argv=None):
    ap = argparse.ArgumentParser(prog="echo", description="EchoChamber CLI")
    ap.add_argument("--log", help="event log path (default: $ECHO_LOG_PATH or events.bin)")
    ap.add_argument("--fifo", help="wakeup channel directory (default: $ECHO_FIFO_PATH or wakeup.fifo)")
    ap.add_argument("--backlog", type=float, help="backlog window in seconds")
    ap.add_argument("--codec", choices=["pickle", "json"])
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_worker = sub.add_parser("worker", help="Run heartbeat + ingest roles")
    p_worker.add_argument("--no-restart", action="store_true", help="do not restart a role that exits")

    p_pub = sub.add_parser("publish", help="Publish one event")
    p_pub.add_argument("channel", nargs="+")
    p_pub.add_argument("--data", default=None, help="JSON payload")

    p_tail = sub.add_parser("tail", help="Print events as they arrive")
    p_tail.add_argument("channel", nargs="*", default=["*"])
    p_tail.add_argument("--since", type=float, help="replay from this unix timestamp")

    sub.add_parser("dump", help="Print the current log snapshot (exit 2 if corrupt)")

    args = ap.parse_args(argv)
    overrides = {k: v for k, v in {
        "log_path": args.log, "fifo_path": args.fifo,
        "backlog_seconds": args.backlog, "codec": args.codec,
    }.items() if v is not None}
    if args.verbose:
        overrides["debug"] = True
    cfg = ChamberConfig.from_env(**overrides)
    configure_logging(debug=cfg.debug)
    chamber = EchoChamber(cfg)

    if args.cmd == "worker":
        chamber.run_as_worker(restart=not args.no_restart)
        return

    if args.cmd == "publish":
        payload = json.loads(args.data) if args.data is not None else None
        ev = chamber.publish(args.channel, payload)
        _print_event(ev)
        return

    if args.cmd == "tail":
        try:
            chamber.subscribe(args.channel, _print_event, timestamp=args.since)
        except KeyboardInterrupt:
            pass
        return

    if args.cmd == "dump":
        # decode directly so corruption is reported instead of shown as an empty log
        with locked(cfg.log_path, shared=True) as fh:
            raw = fh.read()
        try:
            events = chamber.codec.decode(raw)
        except CorruptLogError as e:
            print(f"corrupt log: {e}", file=sys.stderr)
            sys.exit(2)
        for ev in events:
            _print_event(ev)

if __name__ == "__main__":
    main()
