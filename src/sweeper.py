"""Periodic deadline sweeper.

Runs automation retries, revision and exception expiry, and consolidation
planning. Deadlines are honoured with a latency of at most one interval.

Usage:
    python src/sweeper.py --once
    python src/sweeper.py --interval 300
    python src/sweeper.py --once --as-of 2026-01-15T00:00:00+00:00 --sweep revisions
"""

import argparse
import time
from datetime import datetime

import structlog
from forwarding.domain import forwarding
from forwarding.sweeps import SWEEPS, run_sweeps
from forwarding.utils.logging import configure_logging

logger = structlog.get_logger(__name__)


def run_once(as_of=None, names=None) -> dict[str, int]:
    with forwarding.domain_context():
        return run_sweeps(as_of=as_of, names=names)


def run_forever(interval: int, names=None, sleep=time.sleep, iterations: int | None = None) -> None:
    """Sweep every ``interval`` seconds; a failed pass is logged and the loop goes on."""
    completed = 0
    while iterations is None or completed < iterations:
        try:
            run_once(names=names)
        except Exception:
            logger.exception("Sweep pass failed", sweeps=names or list(SWEEPS))
        completed += 1
        sleep(interval)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forwarding deadline sweeper")
    parser.add_argument("--once", action="store_true", help="Run every sweep once and exit")
    parser.add_argument("--interval", type=int, help="Seconds between sweeps (default: 300)")
    parser.add_argument("--as-of", type=datetime.fromisoformat, help="Evaluate deadlines at this ISO timestamp")
    parser.add_argument(
        "--sweep",
        choices=list(SWEEPS),
        action="append",
        help="Restrict to the given sweep (repeatable; default: all)",
    )
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.as_of is not None and not args.once:
        parser.error("--as-of only applies to a single pass; combine it with --once")
    if args.once and args.interval is not None:
        parser.error("--interval cannot be combined with --once")

    configure_logging()
    forwarding.init()

    if args.once:
        run_once(args.as_of, args.sweep)
        return

    interval = args.interval or 300
    logger.info("Sweeper started", interval_seconds=interval, sweeps=args.sweep or list(SWEEPS))
    run_forever(interval, args.sweep)


if __name__ == "__main__":
    main()
