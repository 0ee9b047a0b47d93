"""
Daemon that periodically purges expired guest strips.

Use this instead of the in-app sweeper when the API runs with
SWEEPER_ENABLED=false (e.g. several API replicas behind a load balancer).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from photobooth.config import get_settings
from photobooth.dependencies import build_db_client, build_storage_client
from photobooth.strips import StripService
from photobooth.sweeper import ExpirationSweeper

logger = logging.getLogger(__name__)


def main() -> int:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Expired guest strip sweeper")
    parser.add_argument(
        "--interval-seconds",
        type=float,
        default=settings.sweep_interval_seconds,
        help="Seconds between sweep passes",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sweep and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    service = StripService(
        build_db_client(settings),
        build_storage_client(settings),
        guest_expiration_days=settings.guest_expiration_days,
    )
    sweeper = ExpirationSweeper(service, interval_seconds=args.interval_seconds)

    if args.once:
        deleted = sweeper.sweep_once()
        logger.info("Sweep complete, deleted %d strips", deleted)
        return 0

    try:
        sweeper.run_forever()
    except KeyboardInterrupt:
        logger.info("Sweeper interrupted, exiting")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
