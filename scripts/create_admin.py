"""
Create an admin account.

Admins can delete any strip and trigger a sweep through the /admin routes.
"""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from photobooth.accounts import AccountService
from photobooth.config import get_settings
from photobooth.db import InMemoryDbClient
from photobooth.dependencies import build_db_client
from photobooth.errors import PhotoboothError

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a photobooth admin user")
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument(
        "--password",
        default=None,
        help="Password (prompted for when omitted)",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")

    settings = get_settings()
    db = build_db_client(settings)
    if isinstance(db, InMemoryDbClient):
        logger.error("DATABASE_URL is not configured; refusing to seed an in-memory db")
        return 1

    password = args.password or getpass.getpass("Admin password: ")
    accounts = AccountService(db=db, jwt_secret=settings.jwt_secret)
    try:
        user = accounts.signup(args.username, args.email, password, is_admin=True)
    except PhotoboothError as exc:
        logger.error("Could not create admin: %s", exc.message)
        return 1
    logger.info("Admin %s created with id %s", user.username, user.id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
