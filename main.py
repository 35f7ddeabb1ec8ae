#!/usr/bin/env python3
"""
Account service command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py create-admin --email admin@example.com --password admin123
  python main.py create-admin --email ops@example.com --password s3cret! \\
      --full-name "Ops Admin" --birth-date 1985-05-20

create-admin is the only way to obtain an ADMIN account: registration always
creates USER accounts and no operation changes a role. It is idempotent --
an existing email is reported and left untouched.

Environment variables: see core/config.py (DATABASE_URL, ACCESS_SECRET_KEY,
REFRESH_SECRET_KEY, DEBUG, ...).
"""

import argparse
import logging
import sys
from datetime import date

from auth.models import Role, User, UserStatus
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("accounts.cli")


def create_admin(email: str, password: str, full_name: str, birth_date: date, db_url: str) -> bool:
    """Create an ACTIVE ADMIN account. Returns False if the email is already taken."""
    store = UserStore(db_url)
    try:
        if store.find_by_email(email) is not None:
            logger.info("User %s already exists; nothing to do", email)
            return False
        user_id = store.create(
            User(
                full_name=full_name,
                birth_date=birth_date,
                email=email,
                hashed_password=hash_password(password),
                role=Role.ADMIN,
                status=UserStatus.ACTIVE,
            )
        )
        logger.info("Created admin user %d (%s)", user_id, email)
        return True
    finally:
        store.close()


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected YYYY-MM-DD, got {value!r}") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accounts", description="User account service.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development).")

    admin = sub.add_parser("create-admin", help="Create an administrator account.")
    admin.add_argument("--email", required=True)
    admin.add_argument("--password", required=True)
    admin.add_argument("--full-name", default="Administrator")
    admin.add_argument("--birth-date", type=_parse_date, default=date(1990, 1, 1))
    admin.add_argument("--database-url", default=None, help="Override DATABASE_URL.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)-5s %(name)s %(message)s")

    if args.command == "serve":
        import uvicorn

        uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    if len(args.password) < 6:
        print("  [!] Password must be at least 6 characters.", file=sys.stderr)
        return 2
    db_url = args.database_url or get_settings().database_url
    create_admin(args.email, args.password, args.full_name, args.birth_date, db_url)
    return 0


if __name__ == "__main__":
    sys.exit(main())
