#!/usr/bin/env python3
"""
authgate -- token authentication service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py disable-user alice
  python main.py enable-user alice@example.com

Environment variables (or .env):
  ACCESS_TOKEN_SECRET   Signing secret for access tokens (>= 32 chars). serve only.
  REFRESH_TOKEN_SECRET  Signing secret for refresh tokens (>= 32 chars, different). serve only.
  DATABASE_URL          SQLAlchemy URL for the user database.
  DEBUG=true            Generate throwaway secrets for local development.

enable-user / disable-user only read DATABASE_URL; they do not need the secrets.
"""

import argparse
import sys

from auth.store import UserStore
from core.config import DatabaseSettings


def _set_enabled(principal: str, enabled: bool, db_url: str) -> int:
    """Toggle an account's enabled flag. Returns a process exit code."""
    store = UserStore(db_url)
    try:
        user = store.find_by_principal(principal)
        if user is None:
            print(f"  [!] No user matches '{principal}'.")
            return 1
        store.set_enabled(user.id, enabled)
        state = "enabled" if enabled else "disabled"
        print(f"User {user.username} (id={user.id}) {state}.")
        return 0
    finally:
        store.close()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="authgate",
        description="Issue, verify and refresh authentication tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --port 8080
  python main.py disable-user alice
  DEBUG=true python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")

    for name, help_text in (
        ("enable-user", "Re-enable a disabled account"),
        ("disable-user", "Disable an account; blocks login and refresh"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("principal", help="Username or email of the account")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "serve":
        import uvicorn

        uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
        return 0

    db_url = DatabaseSettings().database_url
    return _set_enabled(args.principal, args.command == "enable-user", db_url)


if __name__ == "__main__":
    sys.exit(main())
