#!/usr/bin/env python3
"""
Stockroom -- management CLI.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py create-user alice --email alice@example.com
  python main.py list-users

Passwords are read with getpass and never accepted as a command-line
argument, so they do not end up in shell history or `ps` output.

Environment variables:
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL. Defaults to sqlite:///stockroom.db next to this file.
"""

import argparse
import getpass
import logging
import sys

from core.errors import ConflictError

logger = logging.getLogger("stockroom.cli")


def _identity_service():
    from auth.service import IdentityService
    from auth.store import IdentityStore
    from auth.tokens import get_token_issuer

    return IdentityService(IdentityStore(), get_token_issuer())


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_create_user(args: argparse.Namespace) -> int:
    password = getpass.getpass("Password: ")
    if not password:
        print("  [!] Password must not be empty.")
        return 1
    if password != getpass.getpass("Repeat password: "):
        print("  [!] Passwords do not match.")
        return 1
    service = _identity_service()
    try:
        identity = service.create_identity(args.username, password, args.email)
    except ConflictError as exc:
        print(f"  [!] {exc}")
        return 1
    finally:
        service.store.close()
    print(f"  Created user {identity.username} (id={identity.id})")
    return 0


def cmd_list_users(args: argparse.Namespace) -> int:
    service = _identity_service()
    try:
        identities = service.list_identities()
    finally:
        service.store.close()
    if not identities:
        print("  No users.")
        return 0
    for identity in identities:
        print(f"  {identity.id:>5}  {identity.username:<30} {identity.email or '-'}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Stockroom -- users, bearer tokens, and a product catalog.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Examples:\n  python main.py serve --reload\n  python main.py create-user alice",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Auto-reload on code changes (development)")
    serve.set_defaults(func=cmd_serve)

    create = sub.add_parser("create-user", help="Create a user (prompts for the password)")
    create.add_argument("username")
    create.add_argument("--email", default=None)
    create.set_defaults(func=cmd_create_user)

    list_users = sub.add_parser("list-users", help="List all users")
    list_users.set_defaults(func=cmd_list_users)

    return parser


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)-5s %(name)s %(message)s")
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except ValueError as exc:
        # Settings validation (e.g. missing SECRET_KEY) surfaces here.
        print(f"  [!] {exc}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
