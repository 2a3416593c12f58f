#!/usr/bin/env python3
"""
Inkwell: a small blog publishing app.

Usage:
  python main.py create-admin --name "Ann Admin" --email ann@example.com
  python main.py create-admin --name "Ann Admin" --email ann@example.com --password 'S3cretPass'
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload

The HTTP surface only ever creates accounts with role "user", so the first
administrator has to be bootstrapped here.

Environment variables:
  SECRET_KEY     Token signing key (>= 32 chars). Required unless DEBUG=true.
  DATABASE_URL   SQLAlchemy URL. Defaults to a SQLite file beside this script.
"""

import argparse
import getpass
import sys

from pydantic import ValidationError

from api.models import AdminUserCreate, RoleEnum
from auth.models import User
from auth.store import UserStore
from auth.tokens import hash_password
from core.config import get_settings
from core.database import Database


def _prompt_password() -> str:
    first = getpass.getpass("  Password: ")
    second = getpass.getpass("  Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        sys.exit(1)
    return first


def create_admin(name: str, email: str, password: str, database_url: str) -> int:
    """Validate the account fields and insert an admin. Returns the new user id.

    Raises ValueError with a printable message when validation fails or the
    email is already registered.
    """
    try:
        body = AdminUserCreate(name=name, email=email, password=password, role=RoleEnum.admin)
    except ValidationError as exc:
        messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        raise ValueError("; ".join(messages)) from exc

    db = Database(database_url)
    try:
        store = UserStore(db)
        if store.email_taken(body.email):
            raise ValueError(f"an account with email {body.email} already exists")
        return store.create_user(
            User(
                name=body.name,
                email=body.email,
                hashed_password=hash_password(body.password),
                role=body.role.value,
            )
        )
    finally:
        db.dispose()


def _cmd_create_admin(args: argparse.Namespace) -> None:
    password = args.password or _prompt_password()
    try:
        user_id = create_admin(args.name, args.email, password, get_settings().database_url)
    except ValueError as exc:
        print(f"  [!] Could not create admin: {exc}")
        sys.exit(1)
    print(f"  Admin account created (id {user_id}).")


def _cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="inkwell",
        description="Inkwell blog publishing app.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-admin --name "Ann Admin" --email ann@example.com
  python main.py serve --reload
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = sub.add_parser("create-admin", help="Create an administrator account")
    admin.add_argument("--name", required=True, help="Display name (2-50 letters, spaces, hyphens, apostrophes)")
    admin.add_argument("--email", required=True, help="Login email address")
    admin.add_argument(
        "--password",
        default=None,
        help="Password (8-128 chars with upper, lower and digit). Prompted for when omitted.",
    )
    admin.set_defaults(func=_cmd_create_admin)

    serve = sub.add_parser("serve", help="Run the web server with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    serve.set_defaults(func=_cmd_serve)

    args = parser.parse_args()
    if not args.command:
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
