#!/usr/bin/env python3
"""
Turnstile -- administration CLI.

Role creation over HTTP requires the admin role, so the first admin has to
be created here, directly against the database named by DATABASE_URL.

Usage:
  python main.py create-user admin@example.com            (prompts for password)
  python main.py create-user admin@example.com --password 'S3cure!pass'
  python main.py create-role Admin
  python main.py assign-role admin@example.com Admin
  python main.py list-roles
  python main.py serve --host 127.0.0.1 --port 8000

Environment variables:
  DATABASE_URL  SQLAlchemy URL of the identity database.
  SECRET_KEY    Required unless DEBUG=true (see core/config.py).
"""

import argparse
import getpass
import sys
from typing import Optional

from auth.errors import AuthError, ValidationError
from auth.roles import RoleManager
from auth.service import AuthenticationEngine
from auth.store import RoleStore, SessionStore, UserStore, create_store_engine
from auth.tokens import JwtSessionCodec
from core.config import get_settings


def _print_error(exc: AuthError) -> None:
    print(f"  [!] {exc.message}", file=sys.stderr)
    if isinstance(exc, ValidationError):
        for field, messages in exc.field_errors.items():
            for message in messages:
                print(f"      {field}: {message}", file=sys.stderr)


def _build(db_url: Optional[str]) -> tuple[AuthenticationEngine, RoleManager]:
    settings = get_settings()
    engine = create_store_engine(db_url or settings.database_url)
    users, roles = UserStore(engine), RoleStore(engine)
    auth_engine = AuthenticationEngine.from_settings(
        settings,
        users=users,
        roles=roles,
        revocations=SessionStore(engine),
        codec=JwtSessionCodec(settings.secret_key),
    )
    return auth_engine, RoleManager(users, roles)


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="turnstile",
        description="Turnstile identity administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Bootstrap the first admin:
  python main.py create-user admin@example.com
  python main.py create-role Admin
  python main.py assign-role admin@example.com Admin
        """,
    )
    parser.add_argument(
        "--db",
        metavar="URL",
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL setting)",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    p_user = sub.add_parser("create-user", help="Create a user (password policy applies)")
    p_user.add_argument("email")
    p_user.add_argument("--password", default=None, help="Password (prompted for when omitted)")

    p_role = sub.add_parser("create-role", help="Create a role")
    p_role.add_argument("name")

    p_assign = sub.add_parser("assign-role", help="Add a user to a role")
    p_assign.add_argument("email")
    p_assign.add_argument("role")

    sub.add_parser("list-roles", help="List all roles")

    p_serve = sub.add_parser("serve", help="Run the API server with uvicorn")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=8000)
    p_serve.add_argument("--reload", action="store_true")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1
    if args.command == "serve":
        return _serve(args)

    auth_engine, role_manager = _build(args.db)
    try:
        if args.command == "create-user":
            password = args.password
            confirm = password
            if password is None:
                password = getpass.getpass("Password: ")
                confirm = getpass.getpass("Confirm password: ")
            user = auth_engine.create_user(args.email, password, confirm)
            print(f"  Created user {user.email} ({user.id})")
        elif args.command == "create-role":
            role = role_manager.create_role(args.name)
            print(f"  Created role {role.name} ({role.id})")
        elif args.command == "assign-role":
            user, role = role_manager.assign(args.email, args.role)
            print(f"  Added {user.email} to {role.name}")
        elif args.command == "list-roles":
            roles = role_manager.list_roles()
            if not roles:
                print("  No roles defined.")
            for role in roles:
                print(f"  {role.name}")
    except AuthError as exc:
        _print_error(exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
