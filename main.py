#!/usr/bin/env python3
"""
AuthKit -- cookie-bound token sessions and password hashing.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080
  python main.py check-config
  python main.py hash-password
  python main.py revoke alice@example.com
  python main.py set-status alice@example.com inactive

Environment variables:
  SECRET_KEY    HMAC signing key, at least 32 characters. Required unless DEBUG=true.
  DATABASE_URL  SQLAlchemy URL of the account database (default: sqlite:///authkit.db).
  See core/config.py for the full list.
"""

import argparse
import getpass
from typing import Optional

from auth.passwords import PasswordHasher, validate_password
from auth.store import AccountStore
from core.config import Settings, load_settings
from core.errors import ConfigError


def _load() -> Settings:
    try:
        return load_settings()
    except ConfigError as e:
        print(f"  [!] {e.message}")
        raise SystemExit(2) from e


def _serve(args: argparse.Namespace) -> None:
    import uvicorn

    _load()
    # server_header=False: the app stamps its own Server header.
    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload, server_header=False)


def _check_config(args: argparse.Namespace) -> None:
    settings = _load()
    print(f"\n{settings.service_name} configuration")
    print("-" * 40)
    print(f"  issuer            {settings.token_issuer}")
    print(f"  access ttl        {settings.expires_in} ({settings.access_ttl}s)")
    print(f"  refresh ttl       {settings.refresh_expires_in} ({settings.refresh_ttl}s)")
    print(f"  cookies           {settings.cookie_name} / {settings.refresh_cookie_name}")
    print(f"  password hashing  {settings.password_hash_algorithm}")
    print(f"  database          {settings.database_url}")
    print("  OK\n")


def _hash_password(args: argparse.Namespace) -> None:
    settings = _load()
    password = getpass.getpass("Password: ")
    violation = validate_password(password, settings.password_policy)
    if violation:
        print(f"  [!] {violation}")
        raise SystemExit(1)
    print(PasswordHasher(settings).hash(password))


def _with_account(email: str) -> tuple[AccountStore, int]:
    settings = _load()
    store = AccountStore(settings.database_url)
    account = store.get_by_email(email)
    if account is None:
        store.close()
        print(f"  [!] No account found for '{email}'.")
        raise SystemExit(1)
    return store, account.id


def _revoke(args: argparse.Namespace) -> None:
    store, account_id = _with_account(args.email)
    try:
        version = store.increment_token_version(account_id)
    finally:
        store.close()
    print(f"  Revoked all sessions for {args.email} (token version now {version}).")


def _set_status(args: argparse.Namespace) -> None:
    store, account_id = _with_account(args.email)
    try:
        store.update_status(account_id, args.status)
    finally:
        store.close()
    print(f"  {args.email} is now {args.status}.")


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="authkit",
        description="AuthKit server and account administration.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  DEBUG=true python main.py serve --reload
  SECRET_KEY=... python main.py check-config
  python main.py revoke alice@example.com
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API under uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_serve)

    check = sub.add_parser("check-config", help="Validate configuration and print the effective values")
    check.set_defaults(func=_check_config)

    hasher = sub.add_parser("hash-password", help="Prompt for a password and print its stored credential")
    hasher.set_defaults(func=_hash_password)

    revoke = sub.add_parser("revoke", help="Invalidate every token issued to an account")
    revoke.add_argument("email", help="Account email address")
    revoke.set_defaults(func=_revoke)

    status = sub.add_parser("set-status", help="Activate or deactivate an account")
    status.add_argument("email", help="Account email address")
    status.add_argument("status", choices=["active", "inactive", "deleted"], help="New account status")
    status.set_defaults(func=_set_status)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
