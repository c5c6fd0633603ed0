#!/usr/bin/env python3
"""
authcore -- command-line entry point.

Usage:
  python main.py serve [--host 127.0.0.1] [--port 8000] [--reload]
  python main.py register EMAIL USERNAME NAME      (password read from prompt or --password)
  python main.py login EMAIL                       (prints the access token)
  python main.py whoami TOKEN                      (prints the token owner as JSON)
  python main.py purge-cache

Configuration comes from the environment / .env exactly as for the API
(JWT_SECRET, JWT_ACCESS_EXPIRATION, DATABASE_URL, CACHE_DB_PATH, ...).

Exit codes: 0 success, 1 rejected input or credentials, 2 store/cache unavailable.
"""

import argparse
import getpass
import json
import logging
import sys
from typing import Optional

from auth.service import AuthService
from core.config import get_settings
from core.errors import (
    AuthError,
    DuplicateEntityError,
    InvalidValueError,
    NotFoundError,
    TransientIOError,
    UnauthorizedError,
)

logger = logging.getLogger("authcore.cli")


def _read_password(args: argparse.Namespace) -> str:
    if args.password is not None:
        return args.password
    return getpass.getpass("Password: ")


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_register(service: AuthService, args: argparse.Namespace) -> int:
    service.register(args.email, _read_password(args), args.username, args.name)
    print(f"  Registered {args.email}")
    return 0


def _cmd_login(service: AuthService, args: argparse.Namespace) -> int:
    print(service.login(args.email, _read_password(args)))
    return 0


def _cmd_whoami(service: AuthService, args: argparse.Namespace) -> int:
    print(json.dumps(service.resolve_session(args.token).to_dict(), indent=2))
    return 0


def _cmd_purge_cache(service: AuthService, args: argparse.Namespace) -> int:
    if service.cache is None:
        print("  Session cache is disabled.")
        return 0
    removed = service.cache.purge_expired()
    print(f"  Removed {removed} expired session cache entries")
    return 0


_COMMANDS = {
    "register": _cmd_register,
    "login": _cmd_login,
    "whoami": _cmd_whoami,
    "purge-cache": _cmd_purge_cache,
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authcore",
        description="Account registration, login and token inspection.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true")

    register = sub.add_parser("register", help="Create an account")
    register.add_argument("email")
    register.add_argument("username")
    register.add_argument("name")
    register.add_argument("--password", help="Password (prompted for when omitted)")

    login = sub.add_parser("login", help="Log in and print an access token")
    login.add_argument("email")
    login.add_argument("--password", help="Password (prompted for when omitted)")

    whoami = sub.add_parser("whoami", help="Print the account behind an access token")
    whoami.add_argument("token")

    sub.add_parser("purge-cache", help="Delete expired session cache entries")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if args.command == "serve":
        return _cmd_serve(args)

    try:
        service = AuthService.from_settings(settings)
    except TransientIOError as exc:
        print(f"  [!] Store unavailable: {exc}", file=sys.stderr)
        return 2

    try:
        return _COMMANDS[args.command](service, args)
    except InvalidValueError as exc:
        print(f"  [!] Invalid {exc.field}: {exc}", file=sys.stderr)
        return 1
    except DuplicateEntityError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        return 1
    except (NotFoundError, UnauthorizedError) as exc:
        logger.debug("Rejected: %s", exc)
        print("  [!] Invalid credentials or token.", file=sys.stderr)
        return 1
    except TransientIOError as exc:
        print(f"  [!] Store unavailable: {exc}", file=sys.stderr)
        return 2
    except AuthError as exc:
        print(f"  [!] {exc}", file=sys.stderr)
        return 1
    finally:
        if service.cache is not None:
            service.cache.close()
        service.store.close()


if __name__ == "__main__":
    sys.exit(main())
