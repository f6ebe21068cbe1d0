"""Command-line interface for the PartnerHub remote-user service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence

from partnerhub.config import Settings, load_settings
from partnerhub.database import Database
from partnerhub.errors import PartnerHubError
from partnerhub.permissions import parse_permissions, serialize_permissions
from partnerhub.users import UserService

logger = logging.getLogger("partnerhub.main")

_KNOWN_COMMANDS = {"serve", "init-db", "create-app", "rotate-key", "create-user", "list-users"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="PartnerHub remote-user utilities")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to the YAML configuration file (default: PARTNERHUB_CONFIG or config/partnerhub.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    subparsers.add_parser("init-db", help="Initialise the database")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP service")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument("--port", type=int, default=None, help="Port for the API")

    app_parser = subparsers.add_parser("create-app", help="Register a partner application")
    app_parser.add_argument("name", help="Display name of the application")
    app_parser.add_argument(
        "--permissions",
        default=None,
        help="Comma separated permissions to grant (default: all)",
    )

    rotate_parser = subparsers.add_parser("rotate-key", help="Issue a new API key for an application")
    rotate_parser.add_argument("app_id", type=int)

    user_parser = subparsers.add_parser("create-user", help="Create a remote user for an application")
    user_parser.add_argument("app_id", type=int)
    user_parser.add_argument("username")
    user_parser.add_argument("email")

    list_parser = subparsers.add_parser("list-users", help="List the live users of an application")
    list_parser.add_argument("app_id", type=int)

    args_list = list(argv) if argv is not None else sys.argv[1:]

    # Options given without a subcommand belong to ``serve``.
    index = 0
    if args_list[:1] and args_list[0] == "--config":
        index = 2
    elif args_list[:1] and args_list[0].startswith("--config="):
        index = 1
    rest = args_list[index:]
    if not rest:
        args_list = [*args_list, "serve"]
    else:
        first = rest[0]
        if first not in ("-h", "--help") and first not in _KNOWN_COMMANDS:
            if not any(flag in rest for flag in ("-h", "--help")):
                args_list = [*args_list[:index], "serve", *rest]

    return parser.parse_args(args_list)


def _initialise_database(settings: Settings) -> Database:
    database = Database(settings.database_path)
    database.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    return database


def _serve(*, database: Database, host: str, port: int, log_level: str) -> None:
    from partnerhub.api import create_app
    import uvicorn

    logger.info("Starting PartnerHub API on http://%s:%s", host, port)
    app = create_app(database=database)
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())


def _prompt_for_password() -> tuple[str, str] | None:
    for _ in range(3):
        password = getpass("Password: ")
        if not password:
            print("Password must not be empty. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password, confirmation
    return None


def _create_app(database: Database, name: str, permissions: str | None) -> int:
    try:
        granted = parse_permissions(permissions)
        app, api_key = database.create_app(name, granted)
    except ValueError as exc:
        print(f"Failed to create application: {exc}", file=sys.stderr)
        return 1

    print(f"Created application #{app.id}: {app.name}")
    print(f"Permissions: {serialize_permissions(app.permissions) or '<none>'}")
    print(f"API key (shown once): {api_key}")
    return 0


def _rotate_key(database: Database, app_id: int) -> int:
    try:
        app, api_key = database.rotate_api_key(app_id)
    except ValueError as exc:
        print(f"Failed to rotate API key: {exc}", file=sys.stderr)
        return 1
    print(f"New API key for application #{app.id} (shown once): {api_key}")
    return 0


def _create_user(database: Database, app_id: int, username: str, email: str) -> int:
    app = database.get_app(app_id)
    if app is None:
        print(f"Application #{app_id} does not exist.", file=sys.stderr)
        return 1

    passwords = _prompt_for_password()
    if passwords is None:
        print("Aborted creating user.", file=sys.stderr)
        return 1

    try:
        record = UserService(database).create(username, email, passwords[0], passwords[1], app)
    except PartnerHubError as exc:
        field = f"{exc.field}: " if exc.field else ""
        print(f"Failed to create user: {field}{exc.message}", file=sys.stderr)
        return 1

    print(f"Created user {record.id}: {record.username} <{record.email_address}>")
    return 0


def _list_users(database: Database, app_id: int) -> int:
    users = database.list_users(app_id)
    if not users:
        print(f"No users are registered for application #{app_id}.")
        return 0

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<36}  {'Username':<24}  {'Email':<32}  Created")
    print("-" * 110)
    for user in users:
        created = user.created_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{user.id:<36}  {user.username:<24}  {user.email_address:<32}  {created}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    args = _parse_args(argv)
    settings = load_settings(Path(args.config) if args.config else None)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s [%(levelname)s] %(message)s")

    database = _initialise_database(settings)

    if args.command == "serve":
        _serve(
            database=database,
            host=args.host or settings.host,
            port=args.port or settings.port,
            log_level=settings.log_level,
        )
        return 0
    if args.command == "init-db":
        print("Database initialisation complete.")
        return 0
    if args.command == "create-app":
        return _create_app(database, args.name, args.permissions)
    if args.command == "rotate-key":
        return _rotate_key(database, args.app_id)
    if args.command == "create-user":
        return _create_user(database, args.app_id, args.username, args.email)
    if args.command == "list-users":
        return _list_users(database, args.app_id)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
