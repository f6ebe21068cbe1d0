import argparse
import getpass
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from partnerhub.database import Database, resolve_database_path
from partnerhub.errors import PartnerHubError
from partnerhub.users import UserService


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a remote user for a partner application")
    parser.add_argument("app_id", type=int, help="Identifier of the owning application")
    parser.add_argument("username", help="Username, unique within the application")
    parser.add_argument("email", help="Email address, unique within the application")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to PARTNERHUB_DB_PATH or data/partnerhub.sqlite3)",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()

    db_env = args.db_path or os.getenv("PARTNERHUB_DB_PATH")
    database = Database(resolve_database_path(db_env))
    database.initialize()

    app = database.get_app(args.app_id)
    if app is None:
        print(f"Error: application #{args.app_id} does not exist", file=sys.stderr)
        return 1

    password = getpass.getpass("Password: ")
    confirm = getpass.getpass("Confirm password: ")

    try:
        record = UserService(database).create(args.username, args.email, password, confirm, app)
    except PartnerHubError as exc:  # validation failures, duplicates
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1

    print(f"Created user {record.id}: {record.username} <{record.email_address}> for {app.name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
