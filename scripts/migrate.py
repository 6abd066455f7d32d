"""Apply, roll back or create schema migrations for the scheduling database."""

import sys

from alembic import command
from alembic.config import Config

USAGE = "Usage: python scripts/migrate.py [upgrade [rev] | downgrade <rev> | create <message>]"


def _config() -> Config:
    return Config("alembic.ini")


def upgrade(revision: str = "head") -> None:
    """Upgrade the schema, to the latest revision by default."""
    try:
        print(f"Upgrading schema to {revision}...")
        command.upgrade(_config(), revision)
        print("✓ Schema is up to date")
    except Exception as e:
        print(f"✗ Upgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def downgrade(revision: str) -> None:
    """Roll the schema back to ``revision``."""
    try:
        print(f"Downgrading schema to {revision}...")
        command.downgrade(_config(), revision)
        print("✓ Downgrade completed")
    except Exception as e:
        print(f"✗ Downgrade failed: {e}", file=sys.stderr)
        sys.exit(1)


def create_migration(message: str) -> None:
    """Autogenerate a revision from the table definitions in app.models."""
    try:
        print(f"Creating migration: {message}")
        command.revision(_config(), message=message, autogenerate=True)
        print("✓ Migration created")
    except Exception as e:
        print(f"✗ Migration creation failed: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    args = sys.argv[1:]
    if not args:
        upgrade()
    elif args[0] == "upgrade":
        upgrade(args[1] if len(args) > 1 else "head")
    elif args[0] == "downgrade" and len(args) > 1:
        downgrade(args[1])
    elif args[0] == "create" and len(args) > 1:
        create_migration(" ".join(args[1:]))
    else:
        print(USAGE)
        sys.exit(2)
