"""
Apply database migrations.

Runs Alembic against the database configured by DATABASE_DSN. Schema changes
are never applied by the application itself.

Usage:
    python scripts/migrate.py                 # upgrade to head
    python scripts/migrate.py upgrade 001
    python scripts/migrate.py downgrade base
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from dotenv import load_dotenv

load_dotenv()

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext

from app.db.session import engine


def current_revision():
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


if __name__ == "__main__":
    action = sys.argv[1] if len(sys.argv) > 1 else "upgrade"
    target = sys.argv[2] if len(sys.argv) > 2 else "head"
    if action not in ("upgrade", "downgrade"):
        print(f"Unknown action: {action}")
        sys.exit(2)

    config = Config(str(project_root / "alembic.ini"))
    config.set_main_option("script_location", str(project_root / "alembic"))

    print(f"Database revision before: {current_revision() or '<empty>'}")
    try:
        getattr(command, action)(config, target)
    except Exception as e:
        print(f"ERROR: Migration failed: {e}")
        sys.exit(1)
    print(f"Database revision after: {current_revision() or '<empty>'}")
