"""CI helper to validate Alembic migrations on a clean database.

Runs upgrade to head, downgrade to base and upgrade again so both directions stay in sync.
Defaults to a throwaway SQLite file; set ALEMBIC_DATABASE_URL to check against Postgres.

Usage:
    python scripts/check_migrations.py
"""

import os
from pathlib import Path

from alembic.config import main as alembic_main


def main() -> None:
    temp_db = Path(".alembic_ci.db")
    os.environ.setdefault("APP_ENV", "test")

    db_url = os.getenv("ALEMBIC_DATABASE_URL") or f"sqlite:///{temp_db}"
    os.environ["ALEMBIC_DATABASE_URL"] = db_url

    # Ensure a clean slate for file-based SQLite
    if temp_db.exists():
        temp_db.unlink()

    try:
        alembic_main(argv=["upgrade", "head"])
        alembic_main(argv=["downgrade", "base"])
        alembic_main(argv=["upgrade", "head"])
    finally:
        if temp_db.exists():
            temp_db.unlink()


if __name__ == "__main__":
    main()
