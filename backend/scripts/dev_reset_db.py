"""
Drop and rebuild the ledger schema for local development.

    python backend/scripts/dev_reset_db.py --yes [--url URL] [--seed]

Tables are dropped through the ORM metadata (so any SQLAlchemy backend works),
the alembic_version row is cleared, and migrations are replayed to head.
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

REPO_ROOT = Path(__file__).resolve().parents[2]
ALEMBIC_INI = REPO_ROOT / "alembic.ini"


def _resolve_database_url(cli_url: str | None) -> str:
    url = cli_url or os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL")
    if not url:
        url = Config(str(ALEMBIC_INI)).get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("No DATABASE_URL, --url or sqlalchemy.url configured.")
    return url


def _drop_schema(database_url: str) -> None:
    # db.py builds its engine at import time from DATABASE_URL
    os.environ["DATABASE_URL"] = database_url
    from backend.app.db import Base
    import backend.app.models  # noqa: F401

    engine = create_engine(database_url, future=True)
    try:
        Base.metadata.drop_all(bind=engine)
        with engine.begin() as conn:
            conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
    finally:
        engine.dispose()


def _upgrade_to_head(database_url: str) -> None:
    config = Config(str(ALEMBIC_INI))
    config.set_main_option("sqlalchemy.url", database_url)
    command.upgrade(config, "head")


def _seed_demo_owner(database_url: str) -> str:
    from backend.app.seed.run import seed_demo_owner

    engine = create_engine(database_url, future=True)
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = Session()
    try:
        return seed_demo_owner(session).email
    finally:
        session.close()
        engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Reset the development ledger database.")
    parser.add_argument("--url", help="Override the database URL.")
    parser.add_argument("--yes", action="store_true", help="Confirm destructive reset.")
    parser.add_argument("--seed", action="store_true", help="Seed a demo owner with sample obligations.")
    args = parser.parse_args()

    if not args.yes:
        print("Refusing to reset database without --yes.")
        return 1

    sys.path.insert(0, str(REPO_ROOT))
    database_url = _resolve_database_url(args.url)

    _drop_schema(database_url)
    _upgrade_to_head(database_url)
    print("Schema rebuilt at alembic head.")

    if args.seed:
        print(f"Seeded demo owner: {_seed_demo_owner(database_url)}")

    print(f"Database URL: {make_url(database_url).render_as_string(hide_password=True)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
