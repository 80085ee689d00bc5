import os
import pathlib
import sys
import tempfile
from datetime import date

import pytest


REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
sys.path.append(str(REPO_ROOT))


def pytest_configure():
    if os.getenv("DATABASE_URL") or os.getenv("SQLALCHEMY_DATABASE_URL"):
        return
    temp_dir = tempfile.mkdtemp(prefix="provision-ledger-tests-")
    db_path = pathlib.Path(temp_dir) / "pytest.db"
    os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"


@pytest.fixture(scope="session")
def sqlite_engine():
    from backend.app.db import Base, engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def sqlite_session(sqlite_engine):
    from backend.app.db import SessionLocal

    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def api_client(sqlite_engine, sqlite_session):
    from backend.app.db import get_db
    from backend.app.main import app
    from fastapi.testclient import TestClient

    def _get_test_db():
        yield sqlite_session

    app.dependency_overrides[get_db] = _get_test_db
    client = TestClient(app)
    try:
        yield client
    finally:
        app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def owner(sqlite_session):
    import uuid

    from backend.app.models import User

    user = User(email=f"owner-{uuid.uuid4().hex[:10]}@example.com", name="owner")
    sqlite_session.add(user)
    sqlite_session.commit()
    return user


@pytest.fixture()
def make_obligation(sqlite_session, owner):
    from backend.app.models import Obligation

    def _make(**overrides):
        fields = dict(
            owner_id=owner.id,
            counterparty="Padaria Central",
            service_label="Bookkeeping",
            category="recurring",
            kind="revenue",
            amount_cents=100000,
            start_date=date(2024, 1, 1),
            end_date=None,
            periodicity="monthly",
            due_day=None,
            active=True,
        )
        fields.update(overrides)
        row = Obligation(**fields)
        sqlite_session.add(row)
        sqlite_session.commit()
        return row

    return _make
