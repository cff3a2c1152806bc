import os

# Avant tout import storeroom : l'engine applicatif est créé à l'import
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from storeroom.app.api.deps import get_db
from storeroom.app.core.config import settings
from storeroom.app.db.base import Base
from storeroom.app.db.models import models_v1  # noqa: F401  (enregistre les tables)
from storeroom.services import inventory

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")
ADMIN_TOKEN = "test-admin-token"


def _make_engine(url: str):
    if url.startswith("sqlite"):
        eng = create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)

        @event.listens_for(eng, "connect")
        def _enable_fk(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return eng
    return create_engine(url, pool_pre_ping=True)


@pytest.fixture(scope="function")
def engine():
    """
    Base vierge par test.

    SQLite en mémoire par défaut ; TEST_DATABASE_URL pour viser un vrai
    Postgres (schéma créé puis supprimé à chaque test).
    """
    eng = _make_engine(TEST_DATABASE_URL)
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)
        eng.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_component(db_session):
    def _make(name="Servo", quantity=10, min_stock=0, consumable=False, **kwargs):
        return inventory.create_component(
            db_session,
            name=name,
            quantity=quantity,
            min_stock=min_stock,
            consumable=consumable,
            **kwargs,
        )

    return _make


@pytest.fixture
def client(session_factory, monkeypatch):
    from storeroom.app.main import app

    monkeypatch.setattr(settings, "ADMIN_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr(settings, "SEND_EMAILS", False)

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}
