# tests/conftest.py

import asyncio
import os
import tempfile
from pathlib import Path

# Settings are read at import time; point them at a throwaway database first.
_STARTUP_DB = Path(tempfile.mkdtemp(prefix="taskhub-tests-")) / "startup.sqlite3"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_STARTUP_DB}"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from taskhub.core import security
from taskhub.core.database import Base, get_db
from taskhub.main import app

from .helpers import bearer, register_user

# Cheap hashes keep the suite fast; the algorithm is unchanged.
security.BCRYPT_ROUNDS = 4


@pytest.fixture()
def session_factory(tmp_path: Path):
    """
    Session factory over a fresh SQLite file per test.

    NullPool means every session opens its own aiosqlite connection, so the
    engine can be prepared with asyncio.run() and then used from the
    TestClient's event loop.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskhub.sqlite3'}", poolclass=NullPool)

    async def create_tables():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(create_tables())
    try:
        yield sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    finally:
        asyncio.run(engine.dispose())


@pytest.fixture()
def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def alice(client):
    data = register_user(client, email="alice@example.com", first="Alice", last="Smith")
    return {"id": data["user"]["id"], "headers": bearer(data["token"])}


@pytest.fixture()
def bob(client):
    data = register_user(client, email="bob@example.com", first="Bob", last="Jones")
    return {"id": data["user"]["id"], "headers": bearer(data["token"])}


@pytest.fixture()
def make_task(client):
    def _make(user, **fields):
        body = {"title": "Task"}
        body.update(fields)
        resp = client.post("/api/tasks", json=body, headers=user["headers"])
        assert resp.status_code == 201, resp.text
        return resp.json()["task"]

    return _make
