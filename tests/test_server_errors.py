# tests/test_server_errors.py

import logging

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from taskhub.core.database import get_db
from taskhub.main import app

SECRET_DETAIL = "disk I/O error at /var/lib/taskhub/data.sqlite3"


def _broken(*args, **kwargs):
    raise OperationalError("SELECT count(tasks.id) FROM tasks", {}, Exception(SECRET_DETAIL))


def _override_with(session_factory, **broken_methods):
    """Real session (so auth still works) with some methods failing like a dead database."""

    async def override_get_db():
        async with session_factory() as session:
            for name in broken_methods:
                setattr(session, name, broken_methods[name])
            yield session

    app.dependency_overrides[get_db] = override_get_db


def _assert_logged_not_leaked(resp, caplog):
    assert SECRET_DETAIL not in resp.text
    assert SECRET_DETAIL in caplog.text
    assert any(r.levelno == logging.ERROR and r.name.startswith("taskhub.") for r in caplog.records)


def test_list_store_failure_is_generic_500(client, session_factory, alice, caplog):
    _override_with(session_factory, scalar=_broken)

    with caplog.at_level(logging.ERROR):
        resp = client.get("/api/tasks", headers=alice["headers"])

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Server error fetching tasks"}
    _assert_logged_not_leaked(resp, caplog)


def test_stats_store_failure_is_generic_500(client, session_factory, alice, caplog):
    _override_with(session_factory, scalar=_broken)

    with caplog.at_level(logging.ERROR):
        resp = client.get("/api/tasks/stats/overview", headers=alice["headers"])

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Server error fetching statistics"}
    _assert_logged_not_leaked(resp, caplog)


async def _broken_commit():
    _broken()


def test_create_and_delete_store_failures(client, session_factory, alice, make_task, caplog):
    task = make_task(alice, title="keep me")
    _override_with(session_factory, commit=_broken_commit)

    with caplog.at_level(logging.ERROR):
        resp = client.post("/api/tasks", json={"title": "lost"}, headers=alice["headers"])
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Server error creating task"}

        resp = client.delete(f"/api/tasks/{task['id']}", headers=alice["headers"])
        assert resp.status_code == 500
        assert resp.json() == {"detail": "Server error deleting task"}
    _assert_logged_not_leaked(resp, caplog)


def test_unhandled_error_uses_catch_all_handler(client, session_factory, alice, caplog):
    async def exploding_execute(*args, **kwargs):
        raise RuntimeError(SECRET_DETAIL)

    _override_with(session_factory, execute=exploding_execute)

    with TestClient(app, raise_server_exceptions=False) as raw_client, caplog.at_level(logging.ERROR):
        resp = raw_client.get("/api/tasks", headers=alice["headers"])

    assert resp.status_code == 500
    assert resp.json() == {"detail": "Internal server error"}
    _assert_logged_not_leaked(resp, caplog)
