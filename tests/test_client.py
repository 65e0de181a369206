# tests/test_client.py

import pytest

from taskhub.client import ApiError, NotAuthenticated, TaskhubClient


@pytest.fixture()
def api(client):
    # TestClient is an httpx.Client, so it can stand in for the network.
    return TaskhubClient(http=client)


def test_task_calls_need_a_session(api):
    assert api.session.is_authenticated is False
    with pytest.raises(NotAuthenticated):
        api.list_tasks()


def test_session_lifecycle(api):
    user = api.register("Ada", "Lovelace", "ada@example.com", "secret123")
    assert api.session.is_authenticated
    assert api.session.user["email"] == user["email"]
    assert api.validate() is True

    api.logout()
    assert api.session.token is None
    assert api.validate() is False

    api.login("ada@example.com", "secret123")
    assert api.session.is_authenticated


def test_validate_clears_rejected_token(api):
    api.register("Ada", "Lovelace", "ada@example.com", "secret123")
    api.session.token = "tampered"

    assert api.validate() is False
    assert api.session.is_authenticated is False
    assert api.session.user == {}


def test_task_round_trip_through_client(api):
    api.register("Ada", "Lovelace", "ada@example.com", "secret123")

    task = api.create_task("Buy milk", category="personal")
    assert task["priority"] == "medium"

    api.update_task(task["id"], completed=True)
    listed = api.list_tasks(completed=True)
    assert [t["id"] for t in listed["tasks"]] == [task["id"]]

    api.add_note(task["id"], "2 litres")
    assert api.get_task(task["id"])["notes"][0]["content"] == "2 litres"
    assert api.stats()["overview"]["completionRate"] == 100

    assert api.delete_task(task["id"]) == {"id": task["id"], "title": "Buy milk"}
    with pytest.raises(ApiError) as excinfo:
        api.get_task(task["id"])
    assert excinfo.value.status_code == 404
    assert excinfo.value.detail == "Task not found"


def test_attachment_through_client(api):
    api.register("Ada", "Lovelace", "ada@example.com", "secret123")
    task = api.create_task("File taxes")

    updated = api.add_attachment(task["id"], "receipt.pdf", "https://files.example.com/receipt.pdf")
    assert updated["attachments"][0]["filename"] == "receipt.pdf"
    assert api.get_task(task["id"])["attachments"][0]["url"] == "https://files.example.com/receipt.pdf"


def test_profile_and_settings_refresh_session_user(api):
    api.register("Ada", "Lovelace", "ada@example.com", "secret123")

    user = api.update_profile(jobTitle="Analyst", company="Engines Ltd")
    assert user["jobTitle"] == "Analyst"
    assert api.session.user["company"] == "Engines Ltd"

    user = api.update_settings(theme="dark", language="fr")
    assert user["theme"] == "dark"
    assert api.session.user["language"] == "fr"
    assert api.session.user["jobTitle"] == "Analyst"

    with pytest.raises(ApiError) as excinfo:
        api.update_settings(theme="sepia")
    assert excinfo.value.status_code == 422
    assert api.session.user["theme"] == "dark"
