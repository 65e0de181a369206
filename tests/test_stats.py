# tests/test_stats.py


def _stats(client, user):
    resp = client.get("/api/tasks/stats/overview", headers=user["headers"])
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_stats_with_no_tasks(client, alice):
    assert _stats(client, alice) == {
        "overview": {"total": 0, "completed": 0, "pending": 0, "overdue": 0, "completionRate": 0},
        "byCategory": [],
        "byPriority": [],
    }


def test_stats_counts_and_breakdowns(client, alice, bob, make_task):
    late = make_task(alice, title="late", category="work", priority="high", dueDate="2001-01-01T00:00:00Z")
    late_done = make_task(alice, title="late but done", category="work", dueDate="2001-01-01T00:00:00Z")
    make_task(alice, title="future", category="health", priority="high", dueDate="2099-01-01T00:00:00Z")
    make_task(alice, title="no date")
    make_task(bob, title="not mine", dueDate="2001-01-01T00:00:00Z")

    client.put(f"/api/tasks/{late_done['id']}", json={"completed": True}, headers=alice["headers"])

    stats = _stats(client, alice)
    assert stats["overview"] == {
        "total": 4,
        "completed": 1,
        "pending": 3,
        "overdue": 1,
        "completionRate": 25,
    }
    assert {row["_id"]: row["count"] for row in stats["byCategory"]} == {"work": 2, "health": 1, "personal": 1}
    assert {row["_id"]: row["count"] for row in stats["byPriority"]} == {"high": 2, "medium": 2}
    assert stats["byCategory"][0] == {"_id": "work", "count": 2}

    client.put(f"/api/tasks/{late['id']}", json={"completed": True}, headers=alice["headers"])
    assert _stats(client, alice)["overview"]["overdue"] == 0


def test_completion_rate_is_rounded(client, alice, make_task):
    tasks = [make_task(alice, title=f"t{i}") for i in range(3)]
    for task in tasks[:2]:
        client.put(f"/api/tasks/{task['id']}", json={"completed": True}, headers=alice["headers"])

    assert _stats(client, alice)["overview"]["completionRate"] == 67


def test_stats_route_is_not_treated_as_task_id(client, alice):
    resp = client.get("/api/tasks/stats/overview", headers=alice["headers"])
    assert resp.status_code == 200
    assert "overview" in resp.json()


def test_completion_rate_rounds_half_up(client, alice, make_task):
    tasks = [make_task(alice, title=f"t{i}") for i in range(8)]
    client.put(f"/api/tasks/{tasks[0]['id']}", json={"completed": True}, headers=alice["headers"])

    assert _stats(client, alice)["overview"]["completionRate"] == 13
