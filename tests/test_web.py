import pytest

from contestboard.errors import StoreFailure

from .conftest import BASE_TIMESTAMP

ALICE = {"X-Contest-User": "alice"}
ADMIN = {"X-Contest-User": "admin"}


async def _submit(client, headers, task_name, answer, timestamp=BASE_TIMESTAMP):
    return await client.post(
        "/api/submit",
        json={"task_name": task_name, "answer": answer, "timestamp": timestamp},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_submit_and_read_back(client):
    resp = await _submit(client, ALICE, "task_a", "42")
    assert resp.status == 201
    assert await resp.json() == {
        "is_scored": True,
        "score": 100,
        "remaining_submissions": 2,
        "subtask_name": "a1",
        "subtask_display_name": "A-1",
        "subtask_max_score": 100,
    }

    resp = await client.get("/api/standings")
    assert resp.status == 200
    body = await resp.json()
    assert body["tasks_data"][0] == {"name": "task_a", "display_name": "Task A", "max_score": 130}
    leader = body["standings_data"][0]
    assert (leader["team_name"], leader["rank"], leader["total_score"]) == ("alpha", 1, 100)
    assert leader["scoring_data"][0] == {"task_name": "task_a", "has_submitted": True, "score": 100}

    resp = await client.get("/api/tasks", headers=ALICE)
    tasks = await resp.json()
    assert tasks[0] == {
        "name": "task_a",
        "display_name": "Task A",
        "max_score": 130,
        "score": 100,
        "submission_limit": 3,
        "submission_count": 1,
    }

    resp = await client.get("/api/tasks/task_a", headers=ALICE)
    detail = await resp.json()
    assert detail["score"] == 100
    assert detail["submission_count"] == 1
    assert [s["score"] for s in detail["subtasks"]] == [100, 0]


@pytest.mark.asyncio
async def test_submit_requires_identity(client):
    resp = await _submit(client, {}, "task_a", "42")
    assert resp.status == 401


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"task_name": "task_a", "answer": "42"},
        {"task_name": "task_a", "answer": 42, "timestamp": BASE_TIMESTAMP},
        {"task_name": "task_a", "answer": "42", "timestamp": "now"},
        {"task_name": "task_a", "answer": "42", "timestamp": True},
        {"task_name": "task_a", "answer": "42", "timestamp": 10 ** 20},
        {"task_name": "task_a", "answer": "42", "timestamp": -(2 ** 63) - 1},
        {"task_name": "task_a", "answer": "\ud800", "timestamp": BASE_TIMESTAMP},
        {"task_name": "task_\udfff", "answer": "42", "timestamp": BASE_TIMESTAMP},
        ["task_a", "42"],
    ],
)
async def test_submit_rejects_malformed_body(client, count_submissions, body):
    resp = await client.post("/api/submit", json=body, headers=ALICE)
    assert resp.status == 400
    assert "error" in await resp.json()
    assert await count_submissions() == 0


@pytest.mark.asyncio
async def test_submit_accepts_timestamp_at_range_edge(client):
    resp = await _submit(client, ALICE, "task_a", "42", timestamp=2 ** 63 - 1)
    assert resp.status == 201


@pytest.mark.asyncio
async def test_submit_rejects_non_json(client):
    resp = await client.post("/api/submit", data="not json", headers=ALICE)
    assert resp.status == 400
    assert (await resp.json())["error"] == "failed to decode the request body as json"


@pytest.mark.asyncio
async def test_submit_errors(client, count_submissions):
    resp = await _submit(client, {"X-Contest-User": "loner"}, "task_a", "42")
    assert resp.status == 400
    assert (await resp.json())["error"] == "you have not joined team"

    resp = await _submit(client, ALICE, "task_z", "42")
    assert resp.status == 404

    for k in range(2):
        resp = await _submit(client, ALICE, "task_c", f"guess-{k}")
        assert resp.status == 201
    resp = await _submit(client, ALICE, "task_c", "one more")
    assert resp.status == 400
    assert (await resp.json())["error"] == "submission limit exceeded"
    assert await count_submissions(3) == 2


@pytest.mark.asyncio
async def test_task_detail_not_found(client):
    resp = await client.get("/api/tasks/task_z")
    assert resp.status == 404


@pytest.mark.asyncio
async def test_submissions_endpoint(client):
    await _submit(client, ALICE, "task_a", "42")

    resp = await client.get("/api/submissions", params={"page": "1"}, headers=ALICE)
    assert resp.status == 200
    body = await resp.json()
    assert body["submission_count"] == 1
    assert body["submissions"][0]["answer"] == "42"

    resp = await client.get("/api/submissions", params={"page": "0"}, headers=ALICE)
    assert resp.status == 400

    resp = await client.get("/api/submissions")
    assert resp.status == 401


@pytest.mark.asyncio
async def test_initialize_is_admin_only(client, system):
    await client.get("/api/standings")
    assert any(system.cache.stats().values())

    resp = await client.post("/api/initialize", headers=ALICE)
    assert resp.status == 403

    resp = await client.post("/api/initialize", headers=ADMIN)
    assert resp.status == 200
    assert not any(system.cache.stats().values())


@pytest.mark.asyncio
async def test_store_failure_is_generic_500(client, system, monkeypatch):
    async def broken():
        raise StoreFailure("no such table: tasks")

    monkeypatch.setattr(system.standings, "build_standings", broken)

    resp = await client.get("/api/standings")
    assert resp.status == 500
    assert await resp.json() == {"error": "internal server error"}


@pytest.mark.asyncio
async def test_html_pages(client):
    await _submit(client, ALICE, "task_a", "42")

    resp = await client.get("/")
    assert resp.status == 200
    html = await resp.text()
    assert "Team Alpha" in html
    assert "Task A" in html

    resp = await client.get("/tasks", headers=ALICE)
    assert resp.status == 200
    assert "100 / 130" in await resp.text()
