"""
Shared fixtures: a temporary contest database seeded with a small contest.

Contest layout:
    task_a (limit 3): a1 {"42": 100, "7": 50}, a2 {"x": 30}     max 130
    task_b (limit 5): b1 {"foo": 20}, b2 {"bar": 40, "baz": 10}  max 60
    task_c (limit 2): c1 with no answers                          max 0

    alpha: alice (leader), bob
    beta:  carol (leader)
    gamma: dave (leader), erin, frank
    admin and loner belong to no team.
"""

import aiosqlite
import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from contestboard.config import ContestConfig
from contestboard.scoreboard import ContestSystem

USERS = [
    (1, "alice", "Alice"),
    (2, "bob", "Bob"),
    (3, "carol", "Carol"),
    (4, "dave", "Dave"),
    (5, "erin", "Erin"),
    (6, "frank", "Frank"),
    (7, "admin", "Administrator"),
    (8, "loner", "Loner"),
]

TEAMS = [
    (1, "alpha", "Team Alpha", 1, 2, 0),
    (2, "beta", "Team Beta", 3, 0, 0),
    (3, "gamma", "Team Gamma", 4, 5, 6),
]

TASKS = [
    (1, "task_a", "Task A", "Find the answers.", 3),
    (2, "task_b", "Task B", "More answers.", 5),
    (3, "task_c", "Task C", "Unanswerable.", 2),
]

SUBTASKS = [
    (1, 1, "a1", "A-1", "first part"),
    (2, 1, "a2", "A-2", "second part"),
    (3, 2, "b1", "B-1", ""),
    (4, 2, "b2", "B-2", ""),
    (5, 3, "c1", "C-1", ""),
]

ANSWERS = [
    (1, 1, 1, "42", 100),
    (2, 1, 1, "7", 50),
    (3, 1, 2, "x", 30),
    (4, 2, 3, "foo", 20),
    (5, 2, 4, "bar", 40),
    (6, 2, 4, "baz", 10),
]

BASE_TIMESTAMP = 1700000000


async def seed_contest(db_path: str) -> None:
    async with aiosqlite.connect(db_path) as db:
        await db.executemany(
            "INSERT INTO users (id, name, display_name) VALUES (?, ?, ?)", USERS
        )
        await db.executemany(
            "INSERT INTO teams (id, name, display_name, leader_id, member1_id, member2_id) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            TEAMS,
        )
        await db.executemany(
            "INSERT INTO tasks (id, name, display_name, statement, submission_limit) "
            "VALUES (?, ?, ?, ?, ?)",
            TASKS,
        )
        await db.executemany(
            "INSERT INTO subtasks (id, task_id, name, display_name, statement) "
            "VALUES (?, ?, ?, ?, ?)",
            SUBTASKS,
        )
        await db.executemany(
            "INSERT INTO answers (id, task_id, subtask_id, answer, score) "
            "VALUES (?, ?, ?, ?, ?)",
            ANSWERS,
        )
        await db.commit()


@pytest.fixture
def config(tmp_path):
    return ContestConfig(str(tmp_path / "contest_config.json"))


@pytest_asyncio.fixture
async def system(tmp_path, config):
    contest = ContestSystem(db_path=str(tmp_path / "contest.db"), config=config)
    await contest.init_db()
    await seed_contest(contest.db_path)
    return contest


@pytest.fixture
def count_submissions(system):
    async def count(task_id=None):
        async with aiosqlite.connect(system.db_path) as db:
            if task_id is None:
                cursor = await db.execute("SELECT COUNT(*) FROM submissions")
            else:
                cursor = await db.execute(
                    "SELECT COUNT(*) FROM submissions WHERE task_id = ?", (task_id,)
                )
            row = await cursor.fetchone()
            return row[0]

    return count


@pytest_asyncio.fixture
async def client(system):
    test_client = TestClient(TestServer(system.create_app()))
    await test_client.start_server()
    yield test_client
    await test_client.close()
