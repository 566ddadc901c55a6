import pytest

from .conftest import BASE_TIMESTAMP


async def _submit_all(system, submissions):
    for offset, (user, task, answer) in enumerate(submissions):
        await system.processor.submit(user, task, answer, BASE_TIMESTAMP + offset)


@pytest.mark.asyncio
async def test_task_max_scores(system):
    standings = await system.standings.build_standings()

    assert [(t.name, t.max_score) for t in standings.tasks_data] == [
        ("task_a", 130),
        ("task_b", 60),
        ("task_c", 0),
    ]


@pytest.mark.asyncio
async def test_empty_contest_all_teams_share_first_place(system):
    standings = await system.standings.build_standings()

    assert [(t.team_name, t.rank, t.total_score) for t in standings.standings_data] == [
        ("alpha", 1, 0),
        ("beta", 1, 0),
        ("gamma", 1, 0),
    ]


@pytest.mark.asyncio
async def test_totals_and_ranking(system):
    await _submit_all(
        system,
        [
            ("alice", "task_a", "42"),
            ("bob", "task_b", "foo"),
            ("carol", "task_a", "x"),
            ("carol", "task_b", "bar"),
            ("carol", "task_b", "baz"),
            ("dave", "task_a", "7"),
            ("erin", "task_a", "nope"),
        ],
    )

    standings = await system.standings.build_standings()
    summary = [(t.team_name, t.rank, t.total_score) for t in standings.standings_data]

    assert summary == [
        ("alpha", 1, 120),
        ("beta", 2, 70),
        ("gamma", 3, 50),
    ]

    alpha = standings.standings_data[0]
    assert [(s.task_name, s.has_submitted, s.score) for s in alpha.scoring_data] == [
        ("task_a", True, 100),
        ("task_b", True, 20),
        ("task_c", False, 0),
    ]


@pytest.mark.asyncio
async def test_tied_teams_share_rank_and_sort_by_name(system):
    await _submit_all(
        system,
        [
            ("dave", "task_a", "7"),
            ("carol", "task_a", "7"),
            ("alice", "task_b", "foo"),
        ],
    )

    standings = await system.standings.build_standings()

    assert [(t.team_name, t.rank, t.total_score) for t in standings.standings_data] == [
        ("beta", 1, 50),
        ("gamma", 1, 50),
        ("alpha", 3, 20),
    ]


@pytest.mark.asyncio
async def test_score_equals_best_per_subtask_over_members(system):
    await _submit_all(
        system,
        [
            ("dave", "task_a", "7"),
            ("erin", "task_a", "42"),
            ("frank", "task_a", "7"),
            ("frank", "task_b", "baz"),
            ("dave", "task_b", "bar"),
        ],
    )

    standings = await system.standings.build_standings()
    gamma = next(t for t in standings.standings_data if t.team_name == "gamma")

    assert {s.task_name: s.score for s in gamma.scoring_data} == {
        "task_a": 100,
        "task_b": 40,
        "task_c": 0,
    }
    assert gamma.total_score == 140


@pytest.mark.asyncio
async def test_members_listed(system):
    standings = await system.standings.build_standings()
    teams = {t.team_name: t for t in standings.standings_data}

    assert teams["alpha"].leader_name == "alice"
    assert teams["alpha"].member1_name == "bob"
    assert teams["alpha"].member2_name == ""
    assert "member2_name" not in teams["alpha"].to_dict()
    assert teams["gamma"].member2_display_name == "Frank"
    assert teams["beta"].to_dict()["leader_display_name"] == "Carol"


@pytest.mark.asyncio
async def test_member_names_can_be_hidden(system):
    system.config.config["ui"]["show_member_names"] = False

    standings = await system.standings.build_standings()
    alpha = next(t for t in standings.standings_data if t.team_name == "alpha")

    assert alpha.leader_name == "alice"
    assert alpha.member1_name == ""


@pytest.mark.asyncio
async def test_standings_survive_cache_clear(system):
    await _submit_all(system, [("alice", "task_a", "42")])
    before = (await system.standings.build_standings()).to_dict()

    system.initialize()

    assert (await system.standings.build_standings()).to_dict() == before
