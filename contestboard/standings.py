"""
Leaderboard construction.
"""

import logging
from typing import Any

from .aggregates import Aggregates
from .database import DatabaseManager
from .models import NULL_USER_ID, Standings, TaskAbstract, TaskScoring, TeamStandings
from .scoring import assign_ranks

logger = logging.getLogger(__name__)


class StandingsBuilder:
    """Builds the ranked team leaderboard from cached aggregates."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        aggregates: Aggregates,
        config: Any,
    ) -> None:
        self.db = db_manager
        self.aggregates = aggregates
        self.config = config

    async def build_standings(self) -> Standings:
        """
        Compute every team's per-task scores and rank the teams.

        Either the whole leaderboard is computed or the call fails.

        @return: Task maxima plus teams in leaderboard order
        """
        standings = Standings()
        show_members = self.config.get("ui", "show_member_names")

        async with self.db.session() as store:
            tasks = await store.select_tasks()
            for task in tasks:
                standings.tasks_data.append(
                    TaskAbstract(
                        name=task.name,
                        display_name=task.display_name,
                        max_score=await self.aggregates.task_max_score(store, task.id),
                    )
                )

            entries = []
            for team in await store.select_teams():
                leader = await self.aggregates.user(store, team.leader_id)
                entry = TeamStandings(
                    team_name=team.name,
                    team_display_name=team.display_name,
                    leader_name=leader.name,
                    leader_display_name=leader.display_name,
                )

                if show_members:
                    for slot, member_id in (
                        ("member1", team.member1_id),
                        ("member2", team.member2_id),
                    ):
                        if member_id == NULL_USER_ID:
                            continue
                        member = await self.aggregates.user(store, member_id)
                        setattr(entry, f"{slot}_name", member.name)
                        setattr(entry, f"{slot}_display_name", member.display_name)

                for task in tasks:
                    scoring = TaskScoring(
                        task_name=task.name,
                        has_submitted=await self.aggregates.team_task_submitted(
                            store, team, task.id
                        ),
                        score=await self.aggregates.team_task_score(store, team, task.id),
                    )
                    entry.scoring_data.append(scoring)
                    entry.total_score += scoring.score

                entries.append(entry)

        standings.standings_data = assign_ranks(entries)
        logger.debug(
            "Built standings for %d teams over %d tasks", len(entries), len(tasks)
        )
        return standings
