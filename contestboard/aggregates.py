"""
Cache-assisted loaders for the derived values every view needs.
"""

import logging
from typing import List

from .cache import AggregateCache, CacheKind, TeamTaskKey
from .database import StoreSession
from .errors import UserNotFound
from .models import Subtask, Team, User
from .scoring import team_task_score

logger = logging.getLogger(__name__)


class Aggregates:
    """Reads through the aggregate cache, recomputing from the store on miss."""

    def __init__(self, cache: AggregateCache) -> None:
        self.cache = cache

    async def subtasks(
        self,
        store: StoreSession,
        task_id: int,
    ) -> List[Subtask]:
        cached = self.cache.get(CacheKind.SUBTASKS, task_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(CacheKind.SUBTASKS, task_id)
        subtasks = await store.select_subtasks_by_task(task_id)
        self.cache.fill(CacheKind.SUBTASKS, task_id, subtasks, generation)
        return subtasks

    async def subtask_max_score(
        self,
        store: StoreSession,
        subtask_id: int,
    ) -> int:
        cached = self.cache.get(CacheKind.SUBTASK_MAX_SCORE, subtask_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(CacheKind.SUBTASK_MAX_SCORE, subtask_id)
        max_score = await store.select_answer_max_score_by_subtask(subtask_id)
        self.cache.fill(CacheKind.SUBTASK_MAX_SCORE, subtask_id, max_score, generation)
        return max_score

    async def task_max_score(
        self,
        store: StoreSession,
        task_id: int,
    ) -> int:
        """Sum of the max score of every subtask of a task."""
        total = 0
        for subtask in await self.subtasks(store, task_id):
            total += await self.subtask_max_score(store, subtask.id)
        return total

    async def user(
        self,
        store: StoreSession,
        user_id: int,
    ) -> User:
        cached = self.cache.get(CacheKind.USER, user_id)
        if cached is not None:
            return cached

        generation = self.cache.generation(CacheKind.USER, user_id)
        user = await store.get_user_by_id(user_id)
        if user is None:
            raise UserNotFound(f"id={user_id}")
        self.cache.fill(CacheKind.USER, user_id, user, generation)
        return user

    async def team_task_score(
        self,
        store: StoreSession,
        team: Team,
        task_id: int,
    ) -> int:
        """
        Get a team's score on a task: the best submission per subtask, summed.

        @param store: Open store session
        @param team: Team to score
        @param task_id: Task to score
        @return: Team score for the task
        """
        key = TeamTaskKey(team.id, task_id)
        cached = self.cache.get(CacheKind.TEAM_TASK_SCORE, key)
        if cached is not None:
            return cached

        generation = self.cache.generation(CacheKind.TEAM_TASK_SCORE, key)
        rows = await store.select_submission_scores(task_id, team.member_ids)
        score = team_task_score(rows)
        self.cache.fill(CacheKind.TEAM_TASK_SCORE, key, score, generation)
        return score

    async def team_task_submitted(
        self,
        store: StoreSession,
        team: Team,
        task_id: int,
    ) -> bool:
        key = TeamTaskKey(team.id, task_id)
        cached = self.cache.get(CacheKind.TEAM_TASK_SUBMITTED, key)
        if cached is not None:
            return cached

        generation = self.cache.generation(CacheKind.TEAM_TASK_SUBMITTED, key)
        submitted = await store.has_submissions(task_id, team.member_ids)
        self.cache.fill(CacheKind.TEAM_TASK_SUBMITTED, key, submitted, generation)
        return submitted

    def record_submission(
        self,
        team_id: int,
        task_id: int,
        matched: bool,
    ) -> None:
        """
        Update the cache after a submission has been committed.

        The has-submitted flag is set whatever the outcome; the score entry
        is dropped when the submission matched an answer.

        @param team_id: Submitting team
        @param task_id: Task submitted to
        @param matched: Whether the submission matched an answer
        """
        key = TeamTaskKey(team_id, task_id)
        self.cache.put(CacheKind.TEAM_TASK_SUBMITTED, key, True)
        if matched:
            self.cache.invalidate(CacheKind.TEAM_TASK_SCORE, key)
            logger.debug("Invalidated score of team %s on task %s", team_id, task_id)
