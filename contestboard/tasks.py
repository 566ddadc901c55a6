"""
Task list and task detail views.
"""

from typing import List, Optional

from .aggregates import Aggregates
from .database import DatabaseManager, StoreSession
from .errors import TaskNotFound
from .models import SubtaskDetail, TaskAbstract, TaskDetail, Team
from .submissions import resolve_caller


class TaskViewBuilder:
    """Builds task views, adding the caller's team progress when known."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        aggregates: Aggregates,
    ) -> None:
        self.db = db_manager
        self.aggregates = aggregates

    async def _caller_team(
        self,
        store: StoreSession,
        caller_name: Optional[str],
    ) -> Optional[Team]:
        if not caller_name:
            return None
        caller = await resolve_caller(store, caller_name)
        return await store.get_team_by_member_user_id(caller.id)

    async def list_task_views(
        self,
        caller_name: Optional[str] = None,
    ) -> List[TaskAbstract]:
        """
        List every task with its max score.

        @param caller_name: Authenticated caller, if any
        @return: Task abstracts ordered by task name
        """
        views = []
        async with self.db.session() as store:
            team = await self._caller_team(store, caller_name)

            for task in await store.select_tasks():
                view = TaskAbstract(
                    name=task.name,
                    display_name=task.display_name,
                    max_score=await self.aggregates.task_max_score(store, task.id),
                    submission_limit=task.submission_limit,
                )
                if team is not None:
                    view.submission_count = await store.count_submissions(
                        task.id, team.member_ids
                    )
                    view.score = await self.aggregates.team_task_score(store, team, task.id)
                views.append(view)

        return views

    async def build_task_view(
        self,
        task_name: str,
        caller_name: Optional[str] = None,
    ) -> TaskDetail:
        """
        Describe one task and its subtasks.

        With a caller on a team, each subtask carries the team's best score
        on it and the task carries their sum and the team's submission count.

        @param task_name: Task to describe
        @param caller_name: Authenticated caller, if any
        @return: Task detail
        """
        async with self.db.session() as store:
            task = await store.get_task_by_name(task_name)
            if task is None:
                raise TaskNotFound(task_name)

            detail = TaskDetail(
                name=task.name,
                display_name=task.display_name,
                statement=task.statement,
                submission_limit=task.submission_limit,
            )

            subtasks = await self.aggregates.subtasks(store, task.id)
            for subtask in subtasks:
                max_score = await self.aggregates.subtask_max_score(store, subtask.id)
                detail.subtasks.append(
                    SubtaskDetail(
                        name=subtask.name,
                        display_name=subtask.display_name,
                        statement=subtask.statement,
                        max_score=max_score,
                    )
                )
                detail.max_score += max_score

            team = await self._caller_team(store, caller_name)
            if team is not None:
                detail.submission_count = await store.count_submissions(
                    task.id, team.member_ids
                )
                best = await store.select_max_submission_score_per_subtask(
                    task.id, team.member_ids
                )
                for subtask, subtask_detail in zip(subtasks, detail.subtasks):
                    subtask_detail.score = best.get(subtask.id, 0)
                    detail.score += subtask_detail.score

        return detail
