"""
Submission write path and submission history.
"""

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .aggregates import Aggregates
from .database import DatabaseManager, StoreSession, SubmissionQuery
from .errors import (
    BadRequest,
    LimitExceeded,
    NoTeam,
    TaskNotFound,
    TeamNotFound,
    UserNotFound,
)
from .models import SubmissionDetail, SubmissionPage, SubmitResult, Team, User
from .scoring import ScoringEngine

logger = logging.getLogger(__name__)


async def resolve_caller(
    store: StoreSession,
    user_name: str,
) -> User:
    user = await store.get_user_by_name(user_name)
    if user is None:
        raise UserNotFound(user_name)
    return user


class SubmissionProcessor:
    """Scores and records answer submissions."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        aggregates: Aggregates,
        scoring_engine: ScoringEngine,
    ) -> None:
        self.db = db_manager
        self.aggregates = aggregates
        self.scoring_engine = scoring_engine

    async def submit(
        self,
        user_name: str,
        task_name: str,
        answer: str,
        timestamp: int,
    ) -> SubmitResult:
        """
        Score a submitted answer and record it.

        The limit check, scoring and insert share one write transaction.
        Cache entries are touched only once the commit has succeeded.

        @param user_name: Submitting user
        @param task_name: Task being answered
        @param answer: Raw submitted string
        @param timestamp: Client-supplied submission time, unix seconds
        @return: Submission result
        """
        async with self.db.transaction() as tx:
            user = await resolve_caller(tx, user_name)

            team = await tx.get_team_by_member_user_id(user.id)
            if team is None:
                raise NoTeam(user_name)

            task = await tx.get_task_by_name(task_name)
            if task is None:
                raise TaskNotFound(task_name)

            prior_count = await tx.count_submissions(task.id, team.member_ids)
            if prior_count >= task.submission_limit:
                logger.info(
                    "Rejected submission by %s (team %s) on %s: limit %d reached",
                    user_name,
                    team.name,
                    task_name,
                    task.submission_limit,
                )
                raise LimitExceeded(task_name, task.submission_limit)

            outcome = await self.scoring_engine.score(tx, task, answer)

            await tx.insert_submission(
                task_id=task.id,
                user_id=user.id,
                submitted_at=timestamp,
                answer=answer,
                subtask_id=outcome.subtask_id,
                score=outcome.score,
            )

        self.aggregates.record_submission(team.id, task.id, outcome.matched)

        logger.info(
            "Submission by %s (team %s) on %s: %s, score %d",
            user_name,
            team.name,
            task_name,
            f"matched {outcome.subtask_name}" if outcome.matched else "no match",
            outcome.score,
        )

        return SubmitResult(
            is_scored=outcome.matched,
            score=outcome.score,
            remaining_submissions=task.submission_limit - prior_count - 1,
            subtask_name=outcome.subtask_name,
            subtask_display_name=outcome.subtask_display_name,
            subtask_max_score=outcome.subtask_max_score,
        )


@dataclass(frozen=True)
class SubmissionFilter:
    """Filters a caller may apply to the submission history, by name."""

    task_name: Optional[str] = None
    user_name: Optional[str] = None
    team_name: Optional[str] = None
    text: Optional[str] = None
    subtask_name: Optional[str] = None
    page: int = 1

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "SubmissionFilter":
        """
        Build a filter from query string parameters.

        Empty values mean "not filtered".

        @param query: Query parameters (task_name, user_name, team_name, filter, subtask_name, page)
        @return: Parsed filter
        """
        page = 1
        raw_page = query.get("page")
        if raw_page:
            try:
                page = int(raw_page)
            except ValueError:
                raise BadRequest(f"failed to parse page: {raw_page!r}")
        if page < 1:
            raise BadRequest("page must be positive")

        return cls(
            task_name=query.get("task_name") or None,
            user_name=query.get("user_name") or None,
            team_name=query.get("team_name") or None,
            text=query.get("filter") or None,
            subtask_name=query.get("subtask_name") or None,
            page=page,
        )


class SubmissionHistory:
    """Paginated, filterable view of recorded submissions."""

    def __init__(
        self,
        db_manager: DatabaseManager,
        aggregates: Aggregates,
        config: Any,
    ) -> None:
        self.db = db_manager
        self.aggregates = aggregates
        self.config = config

    async def _visible_team(
        self,
        store: StoreSession,
        caller: User,
        team_name: Optional[str],
    ) -> Optional[Team]:
        """
        Team whose submissions the caller may see; None means every team.
        """
        if caller.name != self.config.admin_user_name:
            team = await store.get_team_by_member_user_id(caller.id)
            if team is None:
                raise NoTeam(caller.name)
            return team

        if team_name:
            team = await store.get_team_by_name(team_name)
            if team is None:
                raise TeamNotFound(team_name)
            return team
        return None

    async def list(
        self,
        caller_name: str,
        submission_filter: SubmissionFilter,
    ) -> SubmissionPage:
        """
        Get one page of the submission history.

        @param caller_name: Authenticated caller
        @param submission_filter: Requested filters and page
        @return: Page of submissions plus the total matching count
        """
        page_size = self.config.page_size

        async with self.db.session() as store:
            caller = await resolve_caller(store, caller_name)
            team = await self._visible_team(store, caller, submission_filter.team_name)

            task_id = None
            if submission_filter.task_name:
                task = await store.get_task_by_name(submission_filter.task_name)
                if task is None:
                    raise TaskNotFound(submission_filter.task_name)
                task_id = task.id

            user_id = None
            if submission_filter.user_name:
                user = await store.get_user_by_name(submission_filter.user_name)
                if user is None:
                    raise UserNotFound(submission_filter.user_name)
                user_id = user.id

            query = SubmissionQuery(
                task_id=task_id,
                user_id=user_id,
                member_ids=tuple(team.member_ids) if team is not None else None,
                text=submission_filter.text,
                subtask_name=submission_filter.subtask_name,
            )

            total = await store.count_submission_history(query)
            offset = (submission_filter.page - 1) * page_size
            rows = []
            if offset < total:
                rows = await store.select_submission_history(query, page_size, offset)

            details = []
            for row in rows:
                subtask_max_score = 0
                if row["subtask_id"] is not None:
                    subtask_max_score = await self.aggregates.subtask_max_score(
                        store, row["subtask_id"]
                    )
                details.append(
                    SubmissionDetail(
                        task_name=row["task_name"],
                        task_display_name=row["task_display_name"],
                        subtask_name=row["subtask_name"] or "",
                        subtask_display_name=row["subtask_display_name"] or "",
                        subtask_max_score=subtask_max_score,
                        user_name=row["user_name"],
                        user_display_name=row["user_display_name"],
                        submitted_at=row["submitted_at"],
                        answer=row["answer"],
                        score=row["score"],
                    )
                )

        return SubmissionPage(submissions=details, submission_count=total)
