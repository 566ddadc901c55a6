"""
Answer matching, best-per-subtask aggregation and leaderboard ranking.

The matching and folding functions are pure; ScoringEngine only loads
the answer set and hands it to them.
"""

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .models import Answer, ScoringOutcome, Subtask, Task, TeamStandings

if TYPE_CHECKING:
    from .aggregates import Aggregates
    from .database import StoreSession

logger = logging.getLogger(__name__)


def subtask_max_score(answers: Iterable[Answer]) -> int:
    """Best score any answer of a subtask awards, 0 when it has none."""
    return max((answer.score for answer in answers), default=0)


def match_answer(
    subtasks: Sequence[Subtask],
    answers_by_subtask: Mapping[int, Sequence[Answer]],
    submitted: str,
) -> ScoringOutcome:
    """
    Match a submitted string against every answer of a task.

    Comparison is exact and case-sensitive. Subtasks are scanned by
    ascending id and answers by ascending id; the first match wins. Answer
    strings are expected to be unique within a task, and a duplicate across
    subtasks is logged.

    @param subtasks: Subtasks of the task
    @param answers_by_subtask: Subtask id -> answers of that subtask
    @param submitted: Raw submitted string
    @return: Outcome describing what the string earns
    """
    outcome: Optional[ScoringOutcome] = None

    for subtask in sorted(subtasks, key=lambda s: s.id):
        answers = sorted(answers_by_subtask.get(subtask.id, ()), key=lambda a: a.id)
        for answer in answers:
            if answer.answer != submitted:
                continue
            if outcome is None:
                outcome = ScoringOutcome(
                    matched=True,
                    score=answer.score,
                    subtask_id=subtask.id,
                    subtask_name=subtask.name,
                    subtask_display_name=subtask.display_name,
                    subtask_max_score=subtask_max_score(answers),
                )
            elif outcome.subtask_id != subtask.id:
                logger.warning(
                    "Answer string shared by subtasks %s and %s of task %s; "
                    "scoring against %s",
                    outcome.subtask_name,
                    subtask.name,
                    subtask.task_id,
                    outcome.subtask_name,
                )
            break

    return outcome if outcome is not None else ScoringOutcome(matched=False)


def best_scores_by_subtask(rows: Iterable[Tuple[Optional[int], int]]) -> Dict[int, int]:
    """
    Fold submission (subtask id, score) pairs into the best score per subtask.

    Unmatched submissions (no subtask) are ignored.
    """
    best: Dict[int, int] = {}
    for subtask_id, score in rows:
        if subtask_id is None:
            continue
        if subtask_id not in best or score > best[subtask_id]:
            best[subtask_id] = score
    return best


def team_task_score(rows: Iterable[Tuple[Optional[int], int]]) -> int:
    """Sum of the best score per subtask."""
    return sum(best_scores_by_subtask(rows).values())


def assign_ranks(entries: Iterable[TeamStandings]) -> List[TeamStandings]:
    """
    Order teams for the leaderboard and assign shared ranks.

    Order is total score descending, then team name ascending. A team's rank
    is 1 + the number of teams with a strictly greater total, so tied teams
    share a rank.

    @param entries: Team standings with total_score filled in
    @return: New list in leaderboard order, rank set on each entry
    """
    ordered = sorted(entries, key=lambda entry: (-entry.total_score, entry.team_name))

    previous_total = None
    current_rank = 0
    for position, entry in enumerate(ordered, 1):
        if entry.total_score != previous_total:
            current_rank = position
            previous_total = entry.total_score
        entry.rank = current_rank

    return ordered


class ScoringEngine:
    """Scores submitted strings against a task's answer set."""

    def __init__(self, aggregates: "Aggregates") -> None:
        self.aggregates = aggregates

    async def score(
        self,
        store: "StoreSession",
        task: Task,
        submitted: str,
    ) -> ScoringOutcome:
        """
        Load a task's subtasks and answers and match a submitted string.

        Subtask lists come from the cache; answers are read through the
        given session so a write transaction sees a consistent answer set.

        @param store: Open store session or transaction
        @param task: Task being answered
        @param submitted: Raw submitted string
        @return: Scoring outcome
        """
        subtasks = await self.aggregates.subtasks(store, task.id)
        answers_by_subtask = {}
        for subtask in subtasks:
            answers_by_subtask[subtask.id] = await store.select_answers_by_subtask(subtask.id)
        return match_answer(subtasks, answers_by_subtask, submitted)
