"""
Row types read from the store and the result types handed to the web layer.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

# Marks an absent team member slot
NULL_USER_ID = 0


@dataclass(frozen=True)
class User:
    id: int
    name: str
    display_name: str

    @classmethod
    def from_row(cls, row: Any) -> "User":
        return cls(id=row["id"], name=row["name"], display_name=row["display_name"])


@dataclass(frozen=True)
class Team:
    id: int
    name: str
    display_name: str
    leader_id: int
    member1_id: int = NULL_USER_ID
    member2_id: int = NULL_USER_ID

    @classmethod
    def from_row(cls, row: Any) -> "Team":
        return cls(
            id=row["id"],
            name=row["name"],
            display_name=row["display_name"],
            leader_id=row["leader_id"],
            member1_id=row["member1_id"],
            member2_id=row["member2_id"],
        )

    @property
    def member_ids(self) -> List[int]:
        """Leader first, then the present members."""
        ids = [self.leader_id]
        for member_id in (self.member1_id, self.member2_id):
            if member_id != NULL_USER_ID:
                ids.append(member_id)
        return ids


@dataclass(frozen=True)
class Task:
    id: int
    name: str
    display_name: str
    statement: str
    submission_limit: int

    @classmethod
    def from_row(cls, row: Any) -> "Task":
        return cls(
            id=row["id"],
            name=row["name"],
            display_name=row["display_name"],
            statement=row["statement"],
            submission_limit=row["submission_limit"],
        )


@dataclass(frozen=True)
class Subtask:
    id: int
    task_id: int
    name: str
    display_name: str
    statement: str

    @classmethod
    def from_row(cls, row: Any) -> "Subtask":
        return cls(
            id=row["id"],
            task_id=row["task_id"],
            name=row["name"],
            display_name=row["display_name"],
            statement=row["statement"],
        )


@dataclass(frozen=True)
class Answer:
    id: int
    task_id: int
    subtask_id: int
    answer: str
    score: int

    @classmethod
    def from_row(cls, row: Any) -> "Answer":
        return cls(
            id=row["id"],
            task_id=row["task_id"],
            subtask_id=row["subtask_id"],
            answer=row["answer"],
            score=row["score"],
        )


@dataclass(frozen=True)
class ScoringOutcome:
    """Result of matching one submitted string against a task's answers."""

    matched: bool
    score: int = 0
    subtask_id: Optional[int] = None
    subtask_name: str = ""
    subtask_display_name: str = ""
    subtask_max_score: int = 0


@dataclass
class TaskAbstract:
    name: str
    display_name: str
    max_score: int
    score: int = 0
    submission_limit: int = 0
    submission_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "display_name": self.display_name,
            "max_score": self.max_score,
        }
        # Zero-valued fields are left out, matching what clients expect
        for key in ("score", "submission_limit", "submission_count"):
            value = getattr(self, key)
            if value:
                data[key] = value
        return data


@dataclass
class SubtaskDetail:
    name: str
    display_name: str
    statement: str
    max_score: int
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "statement": self.statement,
            "max_score": self.max_score,
            "score": self.score,
        }


@dataclass
class TaskDetail:
    name: str
    display_name: str
    statement: str
    submission_limit: int
    max_score: int = 0
    score: int = 0
    submission_count: int = 0
    subtasks: List[SubtaskDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "statement": self.statement,
            "max_score": self.max_score,
            "score": self.score,
            "submission_limit": self.submission_limit,
            "submission_count": self.submission_count,
            "subtasks": [subtask.to_dict() for subtask in self.subtasks],
        }


@dataclass
class SubmitResult:
    is_scored: bool
    score: int
    remaining_submissions: int
    subtask_name: str = ""
    subtask_display_name: str = ""
    subtask_max_score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "is_scored": self.is_scored,
            "score": self.score,
            "remaining_submissions": self.remaining_submissions,
        }
        if self.is_scored:
            data["subtask_name"] = self.subtask_name
            data["subtask_display_name"] = self.subtask_display_name
            data["subtask_max_score"] = self.subtask_max_score
        return data


@dataclass
class TaskScoring:
    task_name: str
    has_submitted: bool = False
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_name": self.task_name,
            "has_submitted": self.has_submitted,
            "score": self.score,
        }


@dataclass
class TeamStandings:
    team_name: str
    team_display_name: str
    leader_name: str
    leader_display_name: str
    member1_name: str = ""
    member1_display_name: str = ""
    member2_name: str = ""
    member2_display_name: str = ""
    scoring_data: List[TaskScoring] = field(default_factory=list)
    total_score: int = 0
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "rank": self.rank,
            "team_name": self.team_name,
            "team_display_name": self.team_display_name,
            "leader_name": self.leader_name,
            "leader_display_name": self.leader_display_name,
        }
        for key in (
            "member1_name",
            "member1_display_name",
            "member2_name",
            "member2_display_name",
        ):
            value = getattr(self, key)
            if value:
                data[key] = value
        data["scoring_data"] = [entry.to_dict() for entry in self.scoring_data]
        data["total_score"] = self.total_score
        return data


@dataclass
class Standings:
    tasks_data: List[TaskAbstract] = field(default_factory=list)
    standings_data: List[TeamStandings] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tasks_data": [task.to_dict() for task in self.tasks_data],
            "standings_data": [team.to_dict() for team in self.standings_data],
        }


@dataclass
class SubmissionDetail:
    task_name: str
    task_display_name: str
    subtask_name: str
    subtask_display_name: str
    subtask_max_score: int
    user_name: str
    user_display_name: str
    submitted_at: int
    answer: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_name": self.task_name,
            "task_display_name": self.task_display_name,
            "subtask_name": self.subtask_name,
            "subtask_display_name": self.subtask_display_name,
            "subtask_max_score": self.subtask_max_score,
            "user_name": self.user_name,
            "user_display_name": self.user_display_name,
            "submitted_at": self.submitted_at,
            "answer": self.answer,
            "score": self.score,
        }


@dataclass
class SubmissionPage:
    submissions: List[SubmissionDetail]
    submission_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submissions": [item.to_dict() for item in self.submissions],
            "submission_count": self.submission_count,
        }
