"""
Contest Scoreboard - answer scoring and live team standings for multi-task contests.

This package provides:
- Answer scoring against per-subtask answer sets with per-team submission limits
- A cached, ranked team leaderboard
- Task views with the caller's team progress
- A filterable, paginated submission history
- JSON API and HTML views over aiohttp
"""

from .cache import AggregateCache
from .config import ContestConfig
from .database import DatabaseManager
from .scoreboard import ContestSystem
from .standings import StandingsBuilder
from .submissions import SubmissionHistory, SubmissionProcessor
from .tasks import TaskViewBuilder
from .web_handlers import WebHandlers

__version__ = "1.0.0"

__all__ = [
    "AggregateCache",
    "ContestConfig",
    "DatabaseManager",
    "ContestSystem",
    "StandingsBuilder",
    "SubmissionHistory",
    "SubmissionProcessor",
    "TaskViewBuilder",
    "WebHandlers",
]
