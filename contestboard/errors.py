"""
Error kinds raised by the scoring and standings engine.

Each error carries the HTTP status the web layer answers with.
"""


class ContestError(Exception):
    """Base class for all errors surfaced to the request boundary."""

    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(ContestError):
    http_status = 404


class TaskNotFound(NotFound):
    def __init__(self, task_name: str) -> None:
        super().__init__(f"task not found: {task_name}")
        self.task_name = task_name


class UserNotFound(NotFound):
    def __init__(self, user_name: str) -> None:
        super().__init__(f"user not found: {user_name}")
        self.user_name = user_name


class TeamNotFound(NotFound):
    def __init__(self, team_name: str) -> None:
        super().__init__(f"team not found: {team_name}")
        self.team_name = team_name


class NoTeam(ContestError):
    http_status = 400

    def __init__(self, user_name: str) -> None:
        super().__init__("you have not joined team")
        self.user_name = user_name


class LimitExceeded(ContestError):
    http_status = 400

    def __init__(self, task_name: str, limit: int) -> None:
        super().__init__("submission limit exceeded")
        self.task_name = task_name
        self.limit = limit


class BadRequest(ContestError):
    http_status = 400


class Unauthorized(ContestError):
    http_status = 401


class StoreFailure(ContestError):
    """Any failure of the underlying store, never retried."""

    http_status = 500


class Forbidden(ContestError):
    http_status = 403
