"""
Database operations for the contest scoreboard.
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import aiosqlite

from .errors import StoreFailure
from .models import Answer, Subtask, Task, Team, User
from .scoring import best_scores_by_subtask

logger = logging.getLogger(__name__)


SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teams (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL,
        leader_id INTEGER NOT NULL,
        member1_id INTEGER NOT NULL DEFAULT 0,
        member2_id INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL,
        statement TEXT NOT NULL DEFAULT '',
        submission_limit INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS subtasks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        name TEXT NOT NULL,
        display_name TEXT NOT NULL,
        statement TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS answers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        subtask_id INTEGER NOT NULL REFERENCES subtasks(id),
        answer TEXT NOT NULL,
        score INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS submissions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_id INTEGER NOT NULL REFERENCES tasks(id),
        user_id INTEGER NOT NULL REFERENCES users(id),
        submitted_at INTEGER NOT NULL,
        answer TEXT NOT NULL,
        subtask_id INTEGER REFERENCES subtasks(id),
        score INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_subtasks_task ON subtasks(task_id)",
    "CREATE INDEX IF NOT EXISTS idx_answers_subtask ON answers(subtask_id)",
    "CREATE INDEX IF NOT EXISTS idx_submissions_task_user ON submissions(task_id, user_id)",
    "CREATE INDEX IF NOT EXISTS idx_submissions_submitted_at ON submissions(submitted_at DESC)",
]


def _placeholders(values: Sequence[Any]) -> str:
    return ",".join("?" for _ in values)


@dataclass(frozen=True)
class SubmissionQuery:
    """
    Resolved filters for the submission history.

    Every recognised filter is a field here; None means "not filtered".
    """

    task_id: Optional[int] = None
    user_id: Optional[int] = None
    member_ids: Optional[Tuple[int, ...]] = None
    text: Optional[str] = None
    subtask_name: Optional[str] = None

    def where_clause(self) -> Tuple[str, List[Any]]:
        """
        Build the WHERE clause for this query.

        @return: SQL fragment (empty when unfiltered) and its bound parameters
        """
        conditions: List[str] = []
        params: List[Any] = []

        if self.task_id is not None:
            conditions.append("s.task_id = ?")
            params.append(self.task_id)
        if self.user_id is not None:
            conditions.append("s.user_id = ?")
            params.append(self.user_id)
        if self.text:
            # instr() is case-sensitive and treats % and _ literally
            conditions.append("instr(s.answer, ?) > 0")
            params.append(self.text)
        if self.member_ids is not None:
            conditions.append(f"s.user_id IN ({_placeholders(self.member_ids)})")
            params.extend(self.member_ids)
        if self.subtask_name:
            conditions.append("st.name = ?")
            params.append(self.subtask_name)

        if not conditions:
            return "", params
        return "WHERE " + " AND ".join(conditions), params


class StoreSession:
    """Queries bound to one open connection."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    async def _fetchone(self, sql: str, params: Sequence[Any] = ()) -> Optional[Any]:
        cursor = await self.db.execute(sql, params)
        try:
            return await cursor.fetchone()
        finally:
            await cursor.close()

    async def _fetchall(self, sql: str, params: Sequence[Any] = ()) -> List[Any]:
        cursor = await self.db.execute(sql, params)
        try:
            return list(await cursor.fetchall())
        finally:
            await cursor.close()

    async def select_tasks(self) -> List[Task]:
        rows = await self._fetchall("SELECT * FROM tasks ORDER BY name")
        return [Task.from_row(row) for row in rows]

    async def get_task_by_name(self, name: str) -> Optional[Task]:
        row = await self._fetchone("SELECT * FROM tasks WHERE name = ?", (name,))
        return Task.from_row(row) if row else None

    async def select_subtasks_by_task(self, task_id: int) -> List[Subtask]:
        rows = await self._fetchall(
            "SELECT * FROM subtasks WHERE task_id = ? ORDER BY id", (task_id,)
        )
        return [Subtask.from_row(row) for row in rows]

    async def select_answers_by_subtask(self, subtask_id: int) -> List[Answer]:
        rows = await self._fetchall(
            "SELECT * FROM answers WHERE subtask_id = ? ORDER BY id", (subtask_id,)
        )
        return [Answer.from_row(row) for row in rows]

    async def select_answer_max_score_by_subtask(self, subtask_id: int) -> int:
        row = await self._fetchone(
            "SELECT COALESCE(MAX(score), 0) FROM answers WHERE subtask_id = ?",
            (subtask_id,),
        )
        return row[0]

    async def select_teams(self) -> List[Team]:
        rows = await self._fetchall("SELECT * FROM teams ORDER BY name")
        return [Team.from_row(row) for row in rows]

    async def get_team_by_name(self, name: str) -> Optional[Team]:
        row = await self._fetchone("SELECT * FROM teams WHERE name = ?", (name,))
        return Team.from_row(row) if row else None

    async def get_team_by_member_user_id(self, user_id: int) -> Optional[Team]:
        row = await self._fetchone(
            "SELECT * FROM teams WHERE leader_id = ? OR member1_id = ? OR member2_id = ?",
            (user_id, user_id, user_id),
        )
        return Team.from_row(row) if row else None

    async def get_user_by_name(self, name: str) -> Optional[User]:
        row = await self._fetchone("SELECT * FROM users WHERE name = ?", (name,))
        return User.from_row(row) if row else None

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        row = await self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return User.from_row(row) if row else None

    async def count_submissions(
        self,
        task_id: int,
        member_ids: Sequence[int],
    ) -> int:
        """
        Count submissions made by any of the given users for a task.

        @param task_id: Task to count for
        @param member_ids: User ids of the team (leader and present members)
        @return: Number of submissions
        """
        row = await self._fetchone(
            f"SELECT COUNT(*) FROM submissions "
            f"WHERE task_id = ? AND user_id IN ({_placeholders(member_ids)})",
            (task_id, *member_ids),
        )
        return row[0]

    async def has_submissions(
        self,
        task_id: int,
        member_ids: Sequence[int],
    ) -> bool:
        row = await self._fetchone(
            f"SELECT EXISTS(SELECT 1 FROM submissions "
            f"WHERE task_id = ? AND user_id IN ({_placeholders(member_ids)}))",
            (task_id, *member_ids),
        )
        return bool(row[0])

    async def select_submission_scores(
        self,
        task_id: int,
        member_ids: Sequence[int],
    ) -> List[Tuple[Optional[int], int]]:
        """
        Get the (subtask id, score) pair of every submission a team made for a task.

        @param task_id: Task to read
        @param member_ids: User ids of the team
        @return: Raw pairs, subtask id is None for unmatched submissions
        """
        rows = await self._fetchall(
            f"SELECT subtask_id, score FROM submissions "
            f"WHERE task_id = ? AND user_id IN ({_placeholders(member_ids)})",
            (task_id, *member_ids),
        )
        return [(row[0], row[1]) for row in rows]

    async def select_max_submission_score_per_subtask(
        self,
        task_id: int,
        member_ids: Sequence[int],
    ) -> Dict[int, int]:
        rows = await self.select_submission_scores(task_id, member_ids)
        return best_scores_by_subtask(rows)

    async def insert_submission(
        self,
        task_id: int,
        user_id: int,
        submitted_at: int,
        answer: str,
        subtask_id: Optional[int],
        score: int,
    ) -> int:
        """
        Append a submission row.

        @return: Id of the new row
        """
        cursor = await self.db.execute(
            "INSERT INTO submissions (task_id, user_id, submitted_at, answer, subtask_id, score) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (task_id, user_id, submitted_at, answer, subtask_id, score),
        )
        try:
            return cursor.lastrowid
        finally:
            await cursor.close()

    async def count_submission_history(self, query: SubmissionQuery) -> int:
        where, params = query.where_clause()
        row = await self._fetchone(
            f"""
            SELECT COUNT(*)
            FROM submissions s
            LEFT JOIN subtasks st ON st.id = s.subtask_id
            {where}
            """,
            params,
        )
        return row[0]

    async def select_submission_history(
        self,
        query: SubmissionQuery,
        limit: int,
        offset: int,
    ) -> List[Dict[str, Any]]:
        """
        Get one page of submissions, newest first, joined with their task, user and subtask.

        @param query: Resolved filters
        @param limit: Page size
        @param offset: Rows to skip
        @return: List of dictionaries, subtask columns are None when unmatched
        """
        where, params = query.where_clause()
        rows = await self._fetchall(
            f"""
            SELECT
                s.id, s.submitted_at, s.answer, s.score, s.subtask_id,
                t.name AS task_name, t.display_name AS task_display_name,
                u.name AS user_name, u.display_name AS user_display_name,
                st.name AS subtask_name, st.display_name AS subtask_display_name
            FROM submissions s
            JOIN tasks t ON t.id = s.task_id
            JOIN users u ON u.id = s.user_id
            LEFT JOIN subtasks st ON st.id = s.subtask_id
            {where}
            ORDER BY s.submitted_at DESC, s.id DESC
            LIMIT ? OFFSET ?
            """,
            (*params, limit, offset),
        )
        return [dict(row) for row in rows]


class DatabaseManager:
    """Store gateway over SQLite; hands out sessions and write transactions."""

    def __init__(
        self,
        db_path: str,
        config: Any,
    ) -> None:
        self.db_path = db_path
        self.config = config
        self.busy_timeout_ms = config.get("database", "busy_timeout_ms")

    async def _connect(self) -> aiosqlite.Connection:
        # Autocommit mode; transactions are started explicitly
        db = await aiosqlite.connect(
            self.db_path,
            isolation_level=None,
            timeout=self.busy_timeout_ms / 1000,
        )
        db.row_factory = aiosqlite.Row
        try:
            await db.execute(f"PRAGMA busy_timeout={int(self.busy_timeout_ms)}")
        except aiosqlite.Error:
            await db.close()
            raise
        return db

    async def init_db(self) -> None:
        """
        Initialize the SQLite database schema and indexes.
        """
        try:
            db = await self._connect()
            try:
                # Enable WAL mode for better concurrent access
                await db.execute("PRAGMA journal_mode=WAL")
                await db.execute("PRAGMA synchronous=NORMAL")
                for statement in SCHEMA:
                    await db.execute(statement)
            finally:
                await db.close()
        except aiosqlite.Error as e:
            raise StoreFailure(f"failed to initialize database: {e}") from e
        logger.info("Database ready at %s", self.db_path)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[StoreSession]:
        """
        Open a read session; each statement runs in its own implicit transaction.
        """
        try:
            db = await self._connect()
        except aiosqlite.Error as e:
            raise StoreFailure(f"failed to connect: {e}") from e
        try:
            yield StoreSession(db)
        except aiosqlite.Error as e:
            raise StoreFailure(f"store query failed: {e}") from e
        finally:
            await db.close()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[StoreSession]:
        """
        Open a write transaction.

        BEGIN IMMEDIATE takes the database write lock before the first read,
        so a count followed by an insert in the same transaction cannot
        interleave with another writer. Commits on clean exit, rolls back on
        any exception.
        """
        try:
            db = await self._connect()
        except aiosqlite.Error as e:
            raise StoreFailure(f"failed to connect: {e}") from e
        try:
            try:
                await db.execute("BEGIN IMMEDIATE")
            except aiosqlite.Error as e:
                raise StoreFailure(f"failed to begin transaction: {e}") from e

            try:
                yield StoreSession(db)
            except Exception:
                await self._rollback(db)
                raise

            try:
                await db.execute("COMMIT")
            except aiosqlite.Error as e:
                await self._rollback(db)
                raise StoreFailure(f"failed to commit transaction: {e}") from e
        except aiosqlite.Error as e:
            raise StoreFailure(f"store query failed: {e}") from e
        finally:
            await db.close()

    async def _rollback(self, db: aiosqlite.Connection) -> None:
        try:
            await db.execute("ROLLBACK")
        except aiosqlite.Error as e:
            # No transaction left to roll back (e.g. the failed COMMIT already ended it)
            logger.debug("Rollback failed: %s", e)
