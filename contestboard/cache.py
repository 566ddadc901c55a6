"""
Process-wide cache of derived aggregates.

Entries never expire. Writers invalidate the keys they make stale; readers
repopulate on miss (read-repair).
"""

import logging
from enum import Enum
from typing import Any, Dict, Hashable, NamedTuple, Optional

logger = logging.getLogger(__name__)


class CacheKind(Enum):
    SUBTASKS = "subtasks"  # task id -> list of subtasks
    SUBTASK_MAX_SCORE = "subtask_max_score"  # subtask id -> int
    USER = "user"  # user id -> User
    TEAM_TASK_SCORE = "team_task_score"  # TeamTaskKey -> int
    TEAM_TASK_SUBMITTED = "team_task_submitted"  # TeamTaskKey -> bool


class TeamTaskKey(NamedTuple):
    team_id: int
    task_id: int


class AggregateCache:
    """
    Keyed store of expensive-to-recompute values.

    Every writer-side change to a key bumps its generation. A reader that
    missed takes the generation before going to the store and hands it back
    to fill(); the fill is dropped if a writer touched the key meanwhile, so
    a value computed from pre-commit data cannot outlive the invalidation.

    All methods are synchronous and the service runs on a single event loop,
    so each call is atomic with respect to other coroutines.
    """

    def __init__(self) -> None:
        self._entries: Dict[CacheKind, Dict[Hashable, Any]] = {
            kind: {} for kind in CacheKind
        }
        self._generations: Dict[CacheKind, Dict[Hashable, int]] = {
            kind: {} for kind in CacheKind
        }

    def get(
        self,
        kind: CacheKind,
        key: Hashable,
    ) -> Optional[Any]:
        """
        Get a cached value.

        @param kind: Which map to look in
        @param key: Entry key
        @return: Cached value, None on miss
        """
        return self._entries[kind].get(key)

    def generation(
        self,
        kind: CacheKind,
        key: Hashable,
    ) -> int:
        return self._generations[kind].get(key, 0)

    def put(
        self,
        kind: CacheKind,
        key: Hashable,
        value: Any,
    ) -> None:
        """
        Store a value as the authoritative one (writer side).

        @param kind: Which map to write
        @param key: Entry key
        @param value: Value to store
        """
        self._bump(kind, key)
        self._entries[kind][key] = value

    def fill(
        self,
        kind: CacheKind,
        key: Hashable,
        value: Any,
        generation: int,
    ) -> bool:
        """
        Store a value recomputed after a miss (reader side).

        @param kind: Which map to write
        @param key: Entry key
        @param value: Recomputed value
        @param generation: Generation observed before the recomputation started
        @return: True if stored, False if a writer changed the key meanwhile
        """
        if self.generation(kind, key) != generation:
            logger.debug("Dropping stale fill for %s %s", kind.value, key)
            return False
        self._entries[kind][key] = value
        return True

    def invalidate(
        self,
        kind: CacheKind,
        key: Hashable,
    ) -> None:
        self._bump(kind, key)
        self._entries[kind].pop(key, None)

    def clear(self) -> None:
        """Drop every entry of every kind."""
        for kind in CacheKind:
            self._entries[kind].clear()
            # Generations are kept so in-flight fills are still rejected
            for key in list(self._generations[kind]):
                self._generations[kind][key] += 1
        logger.info("Aggregate cache cleared")

    def stats(self) -> Dict[str, int]:
        return {kind.value: len(self._entries[kind]) for kind in CacheKind}

    def _bump(self, kind: CacheKind, key: Hashable) -> None:
        generations = self._generations[kind]
        generations[key] = generations.get(key, 0) + 1
