"""
Cache invalidation after mutations, and the in-memory query cache it acts on.

Keys are tuples whose first element names the collection:
    ('evaluations',)                      evaluation listings (any page/filter)
    ('evaluation', evaluation_id)         evaluation detail
    ('tests-by-evaluation', evaluation_id)
    ('athlete-stats', athlete_id)

Invalidation is by prefix: invalidating ('evaluations',) drops every cached
listing page, invalidating ('evaluation', 5) drops only evaluation 5.

Attendance is not cache-backed; the attendance view refetches explicitly,
so a bulk submit invalidates nothing.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Hashable, Iterable, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class MutationKind(Enum):
    TEST_CREATE = "test_create"
    TEST_UPDATE = "test_update"
    TEST_DELETE = "test_delete"
    EVALUATION_CREATE = "evaluation_create"
    EVALUATION_UPDATE = "evaluation_update"
    EVALUATION_DELETE = "evaluation_delete"
    ATTENDANCE_BULK = "attendance_bulk"


@dataclass(frozen=True)
class InvalidationTarget:
    """A cache key prefix that became stale."""
    key: Tuple[Hashable, ...]

    def matches(self, key: Tuple[Hashable, ...]) -> bool:
        return key[:len(self.key)] == self.key


class CacheInvalidationPolicy:
    """Maps a mutation to the set of stale cache keys."""

    def on_mutation(
        self,
        kind: MutationKind,
        evaluation_id: Optional[int] = None,
        athlete_id: Optional[int] = None,
    ) -> Set[InvalidationTarget]:
        """
        Determine stale keys after a successful mutation.

        Args:
            kind: What was mutated
            evaluation_id: Evaluation the mutation belongs to
            athlete_id: Athlete whose aggregate statistics may have changed

        Returns:
            Set of InvalidationTarget (empty for attendance)

        Raises:
            ValueError: If a test or evaluation mutation lacks evaluation_id
        """
        targets: Set[InvalidationTarget] = set()

        if kind in (MutationKind.TEST_CREATE, MutationKind.TEST_UPDATE, MutationKind.TEST_DELETE):
            if evaluation_id is None:
                raise ValueError(f"{kind.value} requires an evaluation_id")
            targets.add(InvalidationTarget(('tests-by-evaluation', evaluation_id)))
            targets.add(InvalidationTarget(('evaluation', evaluation_id)))
            if athlete_id is not None:
                targets.add(InvalidationTarget(('athlete-stats', athlete_id)))

        elif kind == MutationKind.EVALUATION_CREATE:
            targets.add(InvalidationTarget(('evaluations',)))

        elif kind in (MutationKind.EVALUATION_UPDATE, MutationKind.EVALUATION_DELETE):
            if evaluation_id is None:
                raise ValueError(f"{kind.value} requires an evaluation_id")
            targets.add(InvalidationTarget(('evaluations',)))
            targets.add(InvalidationTarget(('evaluation', evaluation_id)))
            if kind == MutationKind.EVALUATION_DELETE:
                targets.add(InvalidationTarget(('tests-by-evaluation', evaluation_id)))

        logger.debug(
            f"{kind.value}: {len(targets)} cache target(s) stale",
            extra={"mutation": kind.value, "targets": sorted(str(t.key) for t in targets)}
        )
        return targets


class QueryCache:
    """Keyed cache for read results. Thread-safe."""

    def __init__(self):
        self._entries: Dict[Tuple[Hashable, ...], Any] = {}
        self._lock = threading.Lock()

    def __contains__(self, key: Tuple[Hashable, ...]) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(self, key: Tuple[Hashable, ...], default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: Tuple[Hashable, ...], value: Any):
        with self._lock:
            self._entries[key] = value

    def get_or_fetch(self, key: Tuple[Hashable, ...], fetcher: Callable[[], Any]) -> Any:
        """Return the cached value, fetching and storing it on a miss."""
        with self._lock:
            if key in self._entries:
                return self._entries[key]

        value = fetcher()
        self.set(key, value)
        return value

    def invalidate(self, targets: Iterable[InvalidationTarget]) -> int:
        """
        Drop every entry matching any target.

        Returns:
            Number of entries removed
        """
        targets = list(targets)
        with self._lock:
            stale = [key for key in self._entries if any(t.matches(key) for t in targets)]
            for key in stale:
                del self._entries[key]

        if stale:
            logger.debug(f"Invalidated {len(stale)} cached entr{'y' if len(stale) == 1 else 'ies'}")
        return len(stale)

    def clear(self):
        with self._lock:
            self._entries.clear()
