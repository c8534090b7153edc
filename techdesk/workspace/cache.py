"""
Entity cache: the single source of truth for rendering.

Holds the latest known ``CacheEntry`` per ``EntityKey``. Reads never block
and never trigger fetches. Writes are ordered by fetch-start timestamp so a
slow, older response can never overwrite a newer one.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..api.entities import EntityKey
from ..core.errors import StaleDataWarning
from ..core.logging import get_logger


logger = get_logger("techdesk.workspace.cache")


Clock = Callable[[], float]


class CacheState(str, Enum):
    LOADING = "loading"
    READY = "ready"
    FAILED = "failed"


@dataclass(frozen=True)
class CacheEntry:
    """
    Exactly one of LOADING, READY(value, fetched_at) or FAILED(error, failed_at).

    ``started_at`` is the start timestamp of the fetch that produced the
    entry and is what ordering decisions compare.
    """

    state: CacheState
    started_at: float
    value: Any = None
    error: Optional[BaseException] = None
    finished_at: Optional[float] = None
    stale: bool = False

    @classmethod
    def loading(cls, started_at: float) -> "CacheEntry":
        return cls(state=CacheState.LOADING, started_at=started_at)

    @classmethod
    def ready(cls, value: Any, fetched_at: float) -> "CacheEntry":
        return cls(state=CacheState.READY, started_at=fetched_at, value=value, finished_at=fetched_at)

    @classmethod
    def failed(cls, error: BaseException, failed_at: float, started_at: Optional[float] = None) -> "CacheEntry":
        return cls(
            state=CacheState.FAILED,
            started_at=failed_at if started_at is None else started_at,
            error=error,
            finished_at=failed_at,
        )

    @property
    def is_loading(self) -> bool:
        return self.state is CacheState.LOADING

    @property
    def is_ready(self) -> bool:
        return self.state is CacheState.READY

    @property
    def is_failed(self) -> bool:
        return self.state is CacheState.FAILED

    @property
    def fetched_at(self) -> Optional[float]:
        return self.started_at if self.is_ready else None

    @property
    def failed_at(self) -> Optional[float]:
        return self.finished_at if self.is_failed else None

    @property
    def warning(self) -> Optional[StaleDataWarning]:
        if self.stale:
            return StaleDataWarning(f"Data fetched at {self.started_at:.3f} is stale")
        return None

    def to_dict(self) -> Dict[str, Any]:
        """
        JSON-friendly view used by headless drivers.
        """
        data: Dict[str, Any] = {"state": self.state.value, "started_at": self.started_at}
        if self.is_ready:
            value = self.value
            if isinstance(value, list):
                data["value"] = [_record_dict(v) for v in value]
            else:
                data["value"] = _record_dict(value)
            data["stale"] = self.stale
        elif self.is_failed:
            data["error"] = str(self.error)
            data["error_type"] = type(self.error).__name__
        return data


def _record_dict(value: Any) -> Any:
    to_dict = getattr(value, "to_dict", None)
    return to_dict() if callable(to_dict) else value


class EntityCache:
    """
    Keyed store of cache entries with stale-while-revalidate semantics.

    A READY entry older than ``ttl_seconds``, or invalidated after it was
    fetched, is still served but comes back with ``stale=True`` so the
    caller can decide to revalidate.
    """

    def __init__(self, ttl_seconds: float = 300.0, clock: Clock = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._entries: Dict[EntityKey, CacheEntry] = {}
        self._invalidated: Dict[EntityKey, float] = {}
        self._lock = threading.RLock()

    def get(self, key: EntityKey) -> Optional[CacheEntry]:
        """
        Return the entry for ``key``, or ``None`` if it was never requested.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.is_ready:
                return entry
            if self._is_stale(key, entry):
                return replace(entry, stale=True)
            return entry

    def put(self, key: EntityKey, entry: CacheEntry) -> bool:
        """
        Store ``entry`` unless it loses to the current one.

        Rejected when the entry's fetch started before the current entry's,
        and when a LOADING entry would hide an already READY value.
        """
        with self._lock:
            current = self._entries.get(key)
            if current is not None:
                if entry.started_at < current.started_at:
                    logger.debug(
                        f"Rejected {entry.state.value} for {key}: started {entry.started_at:.3f} "
                        f"< current {current.started_at:.3f}"
                    )
                    return False
                if entry.is_loading and current.is_ready:
                    return False
            self._entries[key] = replace(entry, stale=False)
            invalidated_at = self._invalidated.get(key)
            if entry.is_ready and invalidated_at is not None and entry.started_at >= invalidated_at:
                del self._invalidated[key]
            return True

    def invalidate(self, key: EntityKey) -> None:
        """
        Mark ``key`` as out of date.

        READY entries keep being served, flagged stale. FAILED entries are
        dropped so the key reads as never requested. LOADING entries stay.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return
            if entry.is_failed:
                del self._entries[key]
                self._invalidated.pop(key, None)
                return
            self._invalidated[key] = self.clock()

    def invalidated_at(self, key: EntityKey) -> Optional[float]:
        with self._lock:
            return self._invalidated.get(key)

    def is_stale(self, key: EntityKey) -> bool:
        entry = self.get(key)
        return entry is not None and entry.stale

    def snapshot(self, keys: Iterable[EntityKey]) -> List[Optional[CacheEntry]]:
        """
        Entries for ``keys`` in order; ``None`` for keys never requested.
        """
        return [self.get(key) for key in keys]

    def keys(self) -> List[EntityKey]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._invalidated.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _is_stale(self, key: EntityKey, entry: CacheEntry) -> bool:
        invalidated_at = self._invalidated.get(key)
        if invalidated_at is not None and invalidated_at >= entry.started_at:
            return True
        return self.clock() - entry.started_at > self.ttl_seconds
