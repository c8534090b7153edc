"""
Fetch scheduler: runs vendor fetches off the loop thread.

- At most one vendor call is in flight per fetch key ``(kind, parent_id)``;
  further requests for the same fetch key attach to the running call.
- Vendor calls run on a ``concurrent.futures`` executor. Their completions are
  queued and applied to the entity cache by ``pump()``, which the loop thread
  calls every tick, so every cache write happens on one thread.
- Failures become ``FAILED`` cache entries. Nothing is retried automatically.
"""

from __future__ import annotations

from concurrent.futures import CancelledError, Executor, Future, ThreadPoolExecutor
import queue
import threading
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..api.entities import EntityKey, EntityKind, Record
from ..core.errors import ConfigError, IntegrationError, NetworkError, NotFoundError, TechdeskError
from ..core.logging import get_logger
from .cache import CacheEntry, Clock, EntityCache
from .routing import SourceRouter


logger = get_logger("techdesk.workspace.scheduler")


FetchKey = Tuple[EntityKind, Optional[str]]
Listener = Callable[[List[EntityKey]], None]


class FetchHandle:
    """
    Tracks one vendor call and every key waiting on it.
    """

    def __init__(self, fetch_key: FetchKey, started_at: float) -> None:
        self.fetch_key = fetch_key
        self.started_at = started_at
        self.keys: Set[EntityKey] = set()
        self.future: Optional[Future] = None
        self.refetch = False
        self.records: Optional[List[Record]] = None
        self.error: Optional[BaseException] = None
        self._applied = threading.Event()

    def done(self) -> bool:
        """
        True once the result has been written to the cache.
        """
        return self._applied.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._applied.wait(timeout)

    @property
    def succeeded(self) -> bool:
        return self.done() and self.error is None

    def _finish(self, records: Optional[List[Record]], error: Optional[BaseException]) -> None:
        self.records = records
        self.error = error
        self._applied.set()

    def __repr__(self) -> str:
        kind, parent = self.fetch_key
        return f"FetchHandle({kind.value}, {parent!r}, started_at={self.started_at:.3f})"


def as_integration_error(exc: BaseException) -> TechdeskError:
    """
    Normalize anything a vendor call raised into the techdesk error taxonomy.
    """
    if isinstance(exc, TechdeskError):
        return exc
    if isinstance(exc, CancelledError):
        return NetworkError("Request was cancelled")
    if isinstance(exc, TimeoutError):
        return NetworkError(f"Request timed out: {exc}")
    return IntegrationError(f"Unexpected error from vendor: {exc!r}")


class FetchScheduler:
    """
    Issues adapter fetches, coalesces duplicates and applies results.
    """

    def __init__(
        self,
        cache: EntityCache,
        router: SourceRouter,
        executor: Optional[Executor] = None,
        max_workers: int = 8,
        clock: Optional[Clock] = None,
    ) -> None:
        self._cache = cache
        self._router = router
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="techdesk-fetch"
        )
        self._clock = clock or cache.clock or time.monotonic
        self._in_flight: Dict[FetchKey, FetchHandle] = {}
        self._completed: "queue.Queue[Tuple[FetchHandle, Future]]" = queue.Queue()
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def request_fetch(self, key: EntityKey) -> FetchHandle:
        """
        Fetch ``key`` unless a call for its fetch key is already in flight,
        in which case the existing handle is returned.
        """
        fetch_key = key.fetch_key
        with self._lock:
            handle = self._in_flight.get(fetch_key)
            if handle is not None:
                handle.keys.add(key)
                invalidated_at = self._cache.invalidated_at(key)
                if invalidated_at is not None and invalidated_at > handle.started_at:
                    # The running call may predate the change; fetch again after it lands.
                    handle.refetch = True
                attached = True
            else:
                handle = FetchHandle(fetch_key, self._clock())
                handle.keys.add(key)
                self._in_flight[fetch_key] = handle
                attached = False

        self._cache.put(key, CacheEntry.loading(handle.started_at))
        if attached:
            logger.debug(f"Coalesced fetch for {key} onto {handle!r}")
            return handle

        adapter = self._router.adapter_for(key)
        if adapter is None:
            future: Future = Future()
            future.set_exception(ConfigError(f"No configured source serves {key}"))
        else:
            logger.debug(f"Fetching {key} from {adapter.vendor.value}")
            future = self._executor.submit(adapter.fetch, key.kind, key.parent_id)
        handle.future = future
        future.add_done_callback(lambda f, h=handle: self._completed.put((h, f)))
        return handle

    def pump(self) -> List[EntityKey]:
        """
        Apply every completed fetch to the cache. Call from the loop thread.

        Returns the keys whose entries changed.
        """
        updated: List[EntityKey] = []
        while True:
            try:
                handle, future = self._completed.get_nowait()
            except queue.Empty:
                break
            updated.extend(self._apply(handle, future))

        if updated:
            for listener in list(self._listeners):
                try:
                    listener(updated)
                except Exception:
                    logger.exception("Fetch listener failed")
        return updated

    def is_in_flight(self, key: EntityKey) -> bool:
        with self._lock:
            return key.fetch_key in self._in_flight

    @property
    def in_flight_count(self) -> int:
        with self._lock:
            return len(self._in_flight)

    def add_listener(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Listener) -> None:
        self._listeners.remove(listener)

    def shutdown(self, wait: bool = False) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait, cancel_futures=True)

    def _apply(self, handle: FetchHandle, future: Future) -> List[EntityKey]:
        with self._lock:
            if self._in_flight.get(handle.fetch_key) is handle:
                del self._in_flight[handle.fetch_key]
            keys = set(handle.keys)

        try:
            records: Optional[List[Record]] = list(future.result() or [])
            error: Optional[BaseException] = None
        except Exception as exc:
            records = None
            error = as_integration_error(exc)

        if error is None:
            updated = self._write_ready(handle, keys, records or [])
        else:
            kind, parent = handle.fetch_key
            logger.warning(f"Fetch {kind.value}[{parent}] failed: {type(error).__name__}: {error}")
            now = self._clock()
            updated = [
                key for key in keys
                if self._cache.put(key, CacheEntry.failed(error, now, handle.started_at))
            ]

        handle._finish(records, error)

        if handle.refetch:
            for key in keys:
                self.request_fetch(key)
        return updated

    def _write_ready(self, handle: FetchHandle, keys: Set[EntityKey], records: List[Record]) -> List[EntityKey]:
        kind, parent = handle.fetch_key
        started = handle.started_at
        updated: List[EntityKey] = []

        collection = EntityKey(kind, parent)
        if self._cache.put(collection, CacheEntry.ready(records, started)):
            updated.append(collection)

        seen: Set[str] = set()
        for record in records:
            seen.add(record.id)
            item = collection.item(record.id)
            if self._cache.put(item, CacheEntry.ready(record, started)):
                updated.append(item)

        now = self._clock()
        for key in keys:
            if key.is_collection or key.id in seen:
                continue
            error = NotFoundError(f"{kind.value} {key.id!r} not found under {parent or 'account'}")
            if self._cache.put(key, CacheEntry.failed(error, now, started)):
                updated.append(key)

        logger.debug(f"Fetched {len(records)} {kind.value} record(s) under {parent or 'account'}")
        return updated
