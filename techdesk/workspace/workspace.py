"""
Workspace facade: what a render driver talks to.

Wires the entity cache, fetch scheduler, navigation stack and action
dispatcher together and owns the polling decision. A driver calls
``tick()`` once per frame from its loop thread and redraws when it returns
True; everything it draws comes from ``cache_snapshot``.
"""

from __future__ import annotations

from concurrent.futures import Executor, ThreadPoolExecutor
import time
from typing import Any, Dict, List, Optional, Union

from ..api.adapter import ActionKind
from ..api.entities import EntityKey, IncidentStat, Site
from ..core.config import TechdeskConfig, WorkspaceConfig
from ..core.logging import get_logger
from .cache import CacheEntry, Clock, EntityCache
from .dispatcher import ActionDispatcher, ActionStatus, PendingAction
from .navigation import (
    DeviceTab,
    NavigationStack,
    NavigationView,
    SiteTab,
    entities_for,
    mdr_stats_key,
    with_tab,
)
from .routing import SourceRouter, mdr_account_for
from .scheduler import FetchScheduler


logger = get_logger("techdesk.workspace")


class Workspace:
    """
    Aggregation core behind one terminal session.

    Polling policy, applied to the keys of the current view:
    - on entering a view: request keys that are absent, FAILED or stale
    - on every tick: request absent keys and revalidate stale keys that are
      not already in flight; FAILED keys wait for ``refresh()`` or for the
      user to re-enter the view
    """

    def __init__(
        self,
        router: SourceRouter,
        config: Optional[WorkspaceConfig] = None,
        executor: Optional[Executor] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        self.config = config or WorkspaceConfig()
        self.router = router
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.fetch_workers, thread_name_prefix="techdesk-io"
        )
        self._clock = clock
        self.cache = EntityCache(ttl_seconds=self.config.cache_ttl_seconds, clock=clock)
        self.scheduler = FetchScheduler(self.cache, router, executor=self._executor, clock=clock)
        self.dispatcher = ActionDispatcher(
            self.cache,
            self.scheduler,
            router,
            self._executor,
            clock,
            grace_seconds=self.config.action_grace_seconds,
            timeout_seconds=self.config.action_timeout_seconds,
        )
        self.navigation = NavigationStack(on_enter=self._on_enter)
        self._dirty = True

    @classmethod
    def from_config(cls, config: TechdeskConfig, executor: Optional[Executor] = None) -> "Workspace":
        """
        Build a workspace with an adapter for every configured vendor.
        """
        from ..integrations import build_adapters

        router = SourceRouter(build_adapters(config))
        if not router.vendors():
            logger.warning("No vendor is configured; every panel will fail with ConfigError")
        return cls(router, config.workspace, executor=executor)

    # ------------------------------------------------------------------ #
    # Render driver interface
    # ------------------------------------------------------------------ #

    def current_view(self) -> NavigationView:
        return self.navigation.current()

    def entities_for(self, view: Optional[NavigationView] = None) -> List[EntityKey]:
        return entities_for(view if view is not None else self.current_view(), self.cache)

    def cache_snapshot(self, keys: List[EntityKey]) -> List[Optional[CacheEntry]]:
        return self.cache.snapshot(keys)

    def pending_actions(self) -> List[PendingAction]:
        return self.dispatcher.pending_actions()

    # ------------------------------------------------------------------ #
    # Navigation
    # ------------------------------------------------------------------ #

    def push(self, view: NavigationView) -> None:
        self.navigation.push(view)

    def pop(self) -> Optional[NavigationView]:
        return self.navigation.pop()

    def replace_top(self, view: NavigationView) -> None:
        self.navigation.replace_top(view)

    def select_tab(self, tab: Union[SiteTab, DeviceTab]) -> None:
        self.navigation.replace_top(with_tab(self.current_view(), tab))

    # ------------------------------------------------------------------ #
    # Loop
    # ------------------------------------------------------------------ #

    def tick(self) -> bool:
        """
        Apply finished work and schedule what the current view needs.

        Returns True when the driver should redraw. Never raises for vendor
        failures; those are already cache entries or rejected actions.
        """
        updated = self.scheduler.pump()
        changed = self.dispatcher.pump()
        pruned = self.dispatcher.prune()
        requested = self._request(self.entities_for(), retry_failed=False)

        dirty = self._dirty or bool(updated or changed or pruned or requested)
        self._dirty = False
        return dirty

    def refresh(self) -> None:
        """
        Force a refetch of everything the current view shows.
        """
        keys = self.entities_for()
        for key in keys:
            self.cache.invalidate(key)
        for key in keys:
            self.scheduler.request_fetch(key)
        self._dirty = True

    def dispatch(
        self,
        target: EntityKey,
        kind: ActionKind,
        params: Optional[Dict[str, Any]] = None,
        action_id: Optional[str] = None,
    ) -> PendingAction:
        action = self.dispatcher.dispatch(target, kind, params=params, action_id=action_id)
        self._dirty = True
        return action

    @property
    def is_idle(self) -> bool:
        """
        True when no fetch is in flight and no action awaits an answer.
        """
        if self.scheduler.in_flight_count:
            return False
        return all(a.status is not ActionStatus.SUBMITTED for a in self.pending_actions())

    def run_until_idle(self, timeout: float = 30.0, poll_interval: float = 0.05) -> bool:
        """
        Tick until nothing is in flight, for headless drivers.

        Returns False if ``timeout`` wall-clock seconds passed first.
        """
        deadline = time.monotonic() + timeout
        while True:
            self.tick()
            if self.is_idle:
                # Dependent keys (agents, tenant cases) appear once their
                # inputs are READY; one more tick schedules them.
                self.tick()
                if self.is_idle:
                    return True
            if time.monotonic() >= deadline:
                logger.warning(f"Workspace still busy after {timeout:.0f}s")
                return False
            time.sleep(poll_interval)

    def close(self) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def incident_stat_for(self, site: Site) -> Optional[IncidentStat]:
        """
        Managed-detection counts of ``site``'s account, if loaded.
        """
        entry = self.cache.get(mdr_stats_key())
        if entry is None or not entry.is_ready:
            return None
        account = mdr_account_for(site, self.cache)
        for stat in entry.value:
            if stat.id.lower() == account or stat.account_name.strip().lower() == account:
                return stat
        return None

    def _on_enter(self, view: NavigationView) -> None:
        self._dirty = True
        self._request(entities_for(view, self.cache), retry_failed=True)

    def _request(self, keys: List[EntityKey], retry_failed: bool) -> List[EntityKey]:
        requested: List[EntityKey] = []
        for key in keys:
            entry = self.cache.get(key)
            if entry is None:
                pass
            elif entry.is_failed and retry_failed:
                self.cache.invalidate(key)
            elif not (entry.is_ready and entry.stale) or self.scheduler.is_in_flight(key):
                continue
            self.scheduler.request_fetch(key)
            requested.append(key)
        return requested
