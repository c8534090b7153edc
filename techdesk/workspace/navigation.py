"""
Navigation stack: organization -> site -> device -> activity detail.

Views are small frozen values that reference entities by id only. Which
cache keys a view needs is computed by ``entities_for`` at render time, so a
refetch of a key updates every view that points at it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Callable, List, Optional, Union

from ..api.entities import (
    SCOPE_AV_AGENT,
    SCOPE_AV_HOST,
    SCOPE_DEVICE,
    SCOPE_ORG,
    SCOPE_SITE,
    SCOPE_TENANT,
    Activity,
    Device,
    EntityKey,
    EntityKind,
    parent_ref,
)
from ..core.logging import get_logger
from .routing import (
    av_agents_key,
    components_key,
    device_activity_key,
    device_key,
    device_udf_key,
    job_result_key,
    mdr_agents_key,
    site_variables_key,
    sophos_tenant_for,
)

if TYPE_CHECKING:
    from .cache import EntityCache


logger = get_logger("techdesk.workspace.navigation")


class SiteTab(str, Enum):
    DEVICES = "devices"
    ALERTS = "alerts"
    VARIABLES = "variables"
    SECURITY = "security"
    SETTINGS = "settings"


class DeviceTab(str, Enum):
    OVERVIEW = "overview"
    ALERTS = "alerts"
    SECURITY = "security"
    ACTIVITY = "activity"


@dataclass(frozen=True)
class OrgList:
    """Root view: organizations with their managed-detection statistics."""


@dataclass(frozen=True)
class SiteList:
    org_id: Optional[str] = None


@dataclass(frozen=True)
class SiteDetail:
    site_id: str
    active_tab: SiteTab = SiteTab.DEVICES
    org_id: Optional[str] = None


@dataclass(frozen=True)
class DeviceDetail:
    device_id: str
    site_id: str
    active_tab: DeviceTab = DeviceTab.OVERVIEW


@dataclass(frozen=True)
class ActivityDetail:
    """One activity log entry of a device, with its job result when it ran a job."""

    activity_id: str
    device_id: str
    site_id: str


NavigationView = Union[OrgList, SiteList, SiteDetail, DeviceDetail, ActivityDetail]


def with_tab(view: NavigationView, tab: Union[SiteTab, DeviceTab]) -> NavigationView:
    """
    Copy of a detail view with another active tab.
    """
    if isinstance(view, SiteDetail):
        return replace(view, active_tab=SiteTab(tab))
    if isinstance(view, DeviceDetail):
        return replace(view, active_tab=DeviceTab(tab))
    raise ValueError(f"{type(view).__name__} has no tabs")


def mdr_stats_key() -> EntityKey:
    return EntityKey(EntityKind.INCIDENT_STAT)


def sites_key(org_id: Optional[str] = None) -> EntityKey:
    return EntityKey(EntityKind.SITE, parent_ref(SCOPE_ORG, org_id) if org_id else None)


def site_key(site_id: str) -> EntityKey:
    """
    The one item key of a site, whichever listing it was reached from.
    """
    return sites_key().item(site_id)


def entities_for(view: NavigationView, cache: "EntityCache") -> List[EntityKey]:
    """
    Cache keys ``view`` displays.

    Keys that depend on other entities (a device's hostname, a site's Sophos
    tenant, an activity's job) are only included once those entities are
    READY in ``cache`` and carry the value the key is built from.
    """
    if isinstance(view, OrgList):
        return [mdr_stats_key()]

    if isinstance(view, SiteList):
        return [sites_key(view.org_id), mdr_stats_key()]

    if isinstance(view, SiteDetail):
        keys = [site_key(view.site_id), site_variables_key(view.site_id)]
        site_parent = parent_ref(SCOPE_SITE, view.site_id)
        if view.active_tab is SiteTab.DEVICES:
            keys.append(EntityKey(EntityKind.DEVICE, site_parent))
        elif view.active_tab is SiteTab.ALERTS:
            keys.append(EntityKey(EntityKind.ALERT, site_parent))
        elif view.active_tab is SiteTab.SECURITY:
            tenant = sophos_tenant_for(view.site_id, cache)
            if tenant:
                keys.append(EntityKey(EntityKind.CASE, parent_ref(SCOPE_TENANT, tenant)))
            keys.append(mdr_stats_key())
        return keys

    if isinstance(view, DeviceDetail):
        primary = device_key(view.site_id, view.device_id)
        keys = [primary]
        if view.active_tab is DeviceTab.OVERVIEW:
            keys.append(device_udf_key(view.device_id))
        elif view.active_tab is DeviceTab.ALERTS:
            keys.append(EntityKey(EntityKind.ALERT, parent_ref(SCOPE_DEVICE, view.device_id)))
        elif view.active_tab is DeviceTab.SECURITY:
            keys.append(site_variables_key(view.site_id))
            entry = cache.get(primary)
            if entry is not None and entry.is_ready and isinstance(entry.value, Device):
                device = entry.value
                agents = av_agents_key(device, cache)
                if agents is not None:
                    keys.append(agents)
                    if agents.scope == SCOPE_AV_HOST:
                        keys.extend(_av_alert_keys(agents, cache))
                mdr_agents = mdr_agents_key(device)
                if mdr_agents is not None:
                    keys.append(mdr_agents)
        elif view.active_tab is DeviceTab.ACTIVITY:
            keys.extend([device_activity_key(view.device_id), components_key()])
        return keys

    if isinstance(view, ActivityDetail):
        primary = device_activity_key(view.device_id).item(view.activity_id)
        keys = [primary]
        entry = cache.get(primary)
        if entry is not None and entry.is_ready and isinstance(entry.value, Activity) and entry.value.job_id:
            keys.append(job_result_key(entry.value.job_id, view.device_id))
        return keys

    raise TypeError(f"Unknown view {view!r}")


def _av_alert_keys(agents_key: EntityKey, cache: "EntityCache") -> List[EntityKey]:
    # Recent antivirus alerts of the host's first agent, once agents are known.
    entry = cache.get(agents_key)
    if entry is None or not entry.is_ready or not entry.value or not entry.value[0].id:
        return []
    return [EntityKey(EntityKind.ALERT, parent_ref(SCOPE_AV_AGENT, entry.value[0].id))]


ViewCallback = Callable[[NavigationView], None]


class NavigationStack:
    """
    Non-empty stack of views; the top is the rendered view.

    ``on_enter`` is called with the view that becomes current after every
    push, pop and replace_top.
    """

    def __init__(self, root: Optional[NavigationView] = None, on_enter: Optional[ViewCallback] = None) -> None:
        self._views: List[NavigationView] = [root if root is not None else OrgList()]
        self._on_enter = on_enter

    def push(self, view: NavigationView) -> None:
        self._views.append(view)
        logger.debug(f"push {view!r} (depth {len(self._views)})")
        self._entered(view)

    def pop(self) -> Optional[NavigationView]:
        """
        Remove and return the top view. On the root view this is a no-op
        returning ``None``.
        """
        if len(self._views) == 1:
            return None
        popped = self._views.pop()
        logger.debug(f"pop {popped!r} (depth {len(self._views)})")
        self._entered(self._views[-1])
        return popped

    def current(self) -> NavigationView:
        return self._views[-1]

    def replace_top(self, view: NavigationView) -> None:
        """
        Swap the top view without growing the stack (tab switches).
        """
        self._views[-1] = view
        self._entered(view)

    def reset(self, root: Optional[NavigationView] = None) -> None:
        self._views = [root if root is not None else self._views[0]]
        self._entered(self._views[0])

    def views(self) -> List[NavigationView]:
        """
        Bottom-to-top copy of the stack, for breadcrumbs.
        """
        return list(self._views)

    @property
    def depth(self) -> int:
        return len(self._views)

    def __len__(self) -> int:
        return len(self._views)

    def _entered(self, view: NavigationView) -> None:
        if self._on_enter is not None:
            self._on_enter(view)
