"""
Source routing: which vendor serves a key, and where an action goes.

Adapters declare the (entity kind, parent scope) pairs they fetch and the
(action kind, key kind) pairs they perform. The router resolves fetch keys
against those declarations and turns a user action on a displayed entity
into a concrete vendor call plus the keys it affects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ..api.adapter import ActionKind, ActionRoute, Route, VendorAdapter
from ..api.entities import (
    SCOPE_AV_HOST,
    SCOPE_DEVICE,
    SCOPE_JOB,
    SCOPE_MDR_HOST,
    SCOPE_SITE,
    SCOPE_SOPHOS_HOST,
    Agent,
    Device,
    EntityKey,
    EntityKind,
    Site,
    Udf,
    Vendor,
    parent_ref,
)
from ..core.errors import ActionRejected, ValidationError
from ..core.logging import get_logger

if TYPE_CHECKING:
    from .cache import EntityCache


logger = get_logger("techdesk.workspace.routing")


# Site variable naming the Sophos Central tenant of a site.
SOPHOS_TENANT_VARIABLE = "tuiSophosTenantId"
# Site variable naming the RocketCyber account of a site; defaults to the site name.
MDR_ACCOUNT_VARIABLE = "tuiMdrId"

UDF_SLOTS = 30
SITE_SETTINGS = ("name", "description", "notes", "on_demand", "splashtop_auto_install")


@dataclass
class ActionPlan:
    """
    Concrete vendor call for a user action.

    ``params`` replaces the caller's parameters when the router completed
    them (a site update always carries the current name).
    """

    adapter: VendorAdapter
    target: EntityKey
    dependents: List[EntityKey] = field(default_factory=list)
    params: Optional[Dict[str, Any]] = None


def site_variables_key(site_id: str) -> EntityKey:
    return EntityKey(EntityKind.UDF, parent_ref(SCOPE_SITE, site_id), site_id)


def device_key(site_id: str, device_id: str) -> EntityKey:
    return EntityKey(EntityKind.DEVICE, parent_ref(SCOPE_SITE, site_id), device_id)


def device_udf_key(device_id: str) -> EntityKey:
    return EntityKey(EntityKind.UDF, parent_ref(SCOPE_DEVICE, device_id), device_id)


def device_activity_key(device_id: str) -> EntityKey:
    return EntityKey(EntityKind.ACTIVITY, parent_ref(SCOPE_DEVICE, device_id))


def components_key() -> EntityKey:
    return EntityKey(EntityKind.COMPONENT)


def job_result_key(job_id: str, device_id: str) -> EntityKey:
    return EntityKey(EntityKind.JOB_RESULT, parent_ref(SCOPE_JOB, f"{job_id}/{device_id}"), job_id)


def sophos_tenant_for(site_id: str, cache: "EntityCache") -> Optional[str]:
    """
    Sophos tenant configured on the site, if the site variables are loaded.
    """
    if not site_id:
        return None
    entry = cache.get(site_variables_key(site_id))
    if entry is None or not entry.is_ready or not isinstance(entry.value, Udf):
        return None
    return entry.value.get(SOPHOS_TENANT_VARIABLE) or None


def mdr_account_for(site: Site, cache: "EntityCache") -> str:
    """
    RocketCyber account name of ``site``: the ``tuiMdrId`` site variable when
    set, else the lowercased site name.
    """
    entry = cache.get(site_variables_key(site.id)) if site.id else None
    if entry is not None and entry.is_ready and isinstance(entry.value, Udf):
        account = entry.value.get(MDR_ACCOUNT_VARIABLE)
        if account:
            return account.strip().lower()
    return site.name.strip().lower()


def av_agents_key(device: Device, cache: "EntityCache") -> Optional[EntityKey]:
    """
    Agent collection of the antivirus product the RMM reports for ``device``.

    ``None`` when the product is unsupported, when the RMM reports no
    hostname or, for Sophos, when the site's tenant is not known yet.
    """
    hostname = (device.hostname or "").strip().lower()
    if not hostname:
        return None
    product = (device.av_product or "").lower()
    if "sophos" in product:
        tenant = sophos_tenant_for(device.site_id, cache)
        if not tenant:
            return None
        return EntityKey(EntityKind.AGENT, parent_ref(SCOPE_SOPHOS_HOST, f"{tenant}/{hostname}"))
    if "datto" in product:
        return EntityKey(EntityKind.AGENT, parent_ref(SCOPE_AV_HOST, hostname))
    return None


def mdr_agents_key(device: Device) -> Optional[EntityKey]:
    """
    RocketCyber agents of ``device``'s host; ``None`` without a hostname.
    """
    hostname = (device.hostname or "").strip().lower()
    if not hostname:
        return None
    return EntityKey(EntityKind.AGENT, parent_ref(SCOPE_MDR_HOST, hostname))


class SourceRouter:
    """
    Registry of vendor adapters keyed by the routes they declare.
    """

    def __init__(self, adapters: Optional[List[VendorAdapter]] = None) -> None:
        self._routes: Dict[Route, VendorAdapter] = {}
        self._actions: Dict[Tuple[ActionRoute, Optional[str]], VendorAdapter] = {}
        self._adapters: Dict[Vendor, VendorAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: VendorAdapter) -> None:
        """
        Add ``adapter``; a route already claimed by another vendor is an error.
        """
        for route in adapter.routes:
            owner = self._routes.get(route)
            if owner is not None and owner is not adapter:
                kind, scope = route
                raise ValidationError(
                    f"Route {kind.value}/{scope} is served by both "
                    f"{owner.vendor.value} and {adapter.vendor.value}"
                )
            self._routes[route] = adapter
        for action_route in adapter.actions:
            # Actions on keys of a kind are scoped like the fetch routes, so
            # SCAN on an av-host agent and on a sophos-host agent go to
            # different vendors.
            for kind, scope in adapter.routes:
                if kind is action_route[1]:
                    self._actions[(action_route, scope)] = adapter
        self._adapters[adapter.vendor] = adapter
        logger.info(f"Registered {adapter.vendor.value} adapter ({len(adapter.routes)} routes)")

    def adapter_for(self, key: EntityKey) -> Optional[VendorAdapter]:
        return self._routes.get((key.kind, key.scope))

    def adapter(self, vendor: Vendor) -> Optional[VendorAdapter]:
        return self._adapters.get(vendor)

    def vendors(self) -> List[Vendor]:
        return list(self._adapters)

    def plan_action(
        self,
        kind: ActionKind,
        key: EntityKey,
        value: Any,
        cache: "EntityCache",
        params: Optional[Dict[str, Any]] = None,
    ) -> ActionPlan:
        """
        Map ``kind`` on the displayed entity ``key`` to a vendor call.

        Raises ``ActionRejected`` when no configured vendor can perform it.
        """
        params = params or {}
        if kind is ActionKind.SCAN and key.kind is EntityKind.DEVICE:
            return self._plan_device_scan(key, value, cache)

        dependents = [key.collection()]
        planned_params: Optional[Dict[str, Any]] = None

        if kind is ActionKind.UPDATE_UDF:
            if key.kind is not EntityKind.UDF or key.scope != SCOPE_DEVICE:
                raise ActionRejected("UDFs can only be edited on devices")
            index = params.get("index")
            if not isinstance(index, int) or not 1 <= index <= UDF_SLOTS:
                raise ActionRejected(f"UDF index must be between 1 and {UDF_SLOTS}")

        elif kind in (ActionKind.CREATE_VARIABLE, ActionKind.UPDATE_VARIABLE):
            if key.kind is not EntityKind.UDF or key.scope != SCOPE_SITE:
                raise ActionRejected("Variables can only be edited on sites")
            name = params.get("name")
            if not isinstance(name, str) or not name.strip():
                raise ActionRejected("Variable name is required")
            known = value.fields if isinstance(value, Udf) else {}
            if kind is ActionKind.CREATE_VARIABLE and name in known:
                raise ActionRejected(f"Variable {name!r} already exists")
            if kind is ActionKind.UPDATE_VARIABLE and name not in known:
                raise ActionRejected(f"Variable {name!r} does not exist")

        elif kind is ActionKind.RUN_JOB:
            if key.kind is not EntityKind.DEVICE or not isinstance(value, Device):
                raise ActionRejected(f"Jobs can only run on devices, not {key}")
            if not params.get("component_uid"):
                raise ActionRejected("A component is required to run a job")
            dependents = [device_activity_key(value.id)]

        elif kind is ActionKind.UPDATE_SITE:
            if key.kind is not EntityKind.SITE or not isinstance(value, Site):
                raise ActionRejected(f"{key} is not a site")
            unknown = set(params) - set(SITE_SETTINGS)
            if unknown:
                raise ActionRejected(f"Unknown site settings: {', '.join(sorted(unknown))}")
            planned_params = dict(params)
            if not (planned_params.get("name") or "").strip():
                planned_params["name"] = value.name

        adapter = self._actions.get(((kind, key.kind), key.scope))
        if adapter is None:
            raise ActionRejected(f"No configured vendor can {kind.value} {key}")
        return ActionPlan(adapter=adapter, target=key, dependents=dependents, params=planned_params)

    def _plan_device_scan(self, key: EntityKey, device: Any, cache: "EntityCache") -> ActionPlan:
        if not isinstance(device, Device):
            raise ActionRejected(f"{key} is not a device")

        agents_key = av_agents_key(device, cache)
        if agents_key is None:
            raise ActionRejected(
                f"No supported security product detected on {device.hostname or device.id} "
                f"({device.av_product or 'unknown'})"
            )

        entry = cache.get(agents_key)
        if entry is None or not entry.is_ready:
            raise ActionRejected(f"Antivirus agent for {device.hostname} is not loaded")
        agents = [a for a in entry.value if isinstance(a, Agent) and a.id]
        if not agents:
            raise ActionRejected(f"No antivirus agent found for {device.hostname}")

        target = agents_key.item(agents[0].id)
        adapter = self._actions.get(((ActionKind.SCAN, EntityKind.AGENT), target.scope))
        if adapter is None:
            raise ActionRejected(f"No configured vendor can scan {target}")
        return ActionPlan(adapter=adapter, target=target, dependents=[key, agents_key])
