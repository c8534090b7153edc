"""
Sophos Central implementation of the ``VendorAdapter`` interface.

Tenant-level endpoints live on the tenant's regional API host, so the
client looks up (and remembers) each tenant's data region through the
partner API before its first tenant call.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, FrozenSet, List, Optional

from ...api.adapter import Ack, ActionKind, ActionRoute, Route
from ...api.entities import SCOPE_SOPHOS_HOST, SCOPE_TENANT, EntityKey, EntityKind, Record, Vendor, split_parent
from ...core.config import TechdeskConfig
from ...core.errors import ActionRejected, ConfigError, IntegrationError, ValidationError
from ...core.logging import get_logger
from .sophos_http import SophosHttpClient
from .sophos_mapper import exact_hostname_first, sophos_case_to_case, sophos_endpoint_to_agent, split_tenant_host


logger = get_logger("techdesk.integrations.sophos.client")


class SophosClient:
    """
    Vendor adapter backed by Sophos Central: cases per tenant, endpoints by
    hostname, and on-demand scans.
    """

    vendor = Vendor.SOPHOS
    routes: FrozenSet[Route] = frozenset({(EntityKind.CASE, SCOPE_TENANT), (EntityKind.AGENT, SCOPE_SOPHOS_HOST)})
    actions: FrozenSet[ActionRoute] = frozenset({(ActionKind.SCAN, EntityKind.AGENT)})

    def __init__(self, http_client: SophosHttpClient) -> None:
        self._http = http_client
        self._regions: Dict[str, str] = {}
        self._regions_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: TechdeskConfig) -> "SophosClient":
        if not config.sophos:
            raise ConfigError("Sophos configuration is not set in TechdeskConfig")

        http_client = SophosHttpClient(
            client_id=config.sophos.client_id,
            client_secret=config.sophos.client_secret,
            partner_id=config.sophos.partner_id,
            timeout_seconds=config.sophos.timeout_seconds,
            auth_url=config.sophos.auth_url,
            api_url=config.sophos.api_url,
        )
        return cls(http_client=http_client)

    def fetch(self, kind: EntityKind, parent_id: Optional[str]) -> List[Record]:
        scope, value = split_parent(parent_id)
        if kind is EntityKind.CASE and scope == SCOPE_TENANT:
            return self.list_cases(value)
        if kind is EntityKind.AGENT and scope == SCOPE_SOPHOS_HOST:
            try:
                tenant_id, hostname = split_tenant_host(value)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            return self.find_endpoints(tenant_id, hostname)
        raise ValidationError(f"Sophos does not serve {kind.value} under {parent_id!r}")

    # Tenants

    def data_region(self, tenant_id: str) -> str:
        with self._regions_lock:
            region = self._regions.get(tenant_id)
        if region:
            return region

        tenant = self._http.partner_get(f"/partner/v1/tenants/{tenant_id}")
        region = tenant.get("dataRegion")
        if not region:
            raise IntegrationError(f"Sophos tenant {tenant_id} has no data region", vendor=self.vendor.value)
        with self._regions_lock:
            self._regions[tenant_id] = region
        logger.debug(f"Sophos tenant {tenant_id} is in region {region}")
        return region

    # Cases and endpoints

    def list_cases(self, tenant_id: str) -> List[Record]:
        region = self.data_region(tenant_id)
        body = self._http.tenant_get(tenant_id, region, "/cases/v1/cases")
        return [sophos_case_to_case(raw) for raw in body.get("items") or []]

    def find_endpoints(self, tenant_id: str, hostname: str) -> List[Record]:
        region = self.data_region(tenant_id)
        body = self._http.tenant_get(
            tenant_id, region, "/endpoint/v1/endpoints", params={"hostnameContains": hostname}
        )
        agents = [sophos_endpoint_to_agent(raw) for raw in body.get("items") or []]
        return exact_hostname_first(agents, hostname)

    # Actions

    def perform_action(
        self,
        kind: ActionKind,
        key: EntityKey,
        params: Optional[Dict[str, Any]] = None,
    ) -> Ack:
        if kind is not ActionKind.SCAN or key.kind is not EntityKind.AGENT or key.id is None:
            raise ActionRejected(f"Sophos cannot {kind.value} {key}", vendor=self.vendor.value)
        try:
            tenant_id, _hostname = split_tenant_host(key.parent_value or "")
        except ValueError as e:
            raise ActionRejected(str(e), vendor=self.vendor.value) from e

        region = self.data_region(tenant_id)
        logger.info(f"Starting Sophos scan on endpoint {key.id} (tenant {tenant_id})")
        body = self._http.tenant_post(tenant_id, region, f"/endpoint/v1/endpoints/{key.id}/scans")
        reference = body.get("id") if isinstance(body, dict) else None
        return Ack(vendor=self.vendor, kind=kind, target=str(key), reference=reference, message="Scan requested")
