"""
Datto AV implementation of the ``VendorAdapter`` interface.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional

from ...api.adapter import Ack, ActionKind, ActionRoute, Route
from ...api.entities import SCOPE_AV_AGENT, SCOPE_AV_HOST, EntityKey, EntityKind, Record, Vendor, split_parent
from ...core.config import TechdeskConfig
from ...core.errors import ActionRejected, ConfigError, ValidationError
from ...core.logging import get_logger
from .datto_av_http import DattoAvHttpClient
from .datto_av_mapper import agents_filter, datto_av_agent_to_agent, datto_av_alert_to_alert, recent_alerts_filter


logger = get_logger("techdesk.integrations.datto_av.client")


class DattoAvClient:
    """
    Vendor adapter backed by Datto AV: agents by hostname, recent alerts per
    agent, and on-demand scans.
    """

    vendor = Vendor.DATTO_AV
    routes: FrozenSet[Route] = frozenset({(EntityKind.AGENT, SCOPE_AV_HOST), (EntityKind.ALERT, SCOPE_AV_AGENT)})
    actions: FrozenSet[ActionRoute] = frozenset({(ActionKind.SCAN, EntityKind.AGENT)})

    def __init__(self, http_client: DattoAvHttpClient, alert_limit: int = 5) -> None:
        self._http = http_client
        self._alert_limit = alert_limit

    @classmethod
    def from_config(cls, config: TechdeskConfig) -> "DattoAvClient":
        if not config.datto_av:
            raise ConfigError("Datto AV configuration is not set in TechdeskConfig")

        http_client = DattoAvHttpClient(
            base_url=config.datto_av.url,
            secret=config.datto_av.secret,
            timeout_seconds=config.datto_av.timeout_seconds,
        )
        return cls(http_client=http_client)

    def fetch(self, kind: EntityKind, parent_id: Optional[str]) -> List[Record]:
        scope, value = split_parent(parent_id)
        if kind is EntityKind.AGENT and scope == SCOPE_AV_HOST:
            return self.find_agents(value)
        if kind is EntityKind.ALERT and scope == SCOPE_AV_AGENT:
            return self.recent_alerts(value)
        raise ValidationError(f"Datto AV does not serve {kind.value} under {parent_id!r}")

    def find_agents(self, hostname: str) -> List[Record]:
        raw_agents = self._http.get_filtered("/api/AgentDetails", agents_filter(hostname))
        return [datto_av_agent_to_agent(raw) for raw in raw_agents or []]

    def recent_alerts(self, agent_id: str) -> List[Record]:
        raw_alerts = self._http.get_filtered("/api/Alerts", recent_alerts_filter(agent_id, self._alert_limit))
        return [datto_av_alert_to_alert(raw) for raw in raw_alerts or []]

    def perform_action(
        self,
        kind: ActionKind,
        key: EntityKey,
        params: Optional[Dict[str, Any]] = None,
    ) -> Ack:
        if kind is not ActionKind.SCAN or key.kind is not EntityKind.AGENT or key.id is None:
            raise ActionRejected(f"Datto AV cannot {kind.value} {key}", vendor=self.vendor.value)

        logger.info(f"Starting Datto AV scan on agent {key.id}")
        self._http.post("/api/Agents/scan", json_data={"id": key.id})
        return Ack(vendor=self.vendor, kind=kind, target=str(key), reference=key.id, message="Scan started")
