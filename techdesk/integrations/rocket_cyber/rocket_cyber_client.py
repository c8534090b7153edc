"""
RocketCyber implementation of the ``VendorAdapter`` interface.

Read-only: incident statistics per MDR account and agents by hostname.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional

from ...api.adapter import Ack, ActionKind, ActionRoute, Route
from ...api.entities import SCOPE_MDR_HOST, EntityKey, EntityKind, Record, Vendor, split_parent
from ...core.config import TechdeskConfig
from ...core.errors import ActionRejected, ConfigError, ValidationError
from ...core.logging import get_logger
from .rocket_cyber_http import RocketCyberHttpClient
from .rocket_cyber_mapper import incidents_to_stats, rocket_agent_to_agent


logger = get_logger("techdesk.integrations.rocket_cyber.client")


class RocketCyberClient:
    """
    Vendor adapter backed by RocketCyber.
    """

    vendor = Vendor.ROCKET_CYBER
    routes: FrozenSet[Route] = frozenset({(EntityKind.INCIDENT_STAT, None), (EntityKind.AGENT, SCOPE_MDR_HOST)})
    actions: FrozenSet[ActionRoute] = frozenset()

    def __init__(self, http_client: RocketCyberHttpClient, page_size: int = 100, max_pages: int = 50) -> None:
        self._http = http_client
        self._page_size = page_size
        self._max_pages = max_pages

    @classmethod
    def from_config(cls, config: TechdeskConfig) -> "RocketCyberClient":
        if not config.rocket_cyber:
            raise ConfigError("RocketCyber configuration is not set in TechdeskConfig")

        http_client = RocketCyberHttpClient(
            api_url=config.rocket_cyber.api_url,
            api_key=config.rocket_cyber.api_key,
            timeout_seconds=config.rocket_cyber.timeout_seconds,
        )
        return cls(http_client=http_client)

    def fetch(self, kind: EntityKind, parent_id: Optional[str]) -> List[Record]:
        scope, value = split_parent(parent_id)
        if kind is EntityKind.INCIDENT_STAT and scope is None:
            return self.incident_stats()
        if kind is EntityKind.AGENT and scope == SCOPE_MDR_HOST:
            return self.find_agents(value)
        raise ValidationError(f"RocketCyber does not serve {kind.value} under {parent_id!r}")

    def list_incidents(self) -> List[Dict[str, Any]]:
        """
        Every incident across accounts, following ``page`` until
        ``totalCount`` is reached.
        """
        incidents: List[Dict[str, Any]] = []
        for page in range(1, self._max_pages + 1):
            body = self._http.get("/incidents", params={"pageSize": self._page_size, "page": page})
            data = body.get("data") or []
            incidents.extend(data)
            total = body.get("totalCount")
            if not data or total is None or len(incidents) >= total:
                break
        else:
            logger.warning(f"RocketCyber incidents truncated at {len(incidents)} after {self._max_pages} pages")
        return incidents

    def incident_stats(self) -> List[Record]:
        return incidents_to_stats(self.list_incidents())

    def find_agents(self, hostname: str) -> List[Record]:
        body = self._http.get("/agents", params={"hostname": hostname})
        return [rocket_agent_to_agent(raw) for raw in body.get("data") or []]

    def perform_action(
        self,
        kind: ActionKind,
        key: EntityKey,
        params: Optional[Dict[str, Any]] = None,
    ) -> Ack:
        raise ActionRejected(f"RocketCyber does not support {kind.value}", vendor=self.vendor.value)
