"""
Mapping logic between Datto AV payloads and techdesk domain records.
"""

from __future__ import annotations

from typing import Any, Dict

from ...api.entities import Agent, Alert, Vendor
from ..common import parse_timestamp


def datto_av_agent_to_agent(raw: Dict[str, Any]) -> Agent:
    status = raw.get("status")
    if status is None and raw.get("active") is not None:
        status = "active" if raw.get("active") else "inactive"
    return Agent(
        id=str(raw["id"]),
        hostname=raw.get("hostname") or "",
        vendor=Vendor.DATTO_AV,
        status=status,
        version=raw.get("version"),
        health=None if raw.get("alertCount") in (None, "", 0, "0") else f"{raw['alertCount']} alert(s)",
        isolated=bool(raw.get("isolated")),
        raw=raw,
    )


def datto_av_alert_to_alert(raw: Dict[str, Any]) -> Alert:
    return Alert(
        id=str(raw["id"]),
        message=raw.get("name") or raw.get("description") or raw.get("type") or "Alert",
        source=raw.get("sourceName") or raw.get("hostname"),
        priority=raw.get("severity"),
        created_at=parse_timestamp(raw.get("createdOn") or raw.get("eventTime")),
        resolved=bool(raw.get("archived")),
        vendor=Vendor.DATTO_AV,
        raw=raw,
    )


def agents_filter(hostname: str) -> Dict[str, Any]:
    return {"where": {"hostname": hostname.lower()}}


def recent_alerts_filter(agent_id: str, limit: int = 5) -> Dict[str, Any]:
    return {"where": {"agentId": agent_id}, "order": "createdOn DESC", "limit": limit}
