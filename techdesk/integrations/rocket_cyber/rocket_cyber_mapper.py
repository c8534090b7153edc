"""
Mapping logic between RocketCyber payloads and techdesk domain records.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List

from ...api.entities import Agent, IncidentStat, Vendor


def is_resolved(incident: Dict[str, Any]) -> bool:
    status = str(incident.get("status") or "").lower()
    return status in ("resolved", "closed") or bool(incident.get("resolvedAt"))


def incidents_to_stats(incidents: Iterable[Dict[str, Any]]) -> List[IncidentStat]:
    """
    Aggregate incidents into active/resolved counts per customer account,
    ordered by account name.
    """
    counts: Dict[str, Dict[str, Any]] = {}
    for incident in incidents:
        account_id = str(incident.get("accountId") or "")
        if not account_id:
            continue
        entry = counts.setdefault(
            account_id,
            {"name": incident.get("accountName") or account_id, "active": 0, "resolved": 0},
        )
        entry["resolved" if is_resolved(incident) else "active"] += 1

    stats = [
        IncidentStat(
            id=account_id,
            account_name=entry["name"],
            active=entry["active"],
            resolved=entry["resolved"],
        )
        for account_id, entry in counts.items()
    ]
    return sorted(stats, key=lambda s: s.account_name.lower())


def rocket_agent_to_agent(raw: Dict[str, Any]) -> Agent:
    return Agent(
        id=str(raw["id"]),
        hostname=raw.get("hostname") or "",
        vendor=Vendor.ROCKET_CYBER,
        status=raw.get("connectivity") or raw.get("status"),
        version=raw.get("agentVersion") or raw.get("version"),
        raw=raw,
    )
