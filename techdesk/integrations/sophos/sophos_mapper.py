"""
Mapping logic between Sophos Central payloads and techdesk domain records.
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ...api.entities import Agent, Case, Vendor
from ..common import nested, parse_timestamp


def sophos_case_to_case(raw: Dict[str, Any]) -> Case:
    return Case(
        id=str(raw["id"]),
        description=raw.get("description") or raw.get("name"),
        severity=raw.get("severity"),
        status=raw.get("status"),
        case_type=raw.get("type"),
        created_at=parse_timestamp(raw.get("createdAt")),
        raw=raw,
    )


def sophos_endpoint_to_agent(raw: Dict[str, Any]) -> Agent:
    return Agent(
        id=str(raw["id"]),
        hostname=raw.get("hostname") or "",
        vendor=Vendor.SOPHOS,
        status=raw.get("type"),
        version=nested(raw, "os", "name"),
        health=nested(raw, "health", "overall"),
        isolated=bool(nested(raw, "isolation", "isIsolated")),
        raw=raw,
    )


def exact_hostname_first(agents: List[Agent], hostname: str) -> List[Agent]:
    """
    ``hostnameContains`` is a substring search; put exact matches first so
    the device's own endpoint is the one actions target.
    """
    wanted = hostname.lower()
    return sorted(agents, key=lambda a: a.hostname.lower() != wanted)


def split_tenant_host(value: str) -> Tuple[str, str]:
    """
    ``"<tenant>/<hostname>"`` -> ``(tenant, hostname)``.
    """
    tenant, sep, hostname = value.partition("/")
    if not sep or not tenant or not hostname:
        raise ValueError(f"Expected '<tenant>/<hostname>', got {value!r}")
    return tenant, hostname
