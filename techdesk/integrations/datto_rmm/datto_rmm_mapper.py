"""
Mapping logic between Datto RMM payloads and techdesk domain records.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from ...api.entities import (
    Activity,
    Alert,
    Component,
    ComponentResult,
    ComponentVariable,
    Device,
    JobResult,
    Site,
    Udf,
    Vendor,
)
from ..common import nested, parse_timestamp


UDF_SLOTS = 30

# Site settings the RMM accepts on ``POST /api/v2/site/{uid}``.
SITE_SETTINGS = {
    "name": "name",
    "description": "description",
    "notes": "notes",
    "on_demand": "onDemand",
    "splashtop_auto_install": "splashtopAutoInstall",
}


# Datto RMM → techdesk


def datto_site_to_site(raw: Dict[str, Any]) -> Site:
    status = raw.get("devicesStatus") or {}
    return Site(
        id=str(raw["uid"]),
        name=raw.get("name") or "",
        description=raw.get("description") or None,
        notes=raw.get("notes") or None,
        device_count=int(status.get("numberOfDevices") or 0),
        online_count=int(status.get("numberOfOnlineDevices") or 0),
        offline_count=int(status.get("numberOfOfflineDevices") or 0),
        portal_url=raw.get("portalUrl"),
        account_id=raw.get("accountUid"),
        on_demand=raw.get("onDemand"),
        splashtop_auto_install=raw.get("splashtopAutoInstall"),
        raw=raw,
    )


def datto_device_to_device(raw: Dict[str, Any]) -> Device:
    return Device(
        id=str(raw["uid"]),
        site_id=str(raw.get("siteUid") or ""),
        hostname=raw.get("hostname") or "",
        online=bool(raw.get("online")),
        operating_system=raw.get("operatingSystem"),
        last_seen=parse_timestamp(raw.get("lastSeen")),
        int_ip_address=raw.get("intIpAddress"),
        ext_ip_address=raw.get("extIpAddress"),
        last_logged_in_user=raw.get("lastLoggedInUser"),
        av_product=nested(raw, "antivirus", "antivirusProduct"),
        av_status=nested(raw, "antivirus", "antivirusStatus"),
        patch_status=nested(raw, "patchManagement", "patchStatus"),
        reboot_required=raw.get("rebootRequired"),
        portal_url=raw.get("portalUrl"),
        raw=raw,
    )


def datto_device_to_udf(raw: Dict[str, Any]) -> Udf:
    """
    All 30 UDF slots of a device; unset slots are empty strings so the
    editor can show every slot.
    """
    udf = raw.get("udf") or {}
    fields = {f"udf{i}": udf.get(f"udf{i}") or "" for i in range(1, UDF_SLOTS + 1)}
    device_id = str(raw["uid"])
    return Udf(id=device_id, owner_id=device_id, fields=fields, raw=udf)


def datto_variables_to_udf(site_id: str, variables: Iterable[Dict[str, Any]]) -> Udf:
    variables = list(variables)
    fields = {v["name"]: v.get("value") or "" for v in variables if v.get("name")}
    return Udf(id=site_id, owner_id=site_id, fields=fields, raw={"variables": variables})


def datto_alert_to_alert(raw: Dict[str, Any]) -> Alert:
    source = nested(raw, "alertSourceInfo", "deviceName") or nested(raw, "alertSourceInfo", "siteName")
    message = raw.get("diagnostics") or nested(raw, "alertContext", "@class") or "Alert"
    return Alert(
        id=str(raw.get("alertUid") or ""),
        message=message.strip(),
        source=source,
        priority=raw.get("priority"),
        created_at=parse_timestamp(raw.get("timestamp")),
        resolved=bool(raw.get("resolved")),
        vendor=Vendor.DATTO_RMM,
        raw=raw,
    )


def parse_activity_details(details: Any) -> Dict[str, str]:
    """
    Activity ``details`` is a JSON object serialized into a string; anything
    else is kept verbatim under ``"details"``.
    """
    if not details:
        return {}
    if isinstance(details, str):
        try:
            parsed = json.loads(details)
        except ValueError:
            return {"details": details}
    else:
        parsed = details
    if not isinstance(parsed, dict):
        return {"details": str(details)}
    return {str(k): v if isinstance(v, str) else json.dumps(v) for k, v in parsed.items()}


def datto_activity_to_activity(raw: Dict[str, Any], device_id: str) -> Activity:
    details = parse_activity_details(raw.get("details"))
    return Activity(
        id=str(raw.get("id") or ""),
        device_id=device_id,
        category=raw.get("category"),
        action=raw.get("action"),
        entity=raw.get("entity"),
        occurred_at=parse_timestamp(raw.get("date")),
        user_name=nested(raw, "user", "userName") or "System",
        site_name=nested(raw, "site", "name"),
        hostname=raw.get("hostname"),
        job_id=details.get("job.uid") or None,
        job_name=details.get("job.name") or None,
        job_status=details.get("job.status") or None,
        details=details,
        raw=raw,
    )


def datto_component_to_component(raw: Dict[str, Any]) -> Component:
    variables = tuple(
        ComponentVariable(
            name=v["name"],
            default=v.get("defaultVal"),
            variable_type=v.get("type"),
            description=v.get("description"),
            options=tuple(v.get("options") or ()),
        )
        for v in raw.get("variables") or []
        if v.get("name")
    )
    return Component(
        id=str(raw["uid"]),
        name=raw.get("name") or "",
        description=raw.get("description") or None,
        category=raw.get("categoryCode"),
        credentials_required=bool(raw.get("credentialsRequired")),
        variables=variables,
        raw=raw,
    )


def _std_data_by_component(output: Optional[Iterable[Dict[str, Any]]]) -> Dict[str, str]:
    collected: Dict[str, List[str]] = {}
    for chunk in output or []:
        uid = chunk.get("componentUid") or ""
        collected.setdefault(uid, []).append(chunk.get("stdData") or "")
    return {uid: "".join(parts) for uid, parts in collected.items()}


def datto_job_result_to_job_result(
    raw: Dict[str, Any],
    job_id: str,
    device_id: str,
    stdout: Optional[Iterable[Dict[str, Any]]] = None,
    stderr: Optional[Iterable[Dict[str, Any]]] = None,
) -> JobResult:
    """
    Job result of one device. ``stdout``/``stderr`` are the vendor's output
    chunks; they are attached to the components flagged as having output.
    """
    out = _std_data_by_component(stdout)
    err = _std_data_by_component(stderr)
    components = []
    for comp in raw.get("componentResults") or []:
        uid = comp.get("componentUid")
        components.append(
            ComponentResult(
                component_id=uid,
                name=comp.get("componentName") or uid or "component",
                status=comp.get("componentStatus"),
                warnings=int(comp.get("numberOfWarnings") or 0),
                stdout=out.get(uid or "", "") if comp.get("hasStdOut") else None,
                stderr=err.get(uid or "", "") if comp.get("hasStdErr") else None,
            )
        )
    return JobResult(
        id=str(raw.get("jobUid") or job_id),
        device_id=str(raw.get("deviceUid") or device_id),
        status=raw.get("jobDeploymentStatus"),
        ran_at=parse_timestamp(raw.get("ranOn")),
        components=tuple(components),
        raw=raw,
    )


# techdesk → Datto RMM


def udf_update_payload(index: int, value: str) -> Dict[str, str]:
    """
    Body of ``POST /api/v2/device/{uid}/udf`` setting one slot.
    """
    if not 1 <= index <= UDF_SLOTS:
        raise ValueError(f"UDF index must be between 1 and {UDF_SLOTS}, got {index}")
    return {f"udf{index}": value}


def quick_job_payload(component_uid: str, variables: Optional[Mapping[str, Any]] = None, job_name: str = "") -> Dict[str, Any]:
    """
    Body of ``PUT /api/v2/device/{uid}/quickjob``.
    """
    if not component_uid:
        raise ValueError("component_uid is required")
    return {
        "jobName": job_name or f"techdesk {component_uid}",
        "jobComponent": {
            "componentUid": component_uid,
            "variables": [{"name": str(k), "value": str(v)} for k, v in (variables or {}).items()],
        },
    }


def variable_payload(name: str, value: Any, masked: Optional[bool] = None) -> Dict[str, Any]:
    """
    Body of the site-variable create (``masked`` given) or update call.
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("variable name is required")
    payload: Dict[str, Any] = {"name": name, "value": "" if value is None else str(value)}
    if masked is not None:
        payload["masked"] = bool(masked)
    return payload


def site_update_payload(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Body of ``POST /api/v2/site/{uid}``. The RMM requires the name on every
    update; unknown settings are refused.
    """
    unknown = set(settings) - set(SITE_SETTINGS)
    if unknown:
        raise ValueError(f"unknown site settings: {', '.join(sorted(unknown))}")
    if not (settings.get("name") or "").strip():
        raise ValueError("site name is required")
    return {SITE_SETTINGS[k]: v for k, v in settings.items() if v is not None}


def split_job_device(value: str) -> Tuple[str, str]:
    """
    ``"<job uid>/<device uid>"`` -> ``(job uid, device uid)``.
    """
    job_uid, sep, device_uid = value.partition("/")
    if not sep or not job_uid or not device_uid:
        raise ValueError(f"Expected '<job uid>/<device uid>', got {value!r}")
    return job_uid, device_uid
