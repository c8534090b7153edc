"""
Datto RMM implementation of the ``VendorAdapter`` interface.

Serves sites, devices, device UDFs, site variables, open alerts, device
activity logs, script components and job results. Performs UDF updates,
quick jobs, site-variable edits and site settings updates.
"""

from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional

from ...api.adapter import Ack, ActionKind, ActionRoute, Route
from ...api.entities import (
    SCOPE_DEVICE,
    SCOPE_JOB,
    SCOPE_ORG,
    SCOPE_SITE,
    EntityKey,
    EntityKind,
    Record,
    Vendor,
    split_parent,
)
from ...core.config import TechdeskConfig
from ...core.errors import ActionRejected, ConfigError, NotFoundError, ValidationError
from ...core.logging import get_logger
from .datto_rmm_http import DattoRmmHttpClient
from .datto_rmm_mapper import (
    datto_activity_to_activity,
    datto_alert_to_alert,
    datto_component_to_component,
    datto_device_to_device,
    datto_device_to_udf,
    datto_job_result_to_job_result,
    datto_site_to_site,
    datto_variables_to_udf,
    quick_job_payload,
    site_update_payload,
    split_job_device,
    udf_update_payload,
    variable_payload,
)


logger = get_logger("techdesk.integrations.datto_rmm.client")

# Newest activity log entries requested per device.
ACTIVITY_LOG_SIZE = 100


class DattoRmmClient:
    """
    Vendor adapter backed by Datto RMM.
    """

    vendor = Vendor.DATTO_RMM
    routes: FrozenSet[Route] = frozenset(
        {
            (EntityKind.SITE, None),
            (EntityKind.SITE, SCOPE_ORG),
            (EntityKind.DEVICE, SCOPE_SITE),
            (EntityKind.UDF, SCOPE_SITE),
            (EntityKind.UDF, SCOPE_DEVICE),
            (EntityKind.ALERT, SCOPE_SITE),
            (EntityKind.ALERT, SCOPE_DEVICE),
            (EntityKind.ACTIVITY, SCOPE_DEVICE),
            (EntityKind.COMPONENT, None),
            (EntityKind.JOB_RESULT, SCOPE_JOB),
        }
    )
    actions: FrozenSet[ActionRoute] = frozenset(
        {
            (ActionKind.UPDATE_UDF, EntityKind.UDF),
            (ActionKind.CREATE_VARIABLE, EntityKind.UDF),
            (ActionKind.UPDATE_VARIABLE, EntityKind.UDF),
            (ActionKind.RUN_JOB, EntityKind.DEVICE),
            (ActionKind.UPDATE_SITE, EntityKind.SITE),
        }
    )

    def __init__(self, http_client: DattoRmmHttpClient, page_size: int = 250) -> None:
        self._http = http_client
        self._page_size = page_size

    @classmethod
    def from_config(cls, config: TechdeskConfig) -> "DattoRmmClient":
        """
        Factory to construct a client from ``TechdeskConfig``.
        """

        if not config.datto_rmm:
            raise ConfigError("Datto RMM configuration is not set in TechdeskConfig")

        http_client = DattoRmmHttpClient(
            api_url=config.datto_rmm.api_url,
            api_key=config.datto_rmm.api_key,
            secret_key=config.datto_rmm.secret_key,
            timeout_seconds=config.datto_rmm.timeout_seconds,
        )
        return cls(http_client=http_client, page_size=config.datto_rmm.page_size)

    def fetch(self, kind: EntityKind, parent_id: Optional[str]) -> List[Record]:
        scope, value = split_parent(parent_id)

        if kind is EntityKind.SITE and scope in (None, SCOPE_ORG):
            return self.list_sites(account_uid=value)
        if kind is EntityKind.DEVICE and scope == SCOPE_SITE:
            return self.list_devices(value)
        if kind is EntityKind.UDF and scope == SCOPE_SITE:
            return [self.get_site_variables(value)]
        if kind is EntityKind.UDF and scope == SCOPE_DEVICE:
            return [self.get_device_udfs(value)]
        if kind is EntityKind.ALERT and scope in (SCOPE_SITE, SCOPE_DEVICE):
            return self.list_open_alerts(scope, value)
        if kind is EntityKind.ACTIVITY and scope == SCOPE_DEVICE:
            return self.list_device_activities(value)
        if kind is EntityKind.COMPONENT and scope is None:
            return self.list_components()
        if kind is EntityKind.JOB_RESULT and scope == SCOPE_JOB:
            try:
                job_uid, device_uid = split_job_device(value)
            except ValueError as e:
                raise ValidationError(str(e)) from e
            return [self.get_job_result(job_uid, device_uid)]

        raise ValidationError(f"Datto RMM does not serve {kind.value} under {parent_id!r}")

    # Sites and devices

    def list_sites(self, account_uid: Optional[str] = None) -> List[Record]:
        raw_sites = self._http.get_paged("/api/v2/account/sites", "sites", self._page_size)
        if account_uid:
            raw_sites = [s for s in raw_sites if s.get("accountUid") == account_uid]
        return [datto_site_to_site(raw) for raw in raw_sites]

    def list_devices(self, site_uid: str) -> List[Record]:
        raw_devices = self._http.get_paged(f"/api/v2/site/{site_uid}/devices", "devices", self._page_size)
        return [datto_device_to_device(raw) for raw in raw_devices]

    # UDFs and variables

    def get_device_udfs(self, device_uid: str) -> Record:
        raw = self._http.get(f"/api/v2/device/{device_uid}")
        return datto_device_to_udf(raw)

    def get_site_variables(self, site_uid: str) -> Record:
        variables = self._http.get_paged(f"/api/v2/site/{site_uid}/variables", "variables", self._page_size)
        return datto_variables_to_udf(site_uid, variables)

    # Alerts

    def list_open_alerts(self, scope: str, uid: str) -> List[Record]:
        raw_alerts = self._http.get_paged(f"/api/v2/{scope}/{uid}/alerts/open", "alerts", self._page_size)
        alerts = [datto_alert_to_alert(raw) for raw in raw_alerts]
        return [a for a in alerts if a.id]

    # Activity, components and jobs

    def list_device_activities(self, device_uid: str) -> List[Record]:
        """
        Newest device activities of the device's site, narrowed to the device.

        The activity log is queried by numeric site id, so the device is
        looked up first for its numeric ids.
        """
        device = self._http.get(f"/api/v2/device/{device_uid}")
        params: Dict[str, Any] = {"size": ACTIVITY_LOG_SIZE, "order": "desc", "entities": "device"}
        if device.get("siteId") is not None:
            params["siteIds"] = device["siteId"]
        body = self._http.get("/api/v2/activity-logs", params=params)

        numeric_id = device.get("id")
        hostname = (device.get("hostname") or "").lower()
        activities = []
        for raw in body.get("activities") or []:
            if numeric_id is not None and raw.get("deviceId") is not None:
                if raw["deviceId"] != numeric_id:
                    continue
            elif (raw.get("hostname") or "").lower() != hostname:
                continue
            activity = datto_activity_to_activity(raw, device_uid)
            if activity.id:
                activities.append(activity)
        return activities

    def list_components(self) -> List[Record]:
        raw_components = self._http.get_paged("/api/v2/account/components", "components", self._page_size)
        return [datto_component_to_component(raw) for raw in raw_components if raw.get("uid")]

    def get_job_result(self, job_uid: str, device_uid: str) -> Record:
        base = f"/api/v2/job/{job_uid}/results/{device_uid}"
        body = self._http.get(base)
        # The RMM answers with either one result or a list of them.
        if isinstance(body, list):
            if not body:
                raise NotFoundError(f"No result for job {job_uid} on device {device_uid}", vendor=self.vendor.value)
            body = body[0]

        components = body.get("componentResults") or []
        stdout = self._http.get(f"{base}/stdout") if any(c.get("hasStdOut") for c in components) else None
        stderr = self._http.get(f"{base}/stderr") if any(c.get("hasStdErr") for c in components) else None
        return datto_job_result_to_job_result(body, job_uid, device_uid, stdout=stdout, stderr=stderr)

    # Actions

    def perform_action(
        self,
        kind: ActionKind,
        key: EntityKey,
        params: Optional[Dict[str, Any]] = None,
    ) -> Ack:
        params = params or {}
        if kind is ActionKind.UPDATE_UDF and key.kind is EntityKind.UDF and key.scope == SCOPE_DEVICE:
            return self.update_udf(key, params)
        if kind in (ActionKind.CREATE_VARIABLE, ActionKind.UPDATE_VARIABLE) and key.kind is EntityKind.UDF \
                and key.scope == SCOPE_SITE:
            return self.save_site_variable(kind, key, params)
        if kind is ActionKind.RUN_JOB and key.kind is EntityKind.DEVICE and key.id:
            return self.run_quick_job(key, params)
        if kind is ActionKind.UPDATE_SITE and key.kind is EntityKind.SITE and key.id:
            return self.update_site(key, params)
        raise ActionRejected(f"Datto RMM cannot {kind.value} {key}", vendor=self.vendor.value)

    def update_udf(self, key: EntityKey, params: Dict[str, Any]) -> Ack:
        try:
            payload = udf_update_payload(int(params["index"]), str(params.get("value", "")))
        except (KeyError, TypeError, ValueError) as e:
            raise ActionRejected(f"Invalid UDF update {params!r}: {e}", vendor=self.vendor.value) from e

        device_uid = key.parent_value
        logger.info(f"Updating {', '.join(payload)} on device {device_uid}")
        self._http.post(f"/api/v2/device/{device_uid}/udf", json_data=payload)
        return Ack(vendor=self.vendor, kind=ActionKind.UPDATE_UDF, target=str(key),
                   message=f"Updated {', '.join(payload)}")

    def save_site_variable(self, kind: ActionKind, key: EntityKey, params: Dict[str, Any]) -> Ack:
        site_uid = key.parent_value
        creating = kind is ActionKind.CREATE_VARIABLE
        try:
            payload = variable_payload(
                params.get("name"),
                params.get("value"),
                masked=bool(params.get("masked", False)) if creating else None,
            )
        except (AttributeError, ValueError) as e:
            raise ActionRejected(f"Invalid site variable {params!r}: {e}", vendor=self.vendor.value) from e

        if creating:
            logger.info(f"Creating site variable {payload['name']} on site {site_uid}")
            body = self._http.put(f"/api/v2/site/{site_uid}/variable", json_data=payload)
        else:
            variable_id = params.get("variable_id") or self._variable_id(site_uid, payload["name"])
            logger.info(f"Updating site variable {payload['name']} ({variable_id}) on site {site_uid}")
            body = self._http.post(f"/api/v2/site/{site_uid}/variable/{variable_id}", json_data=payload)

        reference = str(body["id"]) if isinstance(body, dict) and body.get("id") else None
        verb = "Created" if creating else "Updated"
        return Ack(vendor=self.vendor, kind=kind, target=str(key), reference=reference,
                   message=f"{verb} variable {payload['name']}")

    def _variable_id(self, site_uid: str, name: str) -> Any:
        variables = self._http.get_paged(f"/api/v2/site/{site_uid}/variables", "variables", self._page_size)
        for variable in variables:
            if variable.get("name") == name and variable.get("id") is not None:
                return variable["id"]
        raise ActionRejected(f"Site {site_uid} has no variable named {name!r}", vendor=self.vendor.value)

    def run_quick_job(self, key: EntityKey, params: Dict[str, Any]) -> Ack:
        try:
            payload = quick_job_payload(
                params.get("component_uid") or "",
                params.get("variables"),
                job_name=params.get("job_name") or "",
            )
        except (AttributeError, ValueError) as e:
            raise ActionRejected(f"Invalid quick job {params!r}: {e}", vendor=self.vendor.value) from e

        logger.info(f"Running component {payload['jobComponent']['componentUid']} on device {key.id}")
        body = self._http.put(f"/api/v2/device/{key.id}/quickjob", json_data=payload)
        job = (body or {}).get("job") or {}
        return Ack(
            vendor=self.vendor,
            kind=ActionKind.RUN_JOB,
            target=str(key),
            reference=job.get("uid"),
            message=f"Job {job.get('name') or payload['jobName']}: {job.get('status') or 'submitted'}",
        )

    def update_site(self, key: EntityKey, params: Dict[str, Any]) -> Ack:
        try:
            payload = site_update_payload(params)
        except ValueError as e:
            raise ActionRejected(f"Invalid site settings {params!r}: {e}", vendor=self.vendor.value) from e

        logger.info(f"Updating settings of site {key.id}: {', '.join(payload)}")
        self._http.post(f"/api/v2/site/{key.id}", json_data=payload)
        return Ack(vendor=self.vendor, kind=ActionKind.UPDATE_SITE, target=str(key),
                   message=f"Updated {', '.join(payload)}")
