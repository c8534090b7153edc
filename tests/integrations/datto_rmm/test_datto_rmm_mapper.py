"""
Unit tests for Datto RMM payload mapping.
"""

from datetime import datetime, timezone

import pytest

from techdesk.api.entities import Vendor
from techdesk.integrations.datto_rmm.datto_rmm_mapper import (
    datto_activity_to_activity,
    datto_alert_to_alert,
    datto_component_to_component,
    datto_device_to_device,
    datto_device_to_udf,
    datto_job_result_to_job_result,
    datto_site_to_site,
    datto_variables_to_udf,
    parse_activity_details,
    quick_job_payload,
    site_update_payload,
    split_job_device,
    udf_update_payload,
    variable_payload,
)


def test_datto_site_to_site():
    raw = {
        "uid": "S1",
        "accountUid": "A1",
        "name": "Acme Corp",
        "description": "",
        "notes": "Main office",
        "devicesStatus": {"numberOfDevices": 12, "numberOfOnlineDevices": 9, "numberOfOfflineDevices": 3},
        "portalUrl": "https://pinotage.centrastage.net/site/1",
    }

    site = datto_site_to_site(raw)

    assert site.id == "S1"
    assert site.name == "Acme Corp"
    assert site.description is None
    assert site.notes == "Main office"
    assert (site.device_count, site.online_count, site.offline_count) == (12, 9, 3)
    assert site.raw is raw


def test_datto_device_to_device():
    raw = {
        "uid": "D1",
        "siteUid": "S1",
        "hostname": "PC01",
        "online": True,
        "operatingSystem": "Windows 11 Pro",
        "lastSeen": 1714564800000,
        "intIpAddress": "10.0.0.5",
        "extIpAddress": "203.0.113.7",
        "lastLoggedInUser": "ACME\\jdoe",
        "antivirus": {"antivirusProduct": "Datto AV", "antivirusStatus": "RunningAndUpToDate"},
        "patchManagement": {"patchStatus": "FullyPatched"},
        "rebootRequired": False,
    }

    device = datto_device_to_device(raw)

    assert device.id == "D1"
    assert device.site_id == "S1"
    assert device.hostname == "PC01"
    assert device.online is True
    assert device.last_seen == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert device.av_product == "Datto AV"
    assert device.av_status == "RunningAndUpToDate"
    assert device.patch_status == "FullyPatched"
    assert device.reboot_required is False


def test_datto_device_without_antivirus():
    device = datto_device_to_device({"uid": "D2", "hostname": "srv", "antivirus": None})
    assert device.av_product is None
    assert device.site_id == ""


def test_datto_device_to_udf_fills_every_slot():
    udf = datto_device_to_udf({"uid": "D1", "udf": {"udf1": "Rack 4", "udf30": "x", "udf2": None}})

    assert udf.id == udf.owner_id == "D1"
    assert len(udf.fields) == 30
    assert udf.get("udf1") == "Rack 4"
    assert udf.get("udf2") == ""
    assert udf.get("udf30") == "x"


def test_datto_variables_to_udf():
    udf = datto_variables_to_udf(
        "S1",
        [
            {"name": "tuiSophosTenantId", "value": "T1"},
            {"name": "tuiMdrId", "value": None},
            {"value": "orphan"},
        ],
    )

    assert udf.id == "S1"
    assert udf.fields == {"tuiSophosTenantId": "T1", "tuiMdrId": ""}


def test_datto_alert_to_alert():
    raw = {
        "alertUid": "AL1",
        "priority": "High",
        "diagnostics": " Disk C: below 5% \n",
        "resolved": False,
        "timestamp": 1714564800000,
        "alertSourceInfo": {"deviceName": "PC01", "siteName": "Acme Corp"},
    }

    alert = datto_alert_to_alert(raw)

    assert alert.id == "AL1"
    assert alert.message == "Disk C: below 5%"
    assert alert.source == "PC01"
    assert alert.priority == "High"
    assert alert.vendor is Vendor.DATTO_RMM


def test_datto_alert_falls_back_to_context_class():
    alert = datto_alert_to_alert({"alertUid": "AL2", "alertContext": {"@class": "perf_resource_usage_ctx"}})
    assert alert.message == "perf_resource_usage_ctx"
    assert alert.source is None


@pytest.mark.parametrize("index", [0, 31])
def test_udf_update_payload_range(index):
    with pytest.raises(ValueError):
        udf_update_payload(index, "x")


def test_udf_update_payload():
    assert udf_update_payload(7, "Rack 4") == {"udf7": "Rack 4"}


def test_datto_site_settings():
    site = datto_site_to_site({"uid": "S1", "name": "Acme", "accountUid": "A1", "onDemand": True,
                               "splashtopAutoInstall": False})
    assert site.account_id == "A1"
    assert site.on_demand is True
    assert site.splashtop_auto_install is False


def test_datto_activity_to_activity():
    raw = {
        "id": 9001,
        "entity": "DEVICE",
        "category": "job",
        "action": "deployment",
        "date": 1714564800,
        "hostname": "PC01",
        "site": {"id": 12, "name": "Acme Corp"},
        "user": {"userName": "jdoe"},
        "details": '{"job.uid": "J1", "job.name": "Disk cleanup", "job.status": "success", "job.attempt": 1}',
    }

    activity = datto_activity_to_activity(raw, "D1")

    assert activity.id == "9001"
    assert activity.device_id == "D1"
    assert activity.occurred_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    assert activity.user_name == "jdoe"
    assert activity.site_name == "Acme Corp"
    assert (activity.job_id, activity.job_name, activity.job_status) == ("J1", "Disk cleanup", "success")
    assert activity.details["job.attempt"] == "1"


def test_datto_activity_without_job():
    activity = datto_activity_to_activity({"id": 1, "category": "remote", "details": "Web remote session"}, "D1")

    assert activity.user_name == "System"
    assert activity.job_id is None
    assert activity.details == {"details": "Web remote session"}


@pytest.mark.parametrize("details,expected", [
    (None, {}),
    ("", {}),
    ('["a"]', {"details": '["a"]'}),
    ({"job.uid": "J1"}, {"job.uid": "J1"}),
])
def test_parse_activity_details(details, expected):
    assert parse_activity_details(details) == expected


def test_datto_component_to_component():
    raw = {
        "uid": "C1",
        "name": "Disk cleanup",
        "categoryCode": "script",
        "credentialsRequired": True,
        "variables": [
            {"name": "drive", "defaultVal": "C:", "type": "string", "description": "Drive to clean"},
            {"defaultVal": "orphan"},
        ],
    }

    component = datto_component_to_component(raw)

    assert component.id == "C1"
    assert component.category == "script"
    assert component.credentials_required is True
    assert [v.name for v in component.variables] == ["drive"]
    assert component.variables[0].default == "C:"
    assert component.variables[0].variable_type == "string"


def test_datto_job_result_joins_output_per_component():
    raw = {
        "jobUid": "J1",
        "deviceUid": "D1",
        "ranOn": "2024-05-01T12:00:00Z",
        "jobDeploymentStatus": "success",
        "componentResults": [
            {"componentUid": "C1", "componentName": "Disk cleanup", "componentStatus": "success",
             "numberOfWarnings": 1, "hasStdOut": True, "hasStdErr": False},
            {"componentUid": "C2", "componentName": "Reboot", "hasStdOut": False, "hasStdErr": True},
        ],
    }
    stdout = [{"componentUid": "C1", "stdData": "freed "}, {"componentUid": "C1", "stdData": "2 GB"}]
    stderr = [{"componentUid": "C2", "stdData": "reboot postponed"}]

    result = datto_job_result_to_job_result(raw, "J1", "D1", stdout=stdout, stderr=stderr)

    assert result.status == "success"
    assert result.ran_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    cleanup, reboot = result.components
    assert (cleanup.stdout, cleanup.stderr, cleanup.warnings) == ("freed 2 GB", None, 1)
    assert (reboot.stdout, reboot.stderr) == (None, "reboot postponed")


def test_datto_job_result_without_output():
    result = datto_job_result_to_job_result({"componentResults": [{"componentUid": "C1"}]}, "J1", "D1")

    assert result.id == "J1"
    assert result.device_id == "D1"
    assert result.components[0].name == "C1"
    assert result.output_rows == [("component", 0)]


def test_quick_job_payload():
    payload = quick_job_payload("C1", {"drive": "C:", "retries": 3})

    assert payload == {
        "jobName": "techdesk C1",
        "jobComponent": {
            "componentUid": "C1",
            "variables": [{"name": "drive", "value": "C:"}, {"name": "retries", "value": "3"}],
        },
    }
    assert quick_job_payload("C1", job_name="Cleanup")["jobName"] == "Cleanup"


def test_quick_job_payload_requires_component():
    with pytest.raises(ValueError):
        quick_job_payload("")


def test_variable_payload():
    assert variable_payload(" backupDrive ", None) == {"name": "backupDrive", "value": ""}
    assert variable_payload("token", "s3cret", masked=True) == {"name": "token", "value": "s3cret", "masked": True}
    with pytest.raises(ValueError):
        variable_payload("  ", "x")


def test_site_update_payload():
    payload = site_update_payload({"name": "Acme", "on_demand": False, "notes": None})
    assert payload == {"name": "Acme", "onDemand": False}


@pytest.mark.parametrize("settings", [{"notes": "n"}, {"name": "Acme", "portal_url": "x"}])
def test_site_update_payload_rejects(settings):
    with pytest.raises(ValueError):
        site_update_payload(settings)


def test_split_job_device():
    assert split_job_device("J1/D1") == ("J1", "D1")
    with pytest.raises(ValueError):
        split_job_device("J1")
