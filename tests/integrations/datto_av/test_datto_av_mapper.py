"""
Unit tests for Datto AV payload mapping and filters.
"""

from techdesk.api.entities import Vendor
from techdesk.integrations.datto_av.datto_av_mapper import (
    agents_filter,
    datto_av_agent_to_agent,
    datto_av_alert_to_alert,
    recent_alerts_filter,
)


def test_agent_mapping():
    agent = datto_av_agent_to_agent(
        {"id": 42, "hostname": "pc01", "status": "protected", "version": "5.2.1", "alertCount": 3, "isolated": True}
    )

    assert agent.id == "42"
    assert agent.vendor is Vendor.DATTO_AV
    assert agent.status == "protected"
    assert agent.health == "3 alert(s)"
    assert agent.isolated is True


def test_agent_status_from_active_flag():
    agent = datto_av_agent_to_agent({"id": "A1", "hostname": "pc01", "active": False, "alertCount": 0})
    assert agent.status == "inactive"
    assert agent.health is None
    assert agent.isolated is False


def test_alert_mapping():
    alert = datto_av_alert_to_alert(
        {
            "id": "AL1",
            "name": "Trojan.Generic detected",
            "hostname": "pc01",
            "severity": "critical",
            "createdOn": "2024-05-01T12:00:00Z",
            "archived": True,
        }
    )

    assert alert.message == "Trojan.Generic detected"
    assert alert.source == "pc01"
    assert alert.priority == "critical"
    assert alert.created_at.year == 2024
    assert alert.resolved is True
    assert alert.vendor is Vendor.DATTO_AV


def test_alert_message_fallbacks():
    assert datto_av_alert_to_alert({"id": "1", "type": "PUP"}).message == "PUP"
    assert datto_av_alert_to_alert({"id": "2"}).message == "Alert"


def test_filters():
    assert agents_filter("PC01") == {"where": {"hostname": "pc01"}}
    assert recent_alerts_filter("A1", limit=3) == {
        "where": {"agentId": "A1"},
        "order": "createdOn DESC",
        "limit": 3,
    }
