"""
Unit tests for the Datto AV vendor adapter.
"""

from unittest.mock import Mock

import pytest

from techdesk.api.adapter import ActionKind
from techdesk.api.entities import EntityKey, EntityKind
from techdesk.core.config import DattoAvConfig, TechdeskConfig
from techdesk.core.errors import ActionRejected, ValidationError
from techdesk.integrations.datto_av import DattoAvClient
from techdesk.integrations.datto_av.datto_av_http import DattoAvHttpClient


@pytest.fixture
def http():
    return Mock(spec=DattoAvHttpClient)


@pytest.fixture
def client(http):
    return DattoAvClient(http_client=http, alert_limit=5)


class TestDattoAvClient:
    """Test the Datto AV adapter."""

    def test_from_config(self):
        client = DattoAvClient.from_config(TechdeskConfig(datto_av=DattoAvConfig(url="https://av", secret="s")))
        assert client._http.base_url == "https://av"

    def test_agents_by_hostname(self, client, http):
        http.get_filtered.return_value = [{"id": "A1", "hostname": "pc01"}]

        agents = client.fetch(EntityKind.AGENT, "av-host:pc01")

        assert [a.id for a in agents] == ["A1"]
        http.get_filtered.assert_called_once_with("/api/AgentDetails", {"where": {"hostname": "pc01"}})

    def test_no_agents(self, client, http):
        http.get_filtered.return_value = None
        assert client.fetch(EntityKind.AGENT, "av-host:pc01") == []

    def test_recent_alerts(self, client, http):
        http.get_filtered.return_value = [{"id": "AL1", "name": "Eicar"}]

        alerts = client.fetch(EntityKind.ALERT, "av-agent:A1")

        assert alerts[0].message == "Eicar"
        endpoint, loopback_filter = http.get_filtered.call_args[0]
        assert endpoint == "/api/Alerts"
        assert loopback_filter["where"] == {"agentId": "A1"}
        assert loopback_filter["limit"] == 5

    def test_unserved_route(self, client):
        with pytest.raises(ValidationError):
            client.fetch(EntityKind.AGENT, "sophos-host:T1/pc01")

    def test_scan(self, client, http):
        key = EntityKey(EntityKind.AGENT, "av-host:pc01", "A1")

        ack = client.perform_action(ActionKind.SCAN, key)

        http.post.assert_called_once_with("/api/Agents/scan", json_data={"id": "A1"})
        assert ack.reference == "A1"
        assert ack.target == str(key)

    def test_scan_needs_an_agent(self, client, http):
        with pytest.raises(ActionRejected):
            client.perform_action(ActionKind.SCAN, EntityKey(EntityKind.AGENT, "av-host:pc01"))
        with pytest.raises(ActionRejected):
            client.perform_action(ActionKind.UPDATE_UDF, EntityKey(EntityKind.AGENT, "av-host:pc01", "A1"))
        http.post.assert_not_called()
