"""
Unit tests for the RocketCyber vendor adapter.
"""

from unittest.mock import Mock

import pytest

from techdesk.api.adapter import ActionKind
from techdesk.api.entities import EntityKey, EntityKind
from techdesk.core.config import RocketCyberConfig, TechdeskConfig
from techdesk.core.errors import ActionRejected, ValidationError
from techdesk.integrations.rocket_cyber import RocketCyberClient
from techdesk.integrations.rocket_cyber.rocket_cyber_http import RocketCyberHttpClient


@pytest.fixture
def http():
    return Mock(spec=RocketCyberHttpClient)


class TestRocketCyberClient:
    """Test the RocketCyber adapter."""

    def test_from_config(self):
        config = TechdeskConfig(rocket_cyber=RocketCyberConfig(api_url="https://api-us.rocketcyber.com", api_key="k"))
        assert RocketCyberClient.from_config(config)._http.api_key == "k"

    def test_incident_stats_follow_pages(self, http):
        http.get.side_effect = [
            {"totalCount": 3, "data": [{"accountId": 1, "status": "open"}, {"accountId": 1, "status": "closed"}]},
            {"totalCount": 3, "data": [{"accountId": 2, "status": "open"}]},
        ]
        client = RocketCyberClient(http_client=http, page_size=2)

        stats = client.fetch(EntityKind.INCIDENT_STAT, None)

        assert {(s.id, s.active, s.resolved) for s in stats} == {("1", 1, 1), ("2", 1, 0)}
        pages = [c[1]["params"] for c in http.get.call_args_list]
        assert pages == [{"pageSize": 2, "page": 1}, {"pageSize": 2, "page": 2}]

    def test_paging_stops_on_empty_page(self, http):
        http.get.side_effect = [{"totalCount": 10, "data": [{"accountId": 1}]}, {"totalCount": 10, "data": []}]
        client = RocketCyberClient(http_client=http)

        assert len(client.list_incidents()) == 1
        assert http.get.call_count == 2

    def test_paging_is_capped(self, http):
        http.get.return_value = {"totalCount": 1000, "data": [{"accountId": 1}]}
        client = RocketCyberClient(http_client=http, max_pages=3)

        assert len(client.list_incidents()) == 3
        assert http.get.call_count == 3

    def test_agents_by_hostname(self, http):
        http.get.return_value = {"data": [{"id": 5, "hostname": "pc01"}]}
        client = RocketCyberClient(http_client=http)

        agents = client.fetch(EntityKind.AGENT, "mdr-host:pc01")

        assert agents[0].id == "5"
        http.get.assert_called_once_with("/agents", params={"hostname": "pc01"})

    def test_unserved_route(self, http):
        with pytest.raises(ValidationError):
            RocketCyberClient(http_client=http).fetch(EntityKind.AGENT, "av-host:pc01")

    def test_actions_rejected(self, http):
        with pytest.raises(ActionRejected):
            RocketCyberClient(http_client=http).perform_action(
                ActionKind.SCAN, EntityKey(EntityKind.AGENT, "mdr-host:pc01", "5")
            )
