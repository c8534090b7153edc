"""
Unit tests for configuration loading.

Covers the .env parser, environment precedence and per-vendor sections.
"""

import pytest

from techdesk.core.config import load_config, load_env_file
from techdesk.core.errors import ConfigError


RMM_ENV = {
    "DATTO_API_URL": "https://pinotage-api.centrastage.net",
    "DATTO_API_KEY": "key",
    "DATTO_SECRET_KEY": "secret",
}


class TestLoadEnvFile:
    """Test the .env parser."""

    def test_missing_file_is_empty(self, tmp_path):
        assert load_env_file(str(tmp_path / "nope.env")) == {}

    def test_parses_comments_quotes_and_export(self, tmp_path):
        """Comments and blanks are skipped, quotes and ``export`` removed."""
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# Datto\n"
            "\n"
            "DATTO_API_KEY=abc\n"
            'export DATTO_SECRET_KEY="s3cr=t"\n'
            "SOPHOS_CLIENT_ID='client'\n"
            "not a pair\n"
        )

        assert load_env_file(str(env_file)) == {
            "DATTO_API_KEY": "abc",
            "DATTO_SECRET_KEY": "s3cr=t",
            "SOPHOS_CLIENT_ID": "client",
        }


class TestLoadConfig:
    """Test building TechdeskConfig from the environment."""

    def test_empty_environment_configures_no_vendor(self, tmp_path):
        config = load_config(str(tmp_path / "none.env"), environ={})

        assert config.datto_rmm is None
        assert config.datto_av is None
        assert config.sophos is None
        assert config.rocket_cyber is None
        assert config.workspace.cache_ttl_seconds == 300.0
        assert config.workspace.action_grace_seconds == 5.0
        assert config.logging.log_level == "INFO"

    def test_vendor_section(self, tmp_path):
        config = load_config(str(tmp_path / "none.env"), environ=dict(RMM_ENV, DATTO_TIMEOUT_SECONDS="20"))

        assert config.datto_rmm.api_url == "https://pinotage-api.centrastage.net"
        assert config.datto_rmm.timeout_seconds == 20
        assert config.datto_rmm.page_size == 250

    def test_environment_overrides_env_file(self, tmp_path):
        """Process environment wins over the .env file."""
        env_file = tmp_path / ".env"
        env_file.write_text("ROCKETCYBER_API_URL=https://file\nROCKETCYBER_API_KEY=file-key\n")

        config = load_config(str(env_file), environ={"ROCKETCYBER_API_KEY": "env-key"})

        assert config.rocket_cyber.api_url == "https://file"
        assert config.rocket_cyber.api_key == "env-key"

    def test_partial_section_is_an_error(self, tmp_path):
        with pytest.raises(ConfigError, match="SOPHOS_PARTNER_ID"):
            load_config(
                str(tmp_path / "none.env"),
                environ={"SOPHOS_CLIENT_ID": "id", "SOPHOS_CLIENT_SECRET": "secret"},
            )

    def test_workspace_policy(self, tmp_path):
        config = load_config(
            str(tmp_path / "none.env"),
            environ={
                "TECHDESK_CACHE_TTL_SECONDS": "60",
                "TECHDESK_ACTION_GRACE_SECONDS": "2.5",
                "TECHDESK_FETCH_WORKERS": "4",
            },
        )

        assert config.workspace.cache_ttl_seconds == 60.0
        assert config.workspace.action_grace_seconds == 2.5
        assert config.workspace.fetch_workers == 4

    @pytest.mark.parametrize(
        "environ",
        [
            {"TECHDESK_CACHE_TTL_SECONDS": "soon"},
            {"DATTO_TIMEOUT_SECONDS": "1.5"},
            {"TECHDESK_FETCH_WORKERS": "0"},
        ],
    )
    def test_invalid_numbers(self, tmp_path, environ):
        with pytest.raises(ConfigError):
            load_config(str(tmp_path / "none.env"), environ=environ)
