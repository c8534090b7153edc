"""
Configuration models and loading logic for techdesk.

Runtime configuration (vendor URLs, credentials, timeouts, logging and
workspace policy) is read from the process environment, overlaid on an
optional ``.env`` file so technicians can keep credentials next to the
binary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Dict, Mapping, Optional

from .errors import ConfigError


ENV_FILE = os.getenv("TECHDESK_ENV_FILE", ".env")


@dataclass
class DattoRmmConfig:
    """
    Configuration for the Datto RMM integration (sites, devices, UDFs, alerts).
    """

    api_url: str
    api_key: str
    secret_key: str
    timeout_seconds: int = 10
    page_size: int = 250


@dataclass
class DattoAvConfig:
    """
    Configuration for the Datto AV (endpoint protection) integration.
    """

    url: str
    secret: str
    timeout_seconds: int = 10


@dataclass
class SophosConfig:
    """
    Configuration for Sophos Central (partner API).
    """

    client_id: str
    client_secret: str
    partner_id: str
    timeout_seconds: int = 10
    auth_url: str = "https://id.sophos.com/api/v2/oauth2/token"
    api_url: str = "https://api.central.sophos.com"


@dataclass
class RocketCyberConfig:
    """
    Configuration for the RocketCyber managed detection integration.
    """

    api_url: str
    api_key: str
    timeout_seconds: int = 10


@dataclass
class LoggingConfig:
    """
    Logging-related configuration.
    """

    log_dir: str = "logs"
    log_level: str = "INFO"
    console: bool = False  # the terminal belongs to the render driver


@dataclass
class WorkspaceConfig:
    """
    Policy knobs for the aggregation core.
    """

    cache_ttl_seconds: float = 300.0
    action_grace_seconds: float = 5.0
    action_timeout_seconds: float = 60.0
    fetch_workers: int = 8


@dataclass
class TechdeskConfig:
    """
    Top-level configuration for techdesk.

    Vendor sections are ``None`` when that vendor is not configured; the
    workspace then reports its panels as failed instead of refusing to start.
    """

    datto_rmm: Optional[DattoRmmConfig] = None
    datto_av: Optional[DattoAvConfig] = None
    sophos: Optional[SophosConfig] = None
    rocket_cyber: Optional[RocketCyberConfig] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)


def load_env_file(env_path: str = ENV_FILE) -> Dict[str, str]:
    """
    Parse a ``.env`` file into a dict of ``KEY=VALUE`` pairs.

    Missing files yield an empty dict. Comments and blank lines are skipped,
    an optional ``export`` prefix is accepted and matching surrounding quotes
    are removed.
    """
    env_file = Path(env_path)
    values: Dict[str, str] = {}

    if not env_file.exists():
        return values

    try:
        with open(env_file, "r") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                if line.startswith("export "):
                    line = line[len("export "):].lstrip()
                if "=" not in line:
                    continue
                key, value = line.split("=", 1)
                key = key.strip()
                value = value.strip()
                if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
                    value = value[1:-1]
                values[key] = value
        return values
    except OSError as e:
        raise ConfigError(f"Failed to load .env file {env_path!r}: {e}") from e


def _section(env: Mapping[str, str], names: Dict[str, str], label: str) -> Optional[Dict[str, str]]:
    """
    Collect a vendor section's required variables.

    Returns ``None`` when none of them are set and raises ``ConfigError`` when
    only some are, to avoid a half-configured integration.
    """
    present = {attr: env.get(var) for attr, var in names.items()}
    if not any(present.values()):
        return None
    missing = [names[attr] for attr, value in present.items() if not value]
    if missing:
        raise ConfigError(f"{label} is partially configured; missing {', '.join(missing)}")
    return {attr: value for attr, value in present.items() if value}


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer") from exc


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number") from exc


def load_config(
    env_path: str = ENV_FILE,
    environ: Optional[Mapping[str, str]] = None,
) -> TechdeskConfig:
    """
    Load techdesk configuration.

    Values from ``environ`` (default: ``os.environ``) take precedence over the
    ``.env`` file at ``env_path``.

    Environment variables:
        DATTO_API_URL, DATTO_API_KEY, DATTO_SECRET_KEY, DATTO_TIMEOUT_SECONDS
        DATTO_AV_URL, DATTO_AV_SECRET
        SOPHOS_CLIENT_ID, SOPHOS_CLIENT_SECRET, SOPHOS_PARTNER_ID
        ROCKETCYBER_API_URL, ROCKETCYBER_API_KEY

        TECHDESK_LOG_DIR: Directory for log files (default: "logs").
        TECHDESK_LOG_LEVEL: Root log level (default: "INFO").
        TECHDESK_CACHE_TTL_SECONDS: Age after which cached data is stale (300).
        TECHDESK_ACTION_GRACE_SECONDS: How long resolved actions stay visible (5).
        TECHDESK_ACTION_TIMEOUT_SECONDS: Unanswered actions are rejected after this (60).
        TECHDESK_FETCH_WORKERS: Size of the vendor I/O worker pool (8).
    """
    env: Dict[str, str] = dict(load_env_file(env_path))
    env.update(os.environ if environ is None else environ)

    timeout = _int(env, "DATTO_TIMEOUT_SECONDS", 10)

    datto_rmm_cfg: Optional[DattoRmmConfig] = None
    section = _section(
        env,
        {"api_url": "DATTO_API_URL", "api_key": "DATTO_API_KEY", "secret_key": "DATTO_SECRET_KEY"},
        "Datto RMM",
    )
    if section:
        datto_rmm_cfg = DattoRmmConfig(timeout_seconds=timeout, **section)

    datto_av_cfg: Optional[DattoAvConfig] = None
    section = _section(env, {"url": "DATTO_AV_URL", "secret": "DATTO_AV_SECRET"}, "Datto AV")
    if section:
        datto_av_cfg = DattoAvConfig(timeout_seconds=timeout, **section)

    sophos_cfg: Optional[SophosConfig] = None
    section = _section(
        env,
        {
            "client_id": "SOPHOS_CLIENT_ID",
            "client_secret": "SOPHOS_CLIENT_SECRET",
            "partner_id": "SOPHOS_PARTNER_ID",
        },
        "Sophos",
    )
    if section:
        sophos_cfg = SophosConfig(timeout_seconds=timeout, **section)

    rocket_cfg: Optional[RocketCyberConfig] = None
    section = _section(
        env, {"api_url": "ROCKETCYBER_API_URL", "api_key": "ROCKETCYBER_API_KEY"}, "RocketCyber"
    )
    if section:
        rocket_cfg = RocketCyberConfig(timeout_seconds=timeout, **section)

    logging_cfg = LoggingConfig(
        log_dir=env.get("TECHDESK_LOG_DIR", "logs"),
        log_level=env.get("TECHDESK_LOG_LEVEL", "INFO"),
    )

    workspace_cfg = WorkspaceConfig(
        cache_ttl_seconds=_float(env, "TECHDESK_CACHE_TTL_SECONDS", 300.0),
        action_grace_seconds=_float(env, "TECHDESK_ACTION_GRACE_SECONDS", 5.0),
        action_timeout_seconds=_float(env, "TECHDESK_ACTION_TIMEOUT_SECONDS", 60.0),
        fetch_workers=_int(env, "TECHDESK_FETCH_WORKERS", 8),
    )
    if workspace_cfg.fetch_workers < 1:
        raise ConfigError("TECHDESK_FETCH_WORKERS must be at least 1")

    return TechdeskConfig(
        datto_rmm=datto_rmm_cfg,
        datto_av=datto_av_cfg,
        sophos=sophos_cfg,
        rocket_cyber=rocket_cfg,
        logging=logging_cfg,
        workspace=workspace_cfg,
    )
