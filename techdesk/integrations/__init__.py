"""
Vendor integrations for techdesk.

Each vendor package is split the same way:
- ``<vendor>_http.py``: authentication, URLs, requests, error mapping
- ``<vendor>_mapper.py``: pure functions from vendor payloads to records
- ``<vendor>_client.py``: the ``VendorAdapter`` the workspace talks to
"""

from __future__ import annotations

from typing import List

from ..api.adapter import VendorAdapter
from ..core.config import TechdeskConfig
from ..core.logging import get_logger
from .datto_av import DattoAvClient
from .datto_rmm import DattoRmmClient
from .rocket_cyber import RocketCyberClient
from .sophos import SophosClient


logger = get_logger("techdesk.integrations")


def build_adapters(config: TechdeskConfig) -> List[VendorAdapter]:
    """
    One adapter per vendor section present in ``config``.
    """
    adapters: List[VendorAdapter] = []
    if config.datto_rmm:
        adapters.append(DattoRmmClient.from_config(config))
    if config.datto_av:
        adapters.append(DattoAvClient.from_config(config))
    if config.sophos:
        adapters.append(SophosClient.from_config(config))
    if config.rocket_cyber:
        adapters.append(RocketCyberClient.from_config(config))
    logger.info(f"Configured vendors: {', '.join(a.vendor.value for a in adapters) or 'none'}")
    return adapters


__all__ = ["DattoAvClient", "DattoRmmClient", "RocketCyberClient", "SophosClient", "build_adapters"]
