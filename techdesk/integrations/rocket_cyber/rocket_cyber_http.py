"""
Low-level HTTP client for the RocketCyber managed SOC API (v3).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from ...core.logging import get_logger
from ..common import build_url, handle_http_error, parse_json, translate_request_exception


logger = get_logger("techdesk.integrations.rocket_cyber.http")

VENDOR = "RocketCyber"


@dataclass
class RocketCyberHttpClient:
    """
    Simple HTTP client for RocketCyber, authenticated with a bearer API key.

    ``api_url`` may be given with or without the trailing ``/v3``.
    """

    api_url: str
    api_key: str
    timeout_seconds: int = 10

    @property
    def base_url(self) -> str:
        base = self.api_url.rstrip("/")
        if base.endswith("/v3"):
            base = base[: -len("/v3")]
        return f"{base}/v3"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = build_url(self.base_url, endpoint)

        try:
            logger.debug(f"RocketCyber {method} {url} params={params}")
            response = requests.request(
                method=method,
                url=url,
                headers=self._headers(),
                params=params,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise translate_request_exception(e, VENDOR) from e

        handle_http_error(response, VENDOR)
        return parse_json(response, VENDOR)

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET request."""
        return self.request("GET", endpoint, params=params)
