"""
Low-level HTTP client for Datto AV (endpoint protection).

Datto AV authenticates with the raw API secret in the ``Authorization``
header and filters listings with a LoopBack-style JSON ``filter`` query
parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from typing import Any, Dict, Optional

import requests

from ...core.logging import get_logger
from ..common import build_url, handle_http_error, parse_json, translate_request_exception


logger = get_logger("techdesk.integrations.datto_av.http")

VENDOR = "Datto AV"


@dataclass
class DattoAvHttpClient:
    """
    Simple HTTP client for the Datto AV API.
    """

    base_url: str
    secret: str
    timeout_seconds: int = 10

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": self.secret,
            "Accept": "application/json",
        }

    def request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an HTTP request to Datto AV and return the parsed JSON body.
        """
        url = build_url(self.base_url, endpoint)

        try:
            logger.debug(f"Datto AV {method} {url}")
            if params:
                logger.debug(f"  Query params: {params}")
            response = requests.request(
                method=method,
                url=url,
                headers=self._headers(),
                json=json_data,
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

    def post(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """POST request."""
        return self.request("POST", endpoint, json_data=json_data)

    def get_filtered(self, endpoint: str, loopback_filter: Dict[str, Any]) -> Any:
        """
        GET with ``filter=<json>``, the query style of the Datto AV API.
        """
        return self.get(endpoint, params={"filter": json.dumps(loopback_filter)})
