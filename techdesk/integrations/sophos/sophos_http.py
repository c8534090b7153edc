"""
Low-level HTTP client for Sophos Central (partner API).

This module is responsible for:
- authentication (OAuth client-credentials token from id.sophos.com)
- partner-level requests (``X-Partner-ID``) against the global API host
- tenant-level requests (``X-Tenant-ID``) against the tenant's regional host
- basic error handling
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from typing import Any, Dict, Optional

import requests

from ...core.errors import AuthError
from ...core.logging import get_logger
from ..common import build_url, handle_http_error, parse_json, translate_request_exception


logger = get_logger("techdesk.integrations.sophos.http")

VENDOR = "Sophos"

REGIONAL_API_URL = "https://api-{region}.central.sophos.com"


@dataclass
class SophosHttpClient:
    """
    Simple HTTP client for the Sophos Central APIs.
    """

    client_id: str
    client_secret: str
    partner_id: str
    timeout_seconds: int = 10
    auth_url: str = "https://id.sophos.com/api/v2/oauth2/token"
    api_url: str = "https://api.central.sophos.com"
    _token: Optional[str] = field(default=None, init=False, repr=False)
    _token_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def authenticate(self) -> str:
        """
        Obtain a client-credentials access token and cache it.
        """
        logger.debug(f"Sophos authenticating against {self.auth_url}")
        try:
            response = requests.post(
                self.auth_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": "token",
                },
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise translate_request_exception(e, VENDOR) from e

        if response.status_code >= 400:
            raise AuthError(
                f"Sophos authentication failed: {response.status_code} {response.text[:200]}",
                vendor=VENDOR,
            )

        token = parse_json(response, VENDOR).get("access_token")
        if not token:
            raise AuthError("Sophos token response has no access_token", vendor=VENDOR)
        self._token = token
        return token

    def _headers(self, extra: Dict[str, str]) -> Dict[str, str]:
        with self._token_lock:
            token = self._token or self.authenticate()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        headers.update(extra)
        return headers

    @staticmethod
    def regional_url(data_region: str) -> str:
        return REGIONAL_API_URL.format(region=data_region)

    def request(
        self,
        method: str,
        url: str,
        extra_headers: Dict[str, str],
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        _retry_auth: bool = True,
    ) -> Any:
        """
        Make an HTTP request to Sophos Central and return the parsed JSON body.
        """
        headers = self._headers(extra_headers)

        try:
            logger.debug(f"Sophos {method} {url} params={params}")
            response = requests.request(
                method=method,
                url=url,
                headers=headers,
                json=json_data,
                params=params,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise translate_request_exception(e, VENDOR) from e

        if response.status_code == 401 and _retry_auth:
            logger.info("Sophos token rejected, re-authenticating")
            with self._token_lock:
                self._token = None
            return self.request(method, url, extra_headers, json_data=json_data, params=params, _retry_auth=False)

        handle_http_error(response, VENDOR)
        return parse_json(response, VENDOR)

    def partner_get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request("GET", build_url(self.api_url, path), {"X-Partner-ID": self.partner_id}, params=params)

    def tenant_get(
        self,
        tenant_id: str,
        data_region: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = build_url(self.regional_url(data_region), path)
        return self.request("GET", url, {"X-Tenant-ID": tenant_id}, params=params)

    def tenant_post(
        self,
        tenant_id: str,
        data_region: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = build_url(self.regional_url(data_region), path)
        return self.request("POST", url, {"X-Tenant-ID": tenant_id}, json_data=json_data if json_data is not None else {})
