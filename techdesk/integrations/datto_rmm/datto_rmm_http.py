"""
Low-level HTTP client for the Datto RMM API (v2).

This module is responsible for:
- authentication (OAuth password grant with the API key/secret pair)
- building URLs
- making HTTP requests and following ``pageDetails`` pagination
- basic error handling
"""

from __future__ import annotations

from dataclasses import dataclass, field
import threading
from typing import Any, Dict, List, Optional

import requests

from ...core.errors import AuthError
from ...core.logging import get_logger
from ..common import build_url, handle_http_error, parse_json, translate_request_exception


logger = get_logger("techdesk.integrations.datto_rmm.http")

VENDOR = "Datto RMM"

# Datto's documented public OAuth client for API-key logins.
PUBLIC_CLIENT = ("public-client", "public")


@dataclass
class DattoRmmHttpClient:
    """
    Simple HTTP client for the Datto RMM REST API.

    The bearer token is fetched lazily and shared by every worker thread; a
    401 clears it and the request is retried once with a fresh token.
    """

    api_url: str
    api_key: str
    secret_key: str
    timeout_seconds: int = 10
    _token: Optional[str] = field(default=None, init=False, repr=False)
    _token_lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def authenticate(self) -> str:
        """
        Obtain an access token and cache it.
        """
        url = build_url(self.api_url, "/auth/oauth/token")
        logger.debug(f"Datto RMM authenticating against {url}")
        try:
            response = requests.post(
                url,
                auth=PUBLIC_CLIENT,
                data={
                    "grant_type": "password",
                    "username": self.api_key,
                    "password": self.secret_key,
                },
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise translate_request_exception(e, VENDOR) from e

        if response.status_code >= 400:
            raise AuthError(
                f"Datto RMM authentication failed: {response.status_code} {response.text[:200]}",
                vendor=VENDOR,
            )

        token = parse_json(response, VENDOR).get("access_token")
        if not token:
            raise AuthError("Datto RMM token response has no access_token", vendor=VENDOR)
        self._token = token
        return token

    def _headers(self) -> Dict[str, str]:
        with self._token_lock:
            token = self._token or self.authenticate()
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    def request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        _retry_auth: bool = True,
    ) -> Any:
        """
        Make an HTTP request to Datto RMM and return the parsed JSON body.
        """
        url = build_url(self.api_url, path)
        headers = self._headers()

        try:
            logger.debug(f"Datto RMM {method} {url} params={params}")
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
            logger.info("Datto RMM token rejected, re-authenticating")
            with self._token_lock:
                self._token = None
            return self.request(method, path, json_data=json_data, params=params, _retry_auth=False)

        handle_http_error(response, VENDOR)
        return parse_json(response, VENDOR)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET request."""
        return self.request("GET", path, params=params)

    def post(self, path: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """POST request."""
        return self.request("POST", path, json_data=json_data)

    def put(self, path: str, json_data: Optional[Dict[str, Any]] = None) -> Any:
        """PUT request."""
        return self.request("PUT", path, json_data=json_data)

    def get_paged(self, path: str, items_field: str, page_size: int = 250) -> List[Dict[str, Any]]:
        """
        Collect ``items_field`` from every page of a paginated listing.

        Pages are 0-based; the listing ends when ``pageDetails.nextPageUrl``
        is empty.
        """
        items: List[Dict[str, Any]] = []
        page = 0
        while True:
            body = self.get(path, params={"page": page, "max": page_size})
            items.extend(body.get(items_field) or [])
            next_url = (body.get("pageDetails") or {}).get("nextPageUrl")
            if not next_url:
                break
            page += 1
        logger.debug(f"Datto RMM {path}: {len(items)} {items_field} over {page + 1} page(s)")
        return items
