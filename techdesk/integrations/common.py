"""
Helpers shared by the vendor HTTP clients and mappers.

Every vendor client reports failures through the same taxonomy so the
workspace can show a uniform "failed" panel regardless of the source:

- 401/403 -> ``AuthError``
- 404 -> ``NotFoundError``
- 5xx, timeouts, connection failures -> ``NetworkError``
- anything else >= 400 or an unparseable body -> ``IntegrationError``
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from ..core.errors import AuthError, IntegrationError, NetworkError, NotFoundError
from ..core.logging import get_logger


logger = get_logger("techdesk.integrations.common")


def build_url(base_url: str, path: str) -> str:
    """
    Join base URL and path safely.
    """

    return f"{base_url.rstrip('/')}/{path.lstrip('/')}"


def handle_http_error(response: requests.Response, vendor: str) -> None:
    """
    Raise the matching ``IntegrationError`` subclass for a non-success reply.
    """

    if response.status_code < 400:
        return

    detail = (response.text or "")[:200]
    message = f"{vendor} API error {response.status_code}: {detail}"
    logger.error(f"{vendor} HTTP error - Status: {response.status_code}, URL: {response.url}")

    if response.status_code in (401, 403):
        raise AuthError(message, vendor=vendor)
    if response.status_code == 404:
        raise NotFoundError(message, vendor=vendor)
    if response.status_code >= 500:
        raise NetworkError(message, vendor=vendor)
    raise IntegrationError(message, vendor=vendor)


def translate_request_exception(exc: requests.exceptions.RequestException, vendor: str) -> IntegrationError:
    """
    Map a ``requests`` transport exception to ``NetworkError``.
    """

    if isinstance(exc, requests.exceptions.Timeout):
        return NetworkError(f"{vendor} API request timeout: {exc}", vendor=vendor)
    return NetworkError(f"{vendor} API request failed: {exc}", vendor=vendor)


def parse_json(response: requests.Response, vendor: str) -> Any:
    """
    Decode a JSON body; empty bodies (204, bare 200) decode to ``{}``.
    """

    if response.status_code == 204 or not response.content:
        return {}
    try:
        return response.json()
    except ValueError as exc:
        raise IntegrationError(
            f"{vendor} response did not contain valid JSON (status={response.status_code})",
            vendor=vendor,
        ) from exc


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse vendor timestamps: epoch seconds, epoch milliseconds or ISO 8601.

    Unparseable values yield ``None`` rather than failing the whole record.
    """

    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        seconds = value / 1000 if value > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        try:
            return parse_timestamp(float(text))
        except ValueError:
            pass
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.debug(f"Unparseable timestamp {value!r}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def nested(raw: Dict[str, Any], *path: str) -> Any:
    """
    ``raw[a][b]...`` or ``None`` when any level is missing or null.
    """

    current: Any = raw
    for part in path:
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current
