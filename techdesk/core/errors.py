"""
Core error types for techdesk.

Vendor failures are never fatal: the fetch scheduler turns them into
``FAILED`` cache entries and the action dispatcher into ``REJECTED`` pending
actions, so one vendor's outage only blanks the panels that vendor feeds.
"""

from __future__ import annotations

from typing import Optional


class TechdeskError(Exception):
    """
    Base exception for all techdesk-specific errors.
    """


class ConfigError(TechdeskError):
    """
    Raised when configuration is missing, invalid, or inconsistent.
    """


class ValidationError(TechdeskError):
    """
    Raised when input data or caller arguments fail validation.
    """


class IntegrationError(TechdeskError):
    """
    Raised when an external vendor integration fails or returns an
    unexpected response.
    """

    def __init__(self, message: str, vendor: Optional[str] = None) -> None:
        super().__init__(message)
        self.vendor = vendor


class NetworkError(IntegrationError):
    """
    Transient failure: vendor unreachable, request timed out, or a 5xx reply.
    """


class AuthError(IntegrationError):
    """
    Credentials were rejected or a token could not be obtained.
    """


class NotFoundError(IntegrationError):
    """
    The entity was deleted or moved upstream.
    """


class ActionRejected(IntegrationError):
    """
    The vendor declined the requested action, or the action cannot be
    performed against the target in its current state.
    """


class StaleDataWarning(UserWarning):
    """
    Informational flag attached to a cache entry that is served past its TTL.

    Never raised; callers inspect ``CacheEntry.warning``.
    """
