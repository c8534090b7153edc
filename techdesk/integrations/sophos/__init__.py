"""
Sophos Central integration.

Uses the partner API to resolve tenants, then each tenant's regional API
for cases, endpoints and scans.
"""

from .sophos_client import SophosClient

__all__ = ["SophosClient"]
