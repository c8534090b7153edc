"""
RocketCyber managed detection and response integration.
"""

from .rocket_cyber_client import RocketCyberClient

__all__ = ["RocketCyberClient"]
