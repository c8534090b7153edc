"""
Datto AV (endpoint protection) integration.
"""

from .datto_av_client import DattoAvClient

__all__ = ["DattoAvClient"]
