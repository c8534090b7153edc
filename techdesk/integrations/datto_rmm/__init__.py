"""
Datto RMM integration.

Sites, devices, device UDFs, site variables, open alerts, activity logs,
components and job results from the Datto RMM v2 API. Actions: UDF updates,
quick jobs, site-variable edits and site settings.
"""

from .datto_rmm_client import DattoRmmClient

__all__ = ["DattoRmmClient"]
