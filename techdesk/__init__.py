"""
techdesk: a terminal workspace aggregating RMM, antivirus, EDR and MDR
vendor data for support technicians.

Packages:
- ``core``: configuration, errors, logging and DTO helpers
- ``api``: vendor-neutral domain records and the adapter interface
- ``integrations``: one adapter per vendor (Datto RMM, Datto AV, Sophos, RocketCyber)
- ``workspace``: cache, fetch scheduler, navigation stack and action dispatcher
- ``cli``: headless command-line driver
"""

__version__ = "0.4.0"
