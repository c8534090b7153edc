"""
Generic, vendor-neutral APIs for techdesk.

This package defines:
- the closed domain model and cache keys (`entities.py`)
- the vendor adapter interface and action types (`adapter.py`)

The workspace core depends only on these modules, never on
vendor-specific integrations.
"""
