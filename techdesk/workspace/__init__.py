"""
Vendor-independent aggregation core.

This package holds:
- the entity cache (`cache.py`)
- the fetch scheduler (`scheduler.py`)
- source routing (`routing.py`)
- the navigation stack and views (`navigation.py`)
- the action dispatcher (`dispatcher.py`)
- the workspace facade a render driver talks to (`workspace.py`)
"""

from .cache import CacheEntry, CacheState, EntityCache
from .dispatcher import ActionDispatcher, ActionStatus, PendingAction
from .navigation import (
    ActivityDetail,
    DeviceDetail,
    DeviceTab,
    NavigationStack,
    OrgList,
    SiteDetail,
    SiteList,
    SiteTab,
)
from .routing import SourceRouter
from .scheduler import FetchHandle, FetchScheduler
from .workspace import Workspace

__all__ = [
    "ActionDispatcher",
    "ActionStatus",
    "ActivityDetail",
    "CacheEntry",
    "CacheState",
    "DeviceDetail",
    "DeviceTab",
    "EntityCache",
    "FetchHandle",
    "FetchScheduler",
    "NavigationStack",
    "OrgList",
    "PendingAction",
    "SiteDetail",
    "SiteList",
    "SiteTab",
    "SourceRouter",
    "Workspace",
]
