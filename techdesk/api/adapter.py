"""
Vendor adapter interface.

Each vendor integration implements ``VendorAdapter``: it declares which
(entity kind, parent scope) pairs it can fetch and which actions it can
perform, and normalizes every payload into the records of
``techdesk.api.entities`` before returning it. Adapters are synchronous;
the fetch scheduler runs them on worker threads.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Tuple

from ..core.dto import BaseDTO
from .entities import EntityKey, EntityKind, Record, Vendor


class ActionKind(str, Enum):
    """
    Discrete user command that maps to a vendor call.
    """

    SCAN = "scan"
    UPDATE_UDF = "update_udf"
    RUN_JOB = "run_job"
    CREATE_VARIABLE = "create_variable"
    UPDATE_VARIABLE = "update_variable"
    UPDATE_SITE = "update_site"


@dataclass(frozen=True)
class Ack(BaseDTO):
    """
    Vendor confirmation of an accepted action.
    """

    vendor: Vendor
    kind: ActionKind
    target: str
    reference: Optional[str] = None
    message: Optional[str] = None
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# (entity kind, parent scope); scope None addresses account-level collections.
Route = Tuple[EntityKind, Optional[str]]
# (action kind, kind of the key the adapter receives)
ActionRoute = Tuple[ActionKind, EntityKind]


class VendorAdapter(Protocol):
    """
    Vendor-neutral interface the workspace core consumes.

    ``fetch`` returns every record under ``parent_id`` for ``kind``; errors
    are raised as ``IntegrationError`` subclasses. ``perform_action`` returns
    an ``Ack`` or raises (``ActionRejected`` when the vendor declines).
    """

    vendor: Vendor
    routes: FrozenSet[Route]
    actions: FrozenSet[ActionRoute]

    def fetch(self, kind: EntityKind, parent_id: Optional[str]) -> List[Record]:
        ...

    def perform_action(
        self,
        kind: ActionKind,
        key: EntityKey,
        params: Optional[Dict[str, Any]] = None,
    ) -> Ack:
        ...
