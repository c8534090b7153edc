"""
Action dispatcher: user commands -> vendor calls -> cache refresh.

An action is only submitted against a READY target. The vendor call runs on
the worker pool; ``pump()`` resolves it on the loop thread. A confirmed
action refetches the keys it affects. A rejected one leaves the cache
untouched, so the interface never shows an unconfirmed effect as fact.
"""

from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
from enum import Enum
import queue
import threading
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from ..api.adapter import Ack, ActionKind
from ..api.entities import EntityKey
from ..core.errors import ActionRejected, NetworkError, TechdeskError, ValidationError
from ..core.logging import get_logger
from .cache import Clock, EntityCache
from .routing import ActionPlan, SourceRouter
from .scheduler import FetchScheduler, as_integration_error


logger = get_logger("techdesk.workspace.dispatcher")


class ActionStatus(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass
class PendingAction:
    """
    A user-initiated vendor action and its lifecycle.
    """

    action_id: str
    target: EntityKey
    kind: ActionKind
    status: ActionStatus
    submitted_at: float
    resolved_at: Optional[float] = None
    error: Optional[TechdeskError] = None
    ack: Optional[Ack] = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not ActionStatus.SUBMITTED

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "action_id": self.action_id,
            "target": str(self.target),
            "kind": self.kind.value,
            "status": self.status.value,
        }
        if self.error is not None:
            data["error"] = str(self.error)
        if self.ack is not None:
            data["ack"] = self.ack.to_dict()
        return data


class ActionDispatcher:
    """
    Tracks pending actions and applies their outcome.

    Resolved actions stay visible for ``grace_seconds`` and are then pruned.
    Submitted actions without an answer after ``timeout_seconds`` are
    rejected.
    """

    def __init__(
        self,
        cache: EntityCache,
        scheduler: FetchScheduler,
        router: SourceRouter,
        executor: Executor,
        clock: Clock,
        grace_seconds: float = 5.0,
        timeout_seconds: float = 60.0,
    ) -> None:
        self._cache = cache
        self._scheduler = scheduler
        self._router = router
        self._executor = executor
        self._clock = clock
        self.grace_seconds = grace_seconds
        self.timeout_seconds = timeout_seconds
        self._actions: Dict[str, PendingAction] = {}
        self._plans: Dict[str, ActionPlan] = {}
        self._completed: "queue.Queue[Tuple[str, Future]]" = queue.Queue()
        self._lock = threading.Lock()

    def dispatch(
        self,
        target: EntityKey,
        kind: ActionKind,
        params: Optional[Dict[str, Any]] = None,
        action_id: Optional[str] = None,
    ) -> PendingAction:
        """
        Submit ``kind`` against ``target``.

        Returns the ``PendingAction``; it is already REJECTED when the target
        is not READY or no vendor can perform the action, in which case no
        vendor call was made.
        """
        action_id = action_id or uuid4().hex
        action = PendingAction(
            action_id=action_id,
            target=target,
            kind=kind,
            status=ActionStatus.SUBMITTED,
            submitted_at=self._clock(),
        )
        with self._lock:
            if action_id in self._actions:
                raise ValidationError(f"Action {action_id!r} is already tracked")
            self._actions[action_id] = action

        entry = self._cache.get(target)
        if entry is None or not entry.is_ready:
            state = "not loaded" if entry is None else entry.state.value
            self._reject(action, ActionRejected(f"Cannot {kind.value} {target}: target is {state}"))
            return action

        try:
            plan = self._router.plan_action(kind, target, entry.value, self._cache, params)
        except ActionRejected as exc:
            self._reject(action, exc)
            return action

        with self._lock:
            self._plans[action_id] = plan
        logger.info(f"Dispatching {kind.value} on {plan.target} via {plan.adapter.vendor.value} ({action_id})")
        call_params = plan.params if plan.params is not None else params
        future = self._executor.submit(plan.adapter.perform_action, kind, plan.target, call_params)
        future.add_done_callback(lambda f, aid=action_id: self._completed.put((aid, f)))
        return action

    def pump(self) -> List[PendingAction]:
        """
        Resolve finished vendor calls and time out silent ones. Call from the
        loop thread. Returns the actions whose status changed.
        """
        changed: List[PendingAction] = []
        while True:
            try:
                action_id, future = self._completed.get_nowait()
            except queue.Empty:
                break
            action = self._resolve(action_id, future)
            if action is not None:
                changed.append(action)

        now = self._clock()
        for action in self.pending_actions():
            if action.status is ActionStatus.SUBMITTED and now - action.submitted_at > self.timeout_seconds:
                self._reject(action, NetworkError(f"No answer from vendor after {self.timeout_seconds:.0f}s"))
                changed.append(action)
        return changed

    def prune(self) -> List[str]:
        """
        Drop resolved actions whose grace period has passed.
        """
        now = self._clock()
        pruned: List[str] = []
        with self._lock:
            for action_id, action in list(self._actions.items()):
                if action.resolved_at is not None and now - action.resolved_at >= self.grace_seconds:
                    # A timed-out action's plan stays until its late answer arrives.
                    del self._actions[action_id]
                    pruned.append(action_id)
        return pruned

    def pending_actions(self) -> List[PendingAction]:
        with self._lock:
            return sorted(self._actions.values(), key=lambda a: a.submitted_at)

    def get(self, action_id: str) -> Optional[PendingAction]:
        with self._lock:
            return self._actions.get(action_id)

    def _resolve(self, action_id: str, future: Future) -> Optional[PendingAction]:
        with self._lock:
            action = self._actions.get(action_id)
            plan = self._plans.pop(action_id, None)

        try:
            ack = future.result()
            error: Optional[TechdeskError] = None
        except Exception as exc:
            ack = None
            error = as_integration_error(exc)

        if error is None and plan is not None:
            # The vendor accepted the change; make the cache catch up even if
            # the action already timed out on our side.
            self._refresh(plan)

        if action is None or action.is_resolved:
            if error is None:
                logger.warning(f"Late confirmation for action {action_id}; refreshed affected keys")
            return None

        if error is not None:
            self._reject(action, error)
            return action

        action.status = ActionStatus.CONFIRMED
        action.ack = ack
        action.resolved_at = self._clock()
        logger.info(f"Action {action.kind.value} on {action.target} confirmed ({action_id})")
        return action

    def _refresh(self, plan: ActionPlan) -> None:
        keys = [plan.target] + [k for k in plan.dependents if k != plan.target]
        for key in keys:
            self._cache.invalidate(key)
        for key in keys:
            self._scheduler.request_fetch(key)

    def _reject(self, action: PendingAction, error: TechdeskError) -> None:
        action.status = ActionStatus.REJECTED
        action.error = error
        action.resolved_at = self._clock()
        logger.warning(f"Action {action.kind.value} on {action.target} rejected: {error}")
