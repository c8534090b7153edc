"""
Shared fixtures: a deterministic executor, a controllable clock and a
scriptable vendor adapter.
"""

from concurrent.futures import Executor, Future
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from techdesk.api.adapter import Ack, ActionKind
from techdesk.api.entities import (
    SCOPE_AV_AGENT,
    SCOPE_AV_HOST,
    SCOPE_DEVICE,
    SCOPE_JOB,
    SCOPE_MDR_HOST,
    SCOPE_ORG,
    SCOPE_SITE,
    SCOPE_SOPHOS_HOST,
    SCOPE_TENANT,
    EntityKind,
    Vendor,
)


class ManualExecutor(Executor):
    """Queues submitted calls; tests decide when (and in which order) they run."""

    def __init__(self) -> None:
        self.pending: List[Tuple[Future, Callable, tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_next(self, index: int = 0) -> None:
        future, fn, args, kwargs = self.pending.pop(index)
        if not future.set_running_or_notify_cancel():
            return
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)

    def run_all(self) -> None:
        while self.pending:
            self.run_next()

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.pending.clear()


class ImmediateExecutor(Executor):
    """Runs every call synchronously inside ``submit``."""

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        future.set_running_or_notify_cancel()
        try:
            future.set_result(fn(*args, **kwargs))
        except BaseException as exc:
            future.set_exception(exc)
        return future


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAdapter:
    """
    Vendor adapter whose responses are looked up in ``data`` when the call
    actually runs, so tests can change them between submit and execution.
    """

    def __init__(
        self,
        vendor: Vendor = Vendor.DATTO_RMM,
        routes=(),
        actions=(),
        data: Optional[Dict[Tuple[EntityKind, Optional[str]], Any]] = None,
    ) -> None:
        self.vendor = vendor
        self.routes = frozenset(routes)
        self.actions = frozenset(actions)
        self.data: Dict[Tuple[EntityKind, Optional[str]], Any] = dict(data or {})
        self.fetch_calls: List[Tuple[EntityKind, Optional[str]]] = []
        self.action_calls: List[Tuple[ActionKind, Any, Any]] = []
        self.action_error: Optional[BaseException] = None

    def fetch(self, kind, parent_id):
        self.fetch_calls.append((kind, parent_id))
        result = self.data.get((kind, parent_id), [])
        if isinstance(result, BaseException):
            raise result
        return list(result)

    def perform_action(self, kind, key, params=None):
        self.action_calls.append((kind, key, params))
        if self.action_error is not None:
            raise self.action_error
        return Ack(vendor=self.vendor, kind=kind, target=str(key))


RMM_ROUTES = [
    (EntityKind.SITE, None),
    (EntityKind.SITE, SCOPE_ORG),
    (EntityKind.DEVICE, SCOPE_SITE),
    (EntityKind.UDF, SCOPE_SITE),
    (EntityKind.UDF, SCOPE_DEVICE),
    (EntityKind.ALERT, SCOPE_SITE),
    (EntityKind.ALERT, SCOPE_DEVICE),
    (EntityKind.ACTIVITY, SCOPE_DEVICE),
    (EntityKind.COMPONENT, None),
    (EntityKind.JOB_RESULT, SCOPE_JOB),
]

RMM_ACTIONS = [
    (ActionKind.UPDATE_UDF, EntityKind.UDF),
    (ActionKind.CREATE_VARIABLE, EntityKind.UDF),
    (ActionKind.UPDATE_VARIABLE, EntityKind.UDF),
    (ActionKind.RUN_JOB, EntityKind.DEVICE),
    (ActionKind.UPDATE_SITE, EntityKind.SITE),
]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()


@pytest.fixture
def rmm():
    return FakeAdapter(
        vendor=Vendor.DATTO_RMM,
        routes=RMM_ROUTES,
        actions=RMM_ACTIONS,
    )


@pytest.fixture
def datto_av():
    return FakeAdapter(
        vendor=Vendor.DATTO_AV,
        routes=[(EntityKind.AGENT, SCOPE_AV_HOST), (EntityKind.ALERT, SCOPE_AV_AGENT)],
        actions=[(ActionKind.SCAN, EntityKind.AGENT)],
    )


@pytest.fixture
def sophos():
    return FakeAdapter(
        vendor=Vendor.SOPHOS,
        routes=[(EntityKind.CASE, SCOPE_TENANT), (EntityKind.AGENT, SCOPE_SOPHOS_HOST)],
        actions=[(ActionKind.SCAN, EntityKind.AGENT)],
    )


@pytest.fixture
def rocket():
    return FakeAdapter(
        vendor=Vendor.ROCKET_CYBER,
        routes=[(EntityKind.INCIDENT_STAT, None), (EntityKind.AGENT, SCOPE_MDR_HOST)],
    )


@pytest.fixture
def make_adapter():
    return FakeAdapter
