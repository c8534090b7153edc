"""
Vendor-neutral domain records and cache keys.

Every vendor payload is normalized into one of a closed set of records
(``Site``, ``Device``, ``Udf``, ``Alert``, ``Case``, ``Agent``,
``IncidentStat``, ``Activity``, ``Component``, ``JobResult``). Each record
type carries its ``KIND`` tag so the workspace can dispatch on it without
isinstance chains.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from ..core.dto import BaseDTO
from ..core.errors import ValidationError


class EntityKind(str, Enum):
    """
    Kind of cacheable entity.
    """

    SITE = "site"
    DEVICE = "device"
    UDF = "udf"
    ALERT = "alert"
    CASE = "case"
    AGENT = "agent"
    INCIDENT_STAT = "incident_stat"
    ACTIVITY = "activity"
    COMPONENT = "component"
    JOB_RESULT = "job_result"


# Ids of these kinds are unique across the RMM account, so their item keys
# carry no parent: every listing containing the record fills the same key.
ACCOUNT_UNIQUE_KINDS = frozenset({EntityKind.SITE})


class Vendor(str, Enum):
    """
    Vendor a record was sourced from.
    """

    DATTO_RMM = "datto_rmm"
    DATTO_AV = "datto_av"
    SOPHOS = "sophos"
    ROCKET_CYBER = "rocket_cyber"


# Parent scopes. A parent id is "<scope>:<value>"; the scope tells the
# router which vendor serves the key.
SCOPE_ORG = "org"
SCOPE_SITE = "site"
SCOPE_DEVICE = "device"
SCOPE_TENANT = "tenant"
SCOPE_AV_HOST = "av-host"
SCOPE_AV_AGENT = "av-agent"
SCOPE_SOPHOS_HOST = "sophos-host"
SCOPE_MDR_HOST = "mdr-host"
SCOPE_JOB = "job"


def parent_ref(scope: str, value: str) -> str:
    """
    Build a scoped parent id, e.g. ``parent_ref("site", "S1") == "site:S1"``.
    """
    if not scope or ":" in scope:
        raise ValidationError(f"Invalid parent scope {scope!r}")
    if not value:
        raise ValidationError(f"Parent value for scope {scope!r} must not be empty")
    return f"{scope}:{value}"


def split_parent(parent_id: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Split a scoped parent id into ``(scope, value)``.

    ``None`` (account-level collections) yields ``(None, None)``.
    """
    if parent_id is None:
        return None, None
    scope, sep, value = parent_id.partition(":")
    if not sep:
        raise ValidationError(f"Parent id {parent_id!r} has no scope")
    return scope, value


@dataclass(frozen=True)
class EntityKey:
    """
    Identifies one cacheable item, or the collection under a parent when
    ``id`` is ``None``.
    """

    kind: EntityKind
    parent_id: Optional[str] = None
    id: Optional[str] = None

    @property
    def is_collection(self) -> bool:
        return self.id is None

    @property
    def fetch_key(self) -> Tuple[EntityKind, Optional[str]]:
        """
        One vendor call per fetch key produces the collection and its items.
        """
        return self.kind, self.parent_id

    @property
    def scope(self) -> Optional[str]:
        return split_parent(self.parent_id)[0]

    @property
    def parent_value(self) -> Optional[str]:
        return split_parent(self.parent_id)[1]

    def collection(self) -> "EntityKey":
        return EntityKey(self.kind, self.parent_id)

    def item(self, entity_id: str) -> "EntityKey":
        if self.kind in ACCOUNT_UNIQUE_KINDS:
            return EntityKey(self.kind, None, entity_id)
        return EntityKey(self.kind, self.parent_id, entity_id)

    def __str__(self) -> str:
        parent = self.parent_id or "*"
        return f"{self.kind.value}[{parent}]/{self.id or '*'}"


@dataclass(frozen=True)
class Site(BaseDTO):
    """
    Customer site in the RMM.
    """

    KIND: ClassVar[EntityKind] = EntityKind.SITE

    id: str
    name: str
    description: Optional[str] = None
    notes: Optional[str] = None
    device_count: int = 0
    online_count: int = 0
    offline_count: int = 0
    portal_url: Optional[str] = None
    account_id: Optional[str] = None
    on_demand: Optional[bool] = None
    splashtop_auto_install: Optional[bool] = None
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Device(BaseDTO):
    """
    Managed endpoint (host) in the RMM.
    """

    KIND: ClassVar[EntityKind] = EntityKind.DEVICE

    id: str
    site_id: str
    hostname: str
    online: bool = False
    operating_system: Optional[str] = None
    last_seen: Optional[datetime] = None
    int_ip_address: Optional[str] = None
    ext_ip_address: Optional[str] = None
    last_logged_in_user: Optional[str] = None
    av_product: Optional[str] = None
    av_status: Optional[str] = None
    patch_status: Optional[str] = None
    reboot_required: Optional[bool] = None
    portal_url: Optional[str] = None
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Udf(BaseDTO):
    """
    User-defined fields of a device (``udf1``..``udf30``) or the variables of
    a site (``name -> value``).
    """

    KIND: ClassVar[EntityKind] = EntityKind.UDF

    id: str
    owner_id: str
    fields: Dict[str, str] = field(default_factory=dict)
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(name, default)


@dataclass(frozen=True)
class Alert(BaseDTO):
    """
    Open alert raised by the RMM or an antivirus product.
    """

    KIND: ClassVar[EntityKind] = EntityKind.ALERT

    id: str
    message: str
    source: Optional[str] = None
    priority: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved: bool = False
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Case(BaseDTO):
    """
    Security case from Sophos Central.
    """

    KIND: ClassVar[EntityKind] = EntityKind.CASE

    id: str
    description: Optional[str] = None
    severity: Optional[str] = None
    status: Optional[str] = None
    case_type: Optional[str] = None
    created_at: Optional[datetime] = None
    vendor: Vendor = Vendor.SOPHOS
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Agent(BaseDTO):
    """
    Security agent installed on a host (AV, EDR or MDR).
    """

    KIND: ClassVar[EntityKind] = EntityKind.AGENT

    id: str
    hostname: str
    vendor: Vendor
    status: Optional[str] = None
    version: Optional[str] = None
    health: Optional[str] = None
    isolated: bool = False
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class IncidentStat(BaseDTO):
    """
    Active/resolved incident counts for one managed-detection account.
    """

    KIND: ClassVar[EntityKind] = EntityKind.INCIDENT_STAT

    id: str
    account_name: str
    active: int = 0
    resolved: int = 0
    vendor: Vendor = Vendor.ROCKET_CYBER
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class Activity(BaseDTO):
    """
    Entry of a device's RMM activity log. Job activities carry the job's
    uid, name and status.
    """

    KIND: ClassVar[EntityKind] = EntityKind.ACTIVITY

    id: str
    device_id: str
    category: Optional[str] = None
    action: Optional[str] = None
    entity: Optional[str] = None
    occurred_at: Optional[datetime] = None
    user_name: str = "System"
    site_name: Optional[str] = None
    hostname: Optional[str] = None
    job_id: Optional[str] = None
    job_name: Optional[str] = None
    job_status: Optional[str] = None
    details: Dict[str, str] = field(default_factory=dict)
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ComponentVariable(BaseDTO):
    name: str
    default: Optional[str] = None
    variable_type: Optional[str] = None
    description: Optional[str] = None
    options: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Component(BaseDTO):
    """
    RMM script component that can be run on a device as a quick job.
    """

    KIND: ClassVar[EntityKind] = EntityKind.COMPONENT

    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    credentials_required: bool = False
    variables: Tuple[ComponentVariable, ...] = ()
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ComponentResult(BaseDTO):
    component_id: Optional[str]
    name: str
    status: Optional[str] = None
    warnings: int = 0
    stdout: Optional[str] = None
    stderr: Optional[str] = None


@dataclass(frozen=True)
class JobResult(BaseDTO):
    """
    Outcome of a job on one device, with the output of each component.
    """

    KIND: ClassVar[EntityKind] = EntityKind.JOB_RESULT

    id: str
    device_id: str
    status: Optional[str] = None
    ran_at: Optional[datetime] = None
    components: Tuple[ComponentResult, ...] = ()
    vendor: Vendor = Vendor.DATTO_RMM
    raw: Optional[Dict[str, Any]] = field(default=None, compare=False, repr=False)

    @property
    def output_rows(self) -> List[Tuple[str, int]]:
        """
        ``("component", i)`` per component followed by ``("stdout", i)`` and
        ``("stderr", i)`` when that component produced output.
        """
        rows: List[Tuple[str, int]] = []
        for index, component in enumerate(self.components):
            rows.append(("component", index))
            if component.stdout is not None:
                rows.append(("stdout", index))
            if component.stderr is not None:
                rows.append(("stderr", index))
        return rows


Record = Union[Site, Device, Udf, Alert, Case, Agent, IncidentStat, Activity, Component, JobResult]
