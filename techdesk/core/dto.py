"""
Common DTO utilities for techdesk.

Domain records are frozen dataclasses: the entity cache hands the same
instance to every view that references a key, so records must never be
mutated in place. A refetch replaces the record instead.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Type, TypeVar


T_BaseDTO = TypeVar("T_BaseDTO", bound="BaseDTO")


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class BaseDTO:
    """
    Base mixin for DTO dataclasses.

    Inherit from this in DTOs to get a consistent ``to_dict`` method and
    a simple ``from_dict`` constructor.
    """

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        """
        Convert this DTO into a JSON-friendly dict (recursively).

        The vendor payload kept in ``raw`` is left out unless asked for.
        """

        data = asdict(self)
        if not include_raw:
            data.pop("raw", None)
        return _plain(data)

    @classmethod
    def from_dict(cls: Type[T_BaseDTO], data: Dict[str, Any]) -> T_BaseDTO:
        """
        Construct this DTO from a dict of attributes, ignoring unknown keys.
        """

        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})
