from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Union

from defect_tracker.enums import Severity, Status, UserType


class ResourceKind(str, Enum):
    USER = "user"
    DEFECT = "defect"


class ReferenceRole(str, Enum):
    CREATED_BY = "createdBy"
    ASSIGNED_TO = "assignedTo"


def _require_member(field: str, value: object, enum_cls: type[Enum], optional: bool = False) -> None:
    if value is None and optional:
        return
    if not isinstance(value, enum_cls):
        raise TypeError(f"{field} must be a {enum_cls.__name__} member, got {value!r}")


@dataclass(frozen=True)
class User:
    """A tracked user. ``None`` marks an absent optional field."""

    name: str
    user_type: UserType
    image_url: str | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        _require_member("user_type", self.user_type, UserType)


@dataclass(frozen=True)
class Defect:
    """A tracked defect; ``created_by`` and ``assigned_to`` hold user ids."""

    created: datetime
    status: Status
    created_by: str
    modified: datetime | None = None
    summary: str | None = None
    severity: Severity | None = None
    assigned_to: str | None = None
    id: str | None = None

    def __post_init__(self) -> None:
        _require_member("status", self.status, Status)
        _require_member("severity", self.severity, Severity, optional=True)


Entity = Union[User, Defect]
