from __future__ import annotations

from enum import Enum
from typing import Any, Union

from defect_tracker.errors import InvalidEnumValue


class UserType(str, Enum):
    DEVELOPER = "DEVELOPER"
    MANAGER = "MANAGER"
    CUSTOMER = "CUSTOMER"
    TESTER = "TESTER"


class Status(str, Enum):
    CREATED = "CREATED"
    ACCEPTED = "ACCEPTED"
    FIXED = "FIXED"
    REOPENED = "REOPENED"
    CLOSED = "CLOSED"


class Severity(str, Enum):
    TRIVIAL = "TRIVIAL"
    MINOR = "MINOR"
    MAJOR = "MAJOR"
    SHOWSTOPPER = "SHOWSTOPPER"


class EnumKind(str, Enum):
    USER_TYPE = "userType"
    STATUS = "status"
    SEVERITY = "severity"


EnumValue = Union[UserType, Status, Severity]

_CLOSED_SETS: dict[EnumKind, type[Enum]] = {
    EnumKind.USER_TYPE: UserType,
    EnumKind.STATUS: Status,
    EnumKind.SEVERITY: Severity,
}


def parse_enum(kind: EnumKind | str, raw: Any) -> EnumValue:
    # Exact, case-sensitive lookup by value; no trimming or folding.
    kind = EnumKind(kind)
    members = _CLOSED_SETS[kind]
    if not isinstance(raw, str):
        raise InvalidEnumValue(kind.value, raw)
    try:
        return members(raw)  # type: ignore[return-value]
    except ValueError:
        raise InvalidEnumValue(kind.value, raw) from None
