"""Domain errors raised by the codec, rule engine and store."""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    CLIENT_INPUT = "client_input"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INTERNAL_FAULT = "internal_fault"


class DefectTrackerError(Exception):
    code = "ERROR"
    category = ErrorCategory.INTERNAL_FAULT

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "retryable": False,
            "details": self.details or None,
        }


class MissingRequiredField(DefectTrackerError):
    code = "MISSING_REQUIRED_FIELD"
    category = ErrorCategory.CLIENT_INPUT

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing required field: {field}", field=field)
        self.field = field


class InvalidEnumValue(DefectTrackerError):
    code = "INVALID_ENUM_VALUE"
    category = ErrorCategory.CLIENT_INPUT

    def __init__(self, kind: str, raw: Any) -> None:
        super().__init__(f"Invalid {kind} value: {raw!r}", kind=kind, value=raw)
        self.kind = kind
        self.raw = raw


class InvalidValue(DefectTrackerError):
    code = "INVALID_VALUE"
    category = ErrorCategory.CLIENT_INPUT

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message, field=field)
        self.field = field


class InvalidReference(DefectTrackerError):
    code = "INVALID_REFERENCE"
    category = ErrorCategory.CLIENT_INPUT

    def __init__(self, field: str, reference: str) -> None:
        super().__init__(f"{field} does not reference an existing user", field=field, reference=reference)
        self.field = field
        self.reference = reference


class Conflict(DefectTrackerError):
    code = "CONFLICT"
    category = ErrorCategory.CONFLICT


class InvariantViolation(DefectTrackerError):
    code = "INVARIANT_VIOLATION"
    category = ErrorCategory.INTERNAL_FAULT


class NotFound(DefectTrackerError):
    code = "NOT_FOUND"
    category = ErrorCategory.NOT_FOUND

    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} not found", kind=kind, id=entity_id)
        self.kind = kind
        self.entity_id = entity_id


class IncompleteEntity(DefectTrackerError):
    code = "INCOMPLETE_ENTITY"
    category = ErrorCategory.INTERNAL_FAULT

    def __init__(self, field: str) -> None:
        super().__init__(f"Cannot encode entity without required field: {field}", field=field)
        self.field = field
