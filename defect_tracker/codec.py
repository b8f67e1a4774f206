"""Conversion between raw JSON-like mappings and typed entities.

Field names on the wire are camelCase (``userType``, ``createdBy``); entities
use snake_case attributes. Required fields are checked for presence before any
field is parsed, and absent optional fields stay ``None``.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from typing import Any, TypeVar

from defect_tracker.entities import Defect, Entity, ResourceKind, User
from defect_tracker.enums import EnumKind, parse_enum
from defect_tracker.errors import IncompleteEntity, InvalidValue, MissingRequiredField


TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

REQUIRED_FIELDS: dict[ResourceKind, tuple[str, ...]] = {
    ResourceKind.USER: ("name", "userType"),
    ResourceKind.DEFECT: ("created", "status", "createdBy"),
}

IMMUTABLE_FIELDS: dict[ResourceKind, frozenset[str]] = {
    ResourceKind.USER: frozenset({"id"}),
    ResourceKind.DEFECT: frozenset({"id", "created", "createdBy"}),
}

# Older clients send relational links under these keys.
_FIELD_ALIASES = {
    "createdByUrl": "createdBy",
    "assignedToUrl": "assignedTo",
}

T = TypeVar("T")


def parse_timestamp(value: str) -> datetime:
    """Parse ``YYYY-MM-DD HH:MM:SS`` or ISO-8601 into an aware UTC datetime.

    Naive input is taken as UTC. Sub-second precision is dropped so that
    :func:`format_timestamp` and this function round-trip exactly.
    Raises ``ValueError`` on malformed input.
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc).replace(microsecond=0)
    except OverflowError:
        # Offsets near year 1 or 9999 push the UTC instant out of range.
        raise ValueError(f"timestamp out of range in UTC: {value!r}") from None


def format_timestamp(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def normalize_payload(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise InvalidValue("payload", "Payload must be a JSON object")
    payload = dict(raw)
    for alias, field in _FIELD_ALIASES.items():
        if alias in payload:
            value = payload.pop(alias)
            payload.setdefault(field, value)
    return payload


def _string(field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidValue(field, f"{field} must be a string")
    return value


def _identifier(field: str, value: Any) -> str:
    text = _string(field, value)
    if not text:
        raise InvalidValue(field, f"{field} must not be empty")
    return text


def _reference(field: str, value: Any) -> str:
    # Accept a bare id or a resource URL ending in the id.
    text = _string(field, value).rstrip("/")
    ref = text.rsplit("/", 1)[-1]
    if not ref:
        raise InvalidValue(field, f"{field} must reference a user")
    return ref


def _timestamp(field: str, value: Any) -> datetime:
    text = _string(field, value)
    try:
        return parse_timestamp(text)
    except ValueError:
        raise InvalidValue(field, f"{field} is not a valid timestamp: {text!r}") from None


def _optional(payload: dict[str, Any], field: str, parse: Callable[[str, Any], T]) -> T | None:
    value = payload.get(field)
    if value is None:
        return None
    return parse(field, value)


def _decode_user(payload: dict[str, Any]) -> User:
    return User(
        name=_identifier("name", payload["name"]),
        user_type=parse_enum(EnumKind.USER_TYPE, payload["userType"]),  # type: ignore[arg-type]
        image_url=_optional(payload, "imageUrl", _string),
        id=_optional(payload, "id", _identifier),
    )


def _decode_defect(payload: dict[str, Any]) -> Defect:
    return Defect(
        created=_timestamp("created", payload["created"]),
        status=parse_enum(EnumKind.STATUS, payload["status"]),  # type: ignore[arg-type]
        created_by=_reference("createdBy", payload["createdBy"]),
        summary=_optional(payload, "summary", _string),
        modified=_optional(payload, "modified", _timestamp),
        severity=_optional(payload, "severity", lambda _, v: parse_enum(EnumKind.SEVERITY, v)),  # type: ignore[arg-type]
        assigned_to=_optional(payload, "assignedTo", _reference),
        id=_optional(payload, "id", _identifier),
    )


def decode(kind: ResourceKind | str, raw: Any) -> Entity:
    kind = ResourceKind(kind)
    payload = normalize_payload(raw)
    for field in REQUIRED_FIELDS[kind]:
        if payload.get(field) is None:
            raise MissingRequiredField(field)
    if kind is ResourceKind.USER:
        return _decode_user(payload)
    return _decode_defect(payload)


def _present(field: str, value: Any) -> Any:
    if value is None:
        raise IncompleteEntity(field)
    return value


def encode(entity: Entity) -> dict[str, Any]:
    if isinstance(entity, User):
        out: dict[str, Any] = {
            "id": _present("id", entity.id),
            "name": _present("name", entity.name),
            "userType": _present("userType", entity.user_type).value,
        }
        if entity.image_url is not None:
            out["imageUrl"] = entity.image_url
        return out

    out = {
        "id": _present("id", entity.id),
        "created": format_timestamp(_present("created", entity.created)),
        "status": _present("status", entity.status).value,
        "createdBy": _present("createdBy", entity.created_by),
    }
    if entity.summary is not None:
        out["summary"] = entity.summary
    if entity.modified is not None:
        out["modified"] = format_timestamp(entity.modified)
    if entity.severity is not None:
        out["severity"] = entity.severity.value
    if entity.assigned_to is not None:
        out["assignedTo"] = entity.assigned_to
    return out


def merge_update(kind: ResourceKind | str, prior: Entity, raw: Any) -> dict[str, Any]:
    """Overlay an update payload on the encoded prior state.

    Immutable keys in ``raw`` are ignored; an explicit ``None`` clears the
    field, which :func:`decode` then reports if the field is required.
    """
    kind = ResourceKind(kind)
    merged = encode(prior)
    immutable = IMMUTABLE_FIELDS[kind]
    for key, value in normalize_payload(raw).items():
        if key in immutable:
            continue
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = value
    return merged
