from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Protocol

from defect_tracker.entities import Defect, Entity, User
from defect_tracker.enums import Status, UserType
from defect_tracker.errors import Conflict, InvalidReference, InvalidValue, InvariantViolation


class Operation(str, Enum):
    CREATE = "create"
    UPDATE = "update"


class Lookup(Protocol):
    def get_user(self, user_id: str) -> User | None: ...

    def users_named(self, name: str) -> Iterable[User]: ...


def _check_unique_name(user: User, lookup: Lookup) -> None:
    for other in lookup.users_named(user.name):
        if other.id != user.id:
            raise Conflict("User name already exists", field="name", name=user.name)


def _resolve(field: str, user_id: str, lookup: Lookup) -> User:
    user = lookup.get_user(user_id)
    if user is None:
        raise InvalidReference(field, user_id)
    return user


def _validate_user(op: Operation, user: User, prior: User | None, lookup: Lookup) -> None:
    if op is Operation.CREATE or prior is None or prior.name != user.name:
        _check_unique_name(user, lookup)


def _validate_defect(op: Operation, defect: Defect, lookup: Lookup) -> None:
    if op is Operation.CREATE:
        _resolve("createdBy", defect.created_by, lookup)

    if defect.assigned_to is not None:
        assignee = _resolve("assignedTo", defect.assigned_to, lookup)
        if assignee.user_type is not UserType.DEVELOPER:
            raise Conflict(
                "Defects can only be assigned to developers",
                field="assignedTo",
                user_type=assignee.user_type.value,
            )

    if defect.status is Status.REOPENED and defect.assigned_to is None:
        raise InvariantViolation("A reopened defect must be assigned", field="assignedTo")

    if defect.modified is not None and defect.modified < defect.created:
        raise InvalidValue("modified", "modified must not be earlier than created")


def validate(op: Operation, entity: Entity, prior: Entity | None, lookup: Lookup) -> None:
    """Check cross-field and cross-entity rules, raising on the first failure.

    Order: name uniqueness, reference existence, assignee eligibility,
    reopened-requires-assignee, date ordering.
    """
    if isinstance(entity, User):
        _validate_user(op, entity, prior if isinstance(prior, User) else None, lookup)
    else:
        _validate_defect(op, entity, lookup)
