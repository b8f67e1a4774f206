from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError

from defect_tracker.codec import decode, merge_update
from defect_tracker.db import SessionLocal, init_db, reset_db
from defect_tracker.entities import Defect, Entity, ReferenceRole, ResourceKind, User
from defect_tracker.enums import EnumKind, parse_enum
from defect_tracker.errors import Conflict, DefectTrackerError, InvalidValue, NotFound
from defect_tracker.models import DefectModel, UserModel
from defect_tracker.rules import Operation, validate


logger = logging.getLogger("defect_tracker.store")


def _new_id() -> str:
    return str(uuid4())


def _is_uuid(value: str) -> bool:
    try:
        UUID(value)
    except (TypeError, ValueError, AttributeError):
        return False
    return True


def _aware(ts: datetime | None) -> datetime | None:
    if ts is None:
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def _user_from_model(model: UserModel) -> User:
    return User(
        id=model.id,
        name=model.name,
        user_type=model.user_type,
        image_url=model.image_url,
    )


def _defect_from_model(model: DefectModel) -> Defect:
    return Defect(
        id=model.id,
        created=_aware(model.created),  # type: ignore[arg-type]
        modified=_aware(model.modified),
        summary=model.summary,
        status=model.status,
        severity=model.severity,
        created_by=model.created_by,
        assigned_to=model.assigned_to,
    )


def _from_model(model: UserModel | DefectModel) -> Entity:
    if isinstance(model, UserModel):
        return _user_from_model(model)
    return _defect_from_model(model)


def _apply(model: UserModel | DefectModel, entity: Entity) -> None:
    if isinstance(entity, User):
        model.name = entity.name
        model.image_url = entity.image_url
        model.user_type = entity.user_type
        return
    model.created = entity.created
    model.modified = entity.modified
    model.summary = entity.summary
    model.status = entity.status
    model.severity = entity.severity
    model.created_by = entity.created_by
    model.assigned_to = entity.assigned_to


_MODELS: dict[ResourceKind, type[UserModel] | type[DefectModel]] = {
    ResourceKind.USER: UserModel,
    ResourceKind.DEFECT: DefectModel,
}

# field -> (column, enum kind used to parse raw search values)
_SEARCHABLE: dict[ResourceKind, dict[str, tuple[Any, EnumKind | None]]] = {
    ResourceKind.USER: {
        "name": (UserModel.name, None),
        "userType": (UserModel.user_type, EnumKind.USER_TYPE),
    },
    ResourceKind.DEFECT: {
        "status": (DefectModel.status, EnumKind.STATUS),
        "severity": (DefectModel.severity, EnumKind.SEVERITY),
        "summary": (DefectModel.summary, None),
    },
}


class ReadWriteLock:
    """Shared reader / exclusive writer lock. Waiting writers hold off new readers."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._readers = 0
        self._writing = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writing or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writing or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()


class _SessionLookup:
    """Read-only view of persisted users inside an open session."""

    def __init__(self, session) -> None:
        self._session = session

    def get_user(self, user_id: str) -> User | None:
        if not _is_uuid(user_id):
            return None
        model = self._session.get(UserModel, user_id)
        return _user_from_model(model) if model is not None else None

    def users_named(self, name: str) -> list[User]:
        rows = self._session.execute(select(UserModel).where(UserModel.name == name)).scalars().all()
        return [_user_from_model(row) for row in rows]


@contextmanager
def _reporting(action: str, kind: ResourceKind) -> Iterator[None]:
    try:
        yield
    except DefectTrackerError as exc:
        logger.info("Rejected %s of %s: %s (%s)", action, kind.value, exc.code, exc.message)
        raise


class SqlStore:
    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        init_db()

    def reset(self) -> None:
        with self._lock.write():
            reset_db()

    def _get_model(self, session, kind: ResourceKind, entity_id: str) -> UserModel | DefectModel:
        model = session.get(_MODELS[kind], entity_id) if _is_uuid(entity_id) else None
        if model is None:
            raise NotFound(kind.value, entity_id)
        return model

    def create(self, kind: ResourceKind | str, raw: Any) -> Entity:
        kind = ResourceKind(kind)
        with _reporting("create", kind):
            entity = decode(kind, raw)
            with self._lock.write():
                try:
                    with SessionLocal.begin() as session:
                        validate(Operation.CREATE, entity, None, _SessionLookup(session))
                        entity = replace(entity, id=_new_id())
                        model = _MODELS[kind](id=entity.id)
                        _apply(model, entity)
                        session.add(model)
                        session.flush()
                except IntegrityError as exc:
                    raise Conflict(f"{kind.value} violates a storage constraint") from exc
        logger.info("Created %s %s", kind.value, entity.id)
        return entity

    def read(self, kind: ResourceKind | str, entity_id: str) -> Entity:
        kind = ResourceKind(kind)
        with self._lock.read():
            with SessionLocal() as session:
                return _from_model(self._get_model(session, kind, entity_id))

    def update(self, kind: ResourceKind | str, entity_id: str, raw: Any) -> Entity:
        """Merge ``raw`` onto the stored entity and persist it.

        ``id``, ``created`` and ``createdBy`` keep their stored values. Nothing
        is written unless decoding and every consistency rule pass.
        """
        kind = ResourceKind(kind)
        with _reporting("update", kind), self._lock.write():
            try:
                with SessionLocal.begin() as session:
                    model = self._get_model(session, kind, entity_id)
                    prior = _from_model(model)
                    entity = replace(decode(kind, merge_update(kind, prior, raw)), id=prior.id)
                    validate(Operation.UPDATE, entity, prior, _SessionLookup(session))
                    _apply(model, entity)
                    session.flush()
            except IntegrityError as exc:
                raise Conflict(f"{kind.value} violates a storage constraint") from exc
        logger.info("Updated %s %s", kind.value, entity_id)
        return entity

    def delete(self, kind: ResourceKind | str, entity_id: str) -> None:
        kind = ResourceKind(kind)
        with _reporting("delete", kind), self._lock.write():
            with SessionLocal.begin() as session:
                model = self._get_model(session, kind, entity_id)
                if kind is ResourceKind.USER:
                    referencing = session.execute(
                        select(func.count())
                        .select_from(DefectModel)
                        .where(or_(DefectModel.created_by == model.id, DefectModel.assigned_to == model.id))
                    ).scalar_one()
                    if referencing:
                        raise Conflict(
                            "User is still referenced by defects",
                            referencing_defects=int(referencing),
                        )
                session.delete(model)
        logger.info("Deleted %s %s", kind.value, entity_id)

    def reset_all(self) -> dict[str, int]:
        # Defects go first: they hold the references into users.
        with self._lock.write():
            with SessionLocal.begin() as session:
                defects = session.execute(delete(DefectModel)).rowcount or 0
                users = session.execute(delete(UserModel)).rowcount or 0
        logger.info("Reset store: removed %d defects and %d users", defects, users)
        return {ResourceKind.DEFECT.value: defects, ResourceKind.USER.value: users}

    def _iter_matching(self, kind: ResourceKind, *criteria) -> Iterator[Entity]:
        model_cls = _MODELS[kind]
        with self._lock.read():
            with SessionLocal() as session:
                rows = session.execute(select(model_cls).where(*criteria)).scalars().all()
                entities = [_from_model(row) for row in rows]
        yield from entities

    def list_all(self, kind: ResourceKind | str) -> list[Entity]:
        return list(self._iter_matching(ResourceKind(kind)))

    def count(self, kind: ResourceKind | str) -> int:
        model_cls = _MODELS[ResourceKind(kind)]
        with self._lock.read():
            with SessionLocal() as session:
                return int(session.execute(select(func.count()).select_from(model_cls)).scalar_one())

    def find_by_field(self, kind: ResourceKind | str, field: str, value: Any) -> Iterator[Entity]:
        """Lazily yield every entity of ``kind`` whose ``field`` equals ``value``.

        Enum fields accept members or raw strings; raw strings go through
        :func:`parse_enum`. Unsupported fields raise ``InvalidValue``.
        """
        kind = ResourceKind(kind)
        try:
            column, enum_kind = _SEARCHABLE[kind][field]
        except KeyError:
            raise InvalidValue(field, f"{kind.value} cannot be searched by {field}") from None
        if enum_kind is not None:
            value = parse_enum(enum_kind, value)
        return self._iter_matching(kind, column == value)

    def list_referencing(self, user_id: str, role: ReferenceRole | str) -> list[Defect]:
        role = ReferenceRole(role)
        if not _is_uuid(user_id):
            return []
        column = DefectModel.created_by if role is ReferenceRole.CREATED_BY else DefectModel.assigned_to
        return list(self._iter_matching(ResourceKind.DEFECT, column == user_id))  # type: ignore[arg-type]


STORE = SqlStore()
