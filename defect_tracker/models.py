from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Text, Uuid
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from defect_tracker.enums import Severity, Status, UserType


def _new_id() -> str:
    return str(uuid4())


class Base(DeclarativeBase):
    pass


UUID_TEXT = Uuid(as_uuid=False)


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class UserModel(Base):
    __tablename__ = "app_user"

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    user_type: Mapped[UserType] = mapped_column(
        SAEnum(UserType, name="user_type", values_callable=_enum_values), nullable=False
    )


class DefectModel(Base):
    __tablename__ = "defect"

    id: Mapped[str] = mapped_column(UUID_TEXT, primary_key=True, default=_new_id)
    created: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    modified: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[Status] = mapped_column(
        SAEnum(Status, name="defect_status", values_callable=_enum_values), nullable=False
    )
    severity: Mapped[Severity | None] = mapped_column(
        SAEnum(Severity, name="defect_severity", values_callable=_enum_values), nullable=True
    )
    created_by: Mapped[str] = mapped_column(
        UUID_TEXT, ForeignKey("app_user.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    assigned_to: Mapped[str | None] = mapped_column(
        UUID_TEXT, ForeignKey("app_user.id", ondelete="RESTRICT"), nullable=True, index=True
    )
