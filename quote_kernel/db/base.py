"""
quote_kernel.db.base -- Declarative bases shared by every ORM model.

Conventions:
    - Primary keys are uuid4 values stored as String(36) (``UUIDString``),
      so the same schema runs on PostgreSQL and SQLite.
    - ``Decimal`` annotations become Numeric(38, 9): quote totals, costs and
      quantities are never floats.
    - ``datetime`` annotations are timezone-aware.
    - ``TrackedBase`` adds creator/modifier columns to documents.  The
      creator is who may request or cancel an approval without a
      back-office role.

Lowest layer of the kernel: imports nothing from models/, services/ or
selectors/.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID column stored as its 36-character string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 ``id`` plus the column type conventions."""

    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Documents: server-stamped created/updated times and acting users."""

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now(), nullable=False,
    )
    # Owner of the document for approval purposes.
    created_by_id: Mapped[UUID] = mapped_column(nullable=False)
    updated_by_id: Mapped[UUID | None] = mapped_column(nullable=True)
