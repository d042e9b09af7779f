"""
Module: quote_kernel.models.users
Responsibility: ORM persistence for the users the workflow authorizes against.
    Only the fields the approval core reads are mapped; profile and
    department data belong to the master-data application.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from __future__ import annotations

from sqlalchemy import Boolean, CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from quote_kernel.db.base import Base


class UserModel(Base):
    """Application user with a single organisation role."""

    __tablename__ = "users"

    __table_args__ = (
        CheckConstraint(
            "role IN ('営業', '営業事務', '管理者')",
            name="ck_users_valid_role",
        ),
    )

    display_name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False, unique=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"
