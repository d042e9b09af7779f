"""
Caller resolution (``quote_services.roles``).

The core never reads identity from ambient request state.  The workflow
facade receives a bare ``caller_id`` and resolves it to a ``Caller``
(user id plus role) through a RoleProvider, inside the operation's own
transaction.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from sqlalchemy.orm import Session

from quote_kernel.domain.approval import Caller, UserRole
from quote_kernel.exceptions import UserNotFoundError
from quote_kernel.models.users import UserModel


class RoleProvider(Protocol):
    """Resolves a user id to an authorized Caller."""

    def resolve(self, session: Session, user_id: UUID) -> Caller:
        ...


class UserRoleProvider:
    """RoleProvider backed by the users table.

    Unknown and deactivated users are refused with UserNotFoundError.
    """

    def resolve(self, session: Session, user_id: UUID) -> Caller:
        user = session.get(UserModel, user_id)
        if user is None or not user.is_active:
            raise UserNotFoundError(str(user_id))
        return Caller(user_id=user.id, role=UserRole(user.role))


class StaticRoleProvider:
    """RoleProvider backed by a simple dict, for tests and scripts."""

    def __init__(self, role_map: dict[UUID, UserRole] | None = None) -> None:
        self._role_map: dict[UUID, UserRole] = dict(role_map or {})

    def assign(self, user_id: UUID, role: UserRole) -> None:
        self._role_map[user_id] = role

    def resolve(self, session: Session, user_id: UUID) -> Caller:
        role = self._role_map.get(user_id)
        if role is None:
            raise UserNotFoundError(str(user_id))
        return Caller(user_id=user_id, role=role)
