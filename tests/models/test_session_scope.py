"""session_scope: commit on success, rollback and re-raise on error."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from quote_kernel.db.engine import get_engine, reset_engine, session_scope
from quote_kernel.models.users import UserModel


def _user(email: str) -> UserModel:
    return UserModel(id=uuid4(), display_name="scope", email=email, role="営業")


def _emails(session_factory) -> list[str]:
    with session_factory() as s:
        return list(s.scalars(select(UserModel.email)))


def test_commits_on_normal_exit(session_factory):
    with session_scope() as s:
        s.add(_user("committed@example.com"))

    assert _emails(session_factory) == ["committed@example.com"]


def test_rolls_back_and_reraises(session_factory, captured_logs):
    with pytest.raises(ValueError):
        with session_scope() as s:
            s.add(_user("discarded@example.com"))
            s.flush()
            raise ValueError("abort")

    assert _emails(session_factory) == []
    [warning] = [r for r in captured_logs() if r["message"] == "transaction_rolled_back"]
    assert warning["level"] == "WARNING"
    assert warning["exc_type"] == "ValueError"


def test_accessors_require_an_engine():
    reset_engine()
    with pytest.raises(RuntimeError, match="init_engine_from_url"):
        get_engine()
