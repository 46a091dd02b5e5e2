"""Record store backed by SQLAlchemy sessions.

Lookups return ``None`` when nothing matches; turning absence into an error is
the caller's decision (see :mod:`expense_api.crud`).
"""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, List, Optional

from sqlalchemy import ColumnElement, func, or_, select
from sqlalchemy.orm import Session

from . import models
from .database import casefold
from .query import ExpenseCriteria, SortDirection, SortKey

_LIKE_ESCAPE = "\\"


def _escape_like(text: str) -> str:
    return (
        text.replace(_LIKE_ESCAPE, _LIKE_ESCAPE * 2)
        .replace("%", _LIKE_ESCAPE + "%")
        .replace("_", _LIKE_ESCAPE + "_")
    )


def criteria_clauses(criteria: ExpenseCriteria) -> List[ColumnElement[bool]]:
    """Translate :class:`ExpenseCriteria` into SQL ``WHERE`` clauses."""
    clauses: List[ColumnElement[bool]] = []
    if criteria.search:
        pattern = f"%{_escape_like(criteria.search.casefold())}%"
        clauses.append(
            or_(
                casefold(models.Expense.description).like(pattern, escape=_LIKE_ESCAPE),
                casefold(models.Expense.category).like(pattern, escape=_LIKE_ESCAPE),
            )
        )
    if criteria.created is not None:
        clauses.append(models.Expense.created_at >= criteria.created.start)
        if criteria.created.end is not None:
            clauses.append(models.Expense.created_at <= criteria.created.end)
    return clauses


class ExpenseRepository:
    """Persistence operations on :class:`models.Expense`."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert(self, **values: Any) -> models.Expense:
        expense = models.Expense(**values)
        self._session.add(expense)
        self._session.flush()
        self._session.refresh(expense)
        return expense

    def find_by_id(self, expense_id: str) -> Optional[models.Expense]:
        return self._session.get(models.Expense, expense_id)

    def find_many(
        self, criteria: ExpenseCriteria, sort: SortKey, skip: int, limit: int
    ) -> List[models.Expense]:
        column = getattr(models.Expense, sort.field)
        order = column.desc() if sort.direction is SortDirection.DESC else column.asc()
        stmt = (
            select(models.Expense)
            .where(*criteria_clauses(criteria))
            .order_by(order, models.Expense.id.asc())
            .offset(skip)
            .limit(limit)
        )
        return list(self._session.scalars(stmt))

    def count(self, criteria: ExpenseCriteria) -> int:
        stmt = select(func.count()).select_from(models.Expense).where(*criteria_clauses(criteria))
        return int(self._session.scalar(stmt) or 0)

    def update_by_id(self, expense_id: str, values: Mapping[str, Any]) -> Optional[models.Expense]:
        expense = self.find_by_id(expense_id)
        if expense is None:
            return None
        for field, value in values.items():
            setattr(expense, field, value)
        expense.updated_at = models.local_now()
        self._session.flush()
        self._session.refresh(expense)
        return expense

    def delete_by_id(self, expense_id: str) -> bool:
        expense = self.find_by_id(expense_id)
        if expense is None:
            return False
        self._session.delete(expense)
        self._session.flush()
        return True


class UserRepository:
    """Persistence operations on :class:`models.User`."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert(self, username: str, email: str, password_hash: str) -> models.User:
        user = models.User(username=username, email=email, password=password_hash)
        self._session.add(user)
        self._session.flush()
        self._session.refresh(user)
        return user

    def find_by_id(self, user_id: str) -> Optional[models.User]:
        return self._session.get(models.User, user_id)

    def find_by_email(self, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(models.User.email == email)
        return self._session.scalars(stmt).first()

    def find_by_username_or_email(self, username: str, email: str) -> Optional[models.User]:
        stmt = select(models.User).where(
            or_(models.User.username == username, models.User.email == email)
        )
        return self._session.scalars(stmt).first()
