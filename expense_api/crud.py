"""Service functions for users and expenses."""
from __future__ import annotations

from datetime import datetime
from typing import Final, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas, security
from .errors import AuthError, ConflictError, NotFoundError, ValidationError
from .logging import get_stream_logger
from .query import ExpensePage, ExpenseQuery, resolve_expense_query
from .repository import ExpenseRepository, UserRepository

LOG = get_stream_logger(__name__)

MIN_PASSWORD_LENGTH: Final[int] = 6
# Replaced together on update, including values the caller left out.
MUTABLE_EXPENSE_FIELDS: Final[tuple[str, ...]] = ("amount", "account_type", "expense_type", "category")


def _require_id(expense_id: Optional[str]) -> str:
    if not expense_id or not expense_id.strip():
        raise ValidationError("expense id is required")
    return expense_id.strip()


def create_expense(
    session: Session,
    expense_in: schemas.ExpenseCreate,
    author_id: Optional[str] = None,
) -> models.Expense:
    values = {field: getattr(expense_in, field) for field in MUTABLE_EXPENSE_FIELDS}
    missing = [field for field, value in values.items() if not value]
    if missing:
        LOG.warning("Rejected expense with missing fields: %s", ", ".join(missing))
        raise ValidationError("fields missing")
    expense = ExpenseRepository(session).insert(
        **values,
        description=expense_in.description,
        author_id=author_id,
    )
    LOG.info("Created expense %s", expense.id, extra={"expense_id": expense.id})
    return expense


def list_expenses(session: Session, query: ExpenseQuery, now: Optional[datetime] = None) -> ExpensePage:
    return resolve_expense_query(ExpenseRepository(session), query, now=now)


def get_expense(session: Session, expense_id: Optional[str]) -> models.Expense:
    expense_id = _require_id(expense_id)
    expense = ExpenseRepository(session).find_by_id(expense_id)
    if expense is None:
        LOG.warning("Expense %s not found", expense_id)
        raise NotFoundError(f"Expense {expense_id} not found")
    return expense


def update_expense(
    session: Session,
    expense_id: Optional[str],
    update_in: schemas.ExpenseUpdate,
) -> models.Expense:
    """Replace the four mutable fields of an expense.

    This is a full replace, not a merge: a field missing from ``update_in`` is
    stored as ``None``.
    """
    expense_id = _require_id(expense_id)
    values = {field: getattr(update_in, field) for field in MUTABLE_EXPENSE_FIELDS}
    expense = ExpenseRepository(session).update_by_id(expense_id, values)
    if expense is None:
        LOG.warning("Expense %s not found for update", expense_id)
        raise NotFoundError(f"Expense {expense_id} not found")
    LOG.info("Updated expense %s", expense_id, extra={"expense_id": expense_id})
    return expense


def delete_expense(session: Session, expense_id: Optional[str]) -> None:
    expense_id = _require_id(expense_id)
    if not ExpenseRepository(session).delete_by_id(expense_id):
        LOG.warning("Expense %s not found for delete", expense_id)
        raise NotFoundError(f"Expense {expense_id} not found")
    LOG.info("Deleted expense %s", expense_id, extra={"expense_id": expense_id})


def register_user(session: Session, user_in: schemas.UserRegister) -> models.User:
    username = (user_in.username or "").strip()
    email = (user_in.email or "").strip().lower()
    password = user_in.password or ""
    if not username or not email or not password:
        raise ValidationError("username, email and password are required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    users = UserRepository(session)
    if users.find_by_username_or_email(username, email) is not None:
        raise ConflictError("User with email or username already exists")
    try:
        user = users.insert(username, email, security.hash_password(password))
    except IntegrityError as exc:  # pragma: no cover - concurrent registration
        raise ConflictError("User with email or username already exists") from exc
    LOG.info("Registered user %s", user.id)
    return user


def authenticate_user(session: Session, credentials: schemas.UserLogin) -> models.User:
    email = (credentials.email or "").strip().lower()
    if not email:
        raise ValidationError("Email is required")
    user = UserRepository(session).find_by_email(email)
    if user is None:
        raise NotFoundError("User with provided email does not exist")
    if not security.verify_password(credentials.password or "", user.password):
        LOG.warning("Failed login for user %s", user.id)
        raise AuthError("Invalid credentials")
    return user
