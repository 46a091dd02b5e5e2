"""SQLAlchemy models for the expense API."""
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped

from .database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


def local_now() -> datetime:
    # Naive server-local time; the date filters work in the same clock.
    return datetime.now()


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = Column(String(32), primary_key=True, default=_new_id)
    username: Mapped[str] = Column(String(100), unique=True, nullable=False, index=True)
    email: Mapped[str] = Column(String(255), unique=True, nullable=False, index=True)
    password: Mapped[str] = Column(String(255), nullable=False)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False, default=local_now)
    updated_at: Mapped[datetime] = Column(DateTime, nullable=False, default=local_now, onupdate=local_now)


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[str] = Column(String(32), primary_key=True, default=_new_id)
    # Nullable because an update replaces these wholesale, absent values included.
    amount: Mapped[Optional[float]] = Column(Float, nullable=True)
    account_type: Mapped[Optional[str]] = Column(String(100), nullable=True)
    expense_type: Mapped[Optional[str]] = Column(String(100), nullable=True)
    category: Mapped[Optional[str]] = Column(String(100), nullable=True, index=True)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    author_id: Mapped[Optional[str]] = Column(String(32), nullable=True, index=True)
    created_at: Mapped[datetime] = Column(DateTime, nullable=False, default=local_now, index=True)
    updated_at: Mapped[datetime] = Column(DateTime, nullable=False, default=local_now)
