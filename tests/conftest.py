"""Shared pytest fixtures: in-memory database, HTTP client and a fake store."""

from __future__ import annotations

import os
import sys
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest


def _insert_repo_root() -> None:
    """Make the repository root importable without an editable install."""

    repo_root = Path(__file__).resolve().parents[1]
    if str(repo_root) not in sys.path:
        sys.path.insert(0, str(repo_root))


_insert_repo_root()
# Keep the application engine off the filesystem during the test run.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import expense_api.models  # noqa: E402,F401  # Ensure models are registered with metadata
from expense_api import database  # noqa: E402
from expense_api.database import Base  # noqa: E402
from expense_api.query import ExpenseCriteria, SortDirection, SortKey  # noqa: E402
from expense_api.repository import ExpenseRepository  # noqa: E402
from expense_api.server import app  # noqa: E402


def pytest_report_header(config: pytest.Config) -> Iterable[str]:  # pragma: no cover - pytest hook
    log_level = os.environ.get("EXPENSE_LOG_LEVEL", "INFO")
    return [f"expense-api repo: {Path.cwd()}", f"EXPENSE_LOG_LEVEL={log_level}"]


@pytest.fixture(autouse=True)
def _set_verbose_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSE_LOG_LEVEL", "INFO")


@pytest.fixture(scope="session")
def engine():
    test_engine = database.build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    TestingSessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session: Session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[database.get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def add_expense(db_session) -> Callable[..., Any]:
    """Insert an expense with sensible defaults, including a chosen ``created_at``."""

    repository = ExpenseRepository(db_session)

    def _add(**overrides: Any):
        values = {
            "amount": 10.0,
            "account_type": "cash",
            "expense_type": "expense",
            "category": "misc",
            "description": None,
        }
        values.update(overrides)
        if "created_at" in values and "updated_at" not in values:
            values["updated_at"] = values["created_at"]
        return repository.insert(**values)

    return _add


class InMemoryExpenseStore:
    """List-backed store honouring the ``find_many``/``count`` contract."""

    def __init__(self, records: Iterable[SimpleNamespace] = ()) -> None:
        self.records = list(records)
        self.calls: list[str] = []

    def _matches(self, record: SimpleNamespace, criteria: ExpenseCriteria) -> bool:
        if criteria.search:
            needle = criteria.search.casefold()
            haystacks = [record.description or "", record.category or ""]
            if not any(needle in text.casefold() for text in haystacks):
                return False
        if criteria.created is not None and not criteria.created.contains(record.created_at):
            return False
        return True

    def find_many(self, criteria: ExpenseCriteria, sort: SortKey, skip: int, limit: int):
        self.calls.append("find_many")
        matching = [record for record in self.records if self._matches(record, criteria)]
        matching.sort(key=lambda record: record.id)
        matching.sort(
            key=lambda record: getattr(record, sort.field),
            reverse=sort.direction is SortDirection.DESC,
        )
        return matching[skip : skip + limit]

    def count(self, criteria: ExpenseCriteria) -> int:
        self.calls.append("count")
        return sum(1 for record in self.records if self._matches(record, criteria))


def make_record(index: int, created_at: datetime, **fields: Any) -> SimpleNamespace:
    values = {
        "id": f"{index:032x}",
        "amount": float(index),
        "category": "misc",
        "description": f"item {index:03d}",
        "created_at": created_at,
    }
    values.update(fields)
    return SimpleNamespace(**values)


@pytest.fixture(scope="session")
def memory_store() -> type[InMemoryExpenseStore]:
    return InMemoryExpenseStore


@pytest.fixture(scope="session")
def record_factory() -> Callable[..., SimpleNamespace]:
    return make_record
