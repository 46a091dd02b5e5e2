"""Expense tracking REST API: users, expenses and the expense query engine."""

from __future__ import annotations

__all__ = [
    "__version__",
    "config",
    "crud",
    "database",
    "errors",
    "models",
    "query",
    "repository",
    "schemas",
    "security",
    "server",
]

__version__ = "1.0.0"
