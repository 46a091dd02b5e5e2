"""Database configuration for the expense API."""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import String, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.sql.functions import FunctionElement

from .config import get_settings
from .logging import get_stream_logger

LOG = get_stream_logger(__name__)


class casefold(FunctionElement):
    """Unicode case folding of a text expression.

    SQLite's ``lower()`` only folds ASCII letters, so SQLite connections get a
    Python-backed ``casefold()`` function; other backends use ``lower()``.
    """

    type = String()
    name = "casefold"
    inherit_cache = True


@compiles(casefold)
def _compile_casefold(element: casefold, compiler: Any, **kw: Any) -> str:
    return f"lower({compiler.process(element.clauses, **kw)})"


@compiles(casefold, "sqlite")
def _compile_casefold_sqlite(element: casefold, compiler: Any, **kw: Any) -> str:
    return f"casefold({compiler.process(element.clauses, **kw)})"


def _casefold_text(value: Optional[str]) -> Optional[str]:
    return value.casefold() if isinstance(value, str) else value


def _register_sqlite_functions(dbapi_connection: Any, _connection_record: Any) -> None:
    dbapi_connection.create_function("casefold", 1, _casefold_text, deterministic=True)


def build_engine(database_url: str, **engine_options: Any) -> Engine:
    """Create an engine for ``database_url``.

    SQLite engines relax the same-thread check for the web server and register
    the ``casefold()`` SQL function on every new connection.
    """

    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        engine_options.setdefault("connect_args", {"check_same_thread": False})
    new_engine = create_engine(database_url, future=True, **engine_options)
    if is_sqlite:
        event.listen(new_engine, "connect", _register_sqlite_functions)
    return new_engine


DATABASE_URL = get_settings().database_url
engine = build_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

Base = declarative_base()


def init_db(bind: Engine | None = None) -> None:
    """Create the ``users`` and ``expenses`` tables when missing."""
    from . import models  # noqa: F401  # registers both tables on Base.metadata

    target = bind or engine
    Base.metadata.create_all(bind=target)
    LOG.debug("Tables ensured on %s", target.url.render_as_string(hide_password=True))


@contextmanager
def session_scope(factory: sessionmaker = SessionLocal) -> Iterator[Session]:
    """Commit on success, roll back and re-raise on any error."""
    session = factory()
    try:
        yield session
        session.commit()
    except Exception as exc:
        LOG.warning("Rolling back session after %s", type(exc).__name__)
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Iterator[Session]:
    """Request-scoped session; the route's writes commit when it returns."""
    with session_scope() as session:
        yield session
