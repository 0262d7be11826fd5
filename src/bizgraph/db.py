from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from .config import AppSettings, get_settings
from .graph.schema import create_graph_schema
from .store.schema import create_store_schema


def engine_from_settings(settings: Optional[AppSettings] = None) -> Engine:
    """Build an Engine for the configured PostgreSQL store."""
    settings = settings or get_settings()
    db = settings.database
    return create_engine(
        str(db.url),
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        echo=db.echo,
    )


def create_schema(engine: Engine) -> None:
    """Create the relational tables and the graph mirror tables."""
    create_store_schema(engine)
    create_graph_schema(engine)


@contextmanager
def session_scope(engine: Engine) -> Iterator[Session]:
    """
    One unit of work: commit on success, roll back on error.

    Services never commit themselves; wrap calls in this scope (or manage the
    Session directly) to decide where a unit of work ends.

    Not for migrations: they commit per row or edge, which this scope does
    not allow. Use migration_session instead.
    """
    with Session(engine) as session:
        with session.begin():
            yield session


@contextmanager
def migration_session(engine: Engine) -> Iterator[Session]:
    """
    A Session without an enclosing transaction, for the migration steps.

    The migrations commit after every row or edge, so a failure leaves the
    rows migrated before it in place. Whatever is still pending when the
    block exits is discarded when the Session closes.
    """
    with Session(engine) as session:
        yield session
