from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterator, Sequence

from sqlalchemy import Table
from sqlalchemy.exc import DBAPIError
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncConnection
from sqlalchemy.orm import DeclarativeBase

from zap_indexer.app.domain.errors import StorageUnavailable


def insert_ignore(
    conn: AsyncConnection,
    model: type[DeclarativeBase] | Table,
    *,
    index_elements: Sequence[str],
):
    """
    INSERT ... ON CONFLICT (index_elements) DO NOTHING for the connection's dialect.

    A conflict on the natural key is the expected idempotency signal (a
    re-fetched event, a concurrent distribution run), never an error.
    """
    dialect = conn.dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model)
    else:
        raise ValueError(f"Unsupported database dialect: {dialect!r}")
    return stmt.on_conflict_do_nothing(index_elements=list(index_elements))


def insert_or_advance(
    conn: AsyncConnection,
    model: type[DeclarativeBase],
    *,
    index_elements: Sequence[str],
    values: dict[str, Any],
    column: str,
):
    """
    INSERT, or on conflict UPDATE only when ``column`` moves forward.

    Used for monotonic progress markers (checkpoints).
    """
    dialect = conn.dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model).values(**values)
    else:
        raise ValueError(f"Unsupported database dialect: {dialect!r}")
    table = model.__table__
    return stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={k: stmt.excluded[k] for k in values if k not in index_elements},
        where=table.c[column] < stmt.excluded[column],
    )


def to_numeric(value: int | None) -> Decimal | None:
    return None if value is None else Decimal(value)


def to_int(value: Any) -> int:
    """Numeric column / aggregate (Decimal, int, float on SQLite) -> int."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(Decimal(str(value)))


def as_utc(value: datetime) -> datetime:
    """SQLite hands timestamps back naive; they are stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures (dropped connection, lock timeout, ...) as StorageUnavailable."""
    try:
        yield
    except DBAPIError as exc:
        raise StorageUnavailable(f"{operation} failed: {exc.orig!r}") from exc
