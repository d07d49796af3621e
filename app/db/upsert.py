"""
Single-statement upserts for the derived analytics tables.

Every derived row is written with one `INSERT ... ON CONFLICT (key) DO UPDATE`
statement, never read-then-write from Python, so two writers racing on the
same key cannot lose an update. The last writer wins for plain columns;
columns listed in `merge` combine the stored value with the incoming one
inside the statement (e.g. `greatest(stored, incoming)` for monotonic
counters).

Supported dialects: PostgreSQL (production) and SQLite (tests, local dev).
"""
from __future__ import annotations

from typing import Any, Callable, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

MergeFn = Callable[[ColumnElement, ColumnElement], ColumnElement]


def _dialect(db: Session) -> str:
    return db.get_bind().dialect.name


def _insert_for(db: Session, table):
    name = _dialect(db)
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upsert is not implemented for dialect '{name}'.")


def greatest(db: Session, left: ColumnElement, right: ColumnElement) -> ColumnElement:
    """Row-level max of two expressions, spelled the way the dialect wants it."""
    if _dialect(db) == "sqlite":
        # SQLite's two-argument max() is a scalar function, not the aggregate.
        return func.max(left, right)
    return func.greatest(left, right)


def upsert(
    db: Session,
    model,
    values: dict[str, Any],
    key: Sequence[str],
    merge: Optional[dict[str, MergeFn]] = None,
) -> None:
    """
    Insert `values` or, when a row with the same `key` exists, overwrite its
    non-key columns. `merge[col](stored, incoming)` replaces the plain
    overwrite for that column. Flushes only; the caller commits.
    """
    table = model.__table__
    stmt = _insert_for(db, table).values(**values)
    set_: dict[str, Any] = {
        col: stmt.excluded[col] for col in values if col not in key
    }
    for col, fn in (merge or {}).items():
        set_[col] = fn(table.c[col], stmt.excluded[col])
    stmt = stmt.on_conflict_do_update(index_elements=list(key), set_=set_)
    db.execute(stmt)


def insert_ignore(db: Session, model, values: dict[str, Any], key: Sequence[str]) -> None:
    """Insert `values` unless a row with the same `key` already exists."""
    stmt = _insert_for(db, model.__table__).values(**values)
    db.execute(stmt.on_conflict_do_nothing(index_elements=list(key)))
