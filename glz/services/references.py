from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import insert, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..app import db
from ..constants import REFERENCE_LEVELS, REFERENCE_PREFIX, REFERENCE_SEQUENCE_WIDTH
from ..models import ReferenceCounter
from ..shared.time import now_utc
from .errors import AllocationFailure

logger = logging.getLogger("glz.references")

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def format_reference_number(year: int, level: str, count: int) -> str:
    """``GLZ-2024-B2-0007``; sequences past 9999 widen instead of wrapping."""

    return f"{REFERENCE_PREFIX}-{year}-{level}-{count:0{REFERENCE_SEQUENCE_WIDTH}d}"


def _counter_filter(table, year: int, level: str):
    return (table.c.year == year) & (table.c.level == level)


def _increment_with_upsert(insert_factory, year: int, level: str) -> int:
    table = ReferenceCounter.__table__
    stmt = (
        insert_factory(table)
        .values(year=year, level=level, count=1)
        .on_conflict_do_update(
            index_elements=[table.c.year, table.c.level],
            set_={"count": table.c.count + 1},
        )
        .returning(table.c.count)
    )
    return db.session.execute(stmt).scalar_one()


def _increment_generic(year: int, level: str) -> int:
    # UPDATE takes the row lock first, so the follow-up SELECT reads our own
    # increment even with other writers queued behind us.
    table = ReferenceCounter.__table__
    where = _counter_filter(table, year, level)
    result = db.session.execute(
        update(table).where(where).values(count=table.c.count + 1)
    )
    if result.rowcount == 0:
        try:
            with db.session.begin_nested():
                db.session.execute(insert(table).values(year=year, level=level, count=1))
            return 1
        except IntegrityError:
            db.session.execute(
                update(table).where(where).values(count=table.c.count + 1)
            )
    return db.session.execute(select(table.c.count).where(where)).scalar_one()


def next_sequence(level: str, year: int) -> int:
    """Atomically increment and return the counter for ``(year, level)``.

    The increment joins the caller's transaction; it becomes visible to
    other allocators when that transaction commits.
    """

    dialect = db.engine.dialect.name
    insert_factory = _UPSERT_INSERTS.get(dialect)
    try:
        if insert_factory is not None:
            return _increment_with_upsert(insert_factory, year, level)
        return _increment_generic(year, level)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(
            "[REF-ALLOC] failed year=%s level=%s dialect=%s error=%s",
            year,
            level,
            dialect,
            exc,
        )
        raise AllocationFailure(
            f"Could not allocate a reference number for {level} {year}; please retry"
        ) from exc


def allocate_reference_number(level: str, year: Optional[int] = None) -> str:
    if level not in REFERENCE_LEVELS:
        raise ValueError(f"Unknown reference level: {level!r}")
    year = year or now_utc().year
    count = next_sequence(level, year)
    reference = format_reference_number(year, level, count)
    logger.info("[REF-ALLOC] year=%s level=%s count=%s ref=%s", year, level, count, reference)
    return reference
