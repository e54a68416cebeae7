"""Ticket table access.

Every function takes the request session first, commits its own write and
translates SQLAlchemy failures into :class:`StoreError` so callers can show
the backend message verbatim.
"""
from contextlib import contextmanager
from datetime import datetime
import logging

from sqlalchemy import delete, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import StoreError
from ..models import Ticket, TicketStatusEnum
from ..models.base import utcnow

logger = logging.getLogger(__name__)

UPSERT_CHUNK_SIZE = 500
UPSERT_COLUMNS = ("name", "email", "status", "used_at", "updated_at")


@contextmanager
def _store_errors(db: Session):
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        orig = getattr(exc, "orig", None)
        raise StoreError(str(orig) if orig is not None else str(exc)) from exc


def list_all(db: Session) -> list[Ticket]:
    with _store_errors(db):
        return list(db.scalars(select(Ticket).order_by(Ticket.ticket_id.asc())))


def get_ticket(db: Session, ticket_id: str) -> Ticket | None:
    with _store_errors(db):
        return db.execute(
            select(Ticket).where(Ticket.ticket_id == ticket_id)
        ).scalar_one_or_none()


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "sqlite":
        return sqlite.insert
    if dialect == "postgresql":
        return postgresql.insert
    raise StoreError(f"Upsert is not supported on the {dialect} backend.")


def upsert_many(db: Session, rows: list[dict]) -> int:
    """Insert rows or fully overwrite existing rows with the same ticket_id."""
    if not rows:
        return 0
    insert = _insert_for(db)
    now = utcnow()
    with _store_errors(db):
        for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
            chunk = [
                {**row, "created_at": now, "updated_at": now}
                for row in rows[start : start + UPSERT_CHUNK_SIZE]
            ]
            stmt = insert(Ticket).values(chunk)
            stmt = stmt.on_conflict_do_update(
                index_elements=[Ticket.ticket_id],
                set_={column: stmt.excluded[column] for column in UPSERT_COLUMNS},
            )
            db.execute(stmt)
        db.commit()
    logger.info("Upserted %s tickets", len(rows))
    return len(rows)


def update_ticket(db: Session, ticket_id: str, values: dict) -> int:
    with _store_errors(db):
        result = db.execute(
            update(Ticket)
            .where(Ticket.ticket_id == ticket_id)
            .values(**values, updated_at=utcnow())
        )
        db.commit()
    return result.rowcount


def mark_used_if_unused(db: Session, ticket_id: str, now: datetime) -> bool:
    """Flip an unused ticket to used in one statement.

    Returns False when no unused row matched, either because the ticket is
    missing or because another redeemer got there first.
    """
    with _store_errors(db):
        result = db.execute(
            update(Ticket)
            .where(
                Ticket.ticket_id == ticket_id,
                Ticket.status == TicketStatusEnum.UNUSED,
            )
            .values(status=TicketStatusEnum.USED, used_at=now, updated_at=now)
        )
        db.commit()
    return result.rowcount == 1


def delete_ticket(db: Session, ticket_id: str) -> int:
    with _store_errors(db):
        result = db.execute(delete(Ticket).where(Ticket.ticket_id == ticket_id))
        db.commit()
    logger.info("Deleted ticket %s (%s rows)", ticket_id, result.rowcount)
    return result.rowcount


def delete_all(db: Session) -> int:
    with _store_errors(db):
        result = db.execute(delete(Ticket))
        db.commit()
    logger.info("Deleted all tickets (%s rows)", result.rowcount)
    return result.rowcount
