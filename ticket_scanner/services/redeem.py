"""Ticket redemption.

Outcomes are checked in a fixed order: lookup failure, unknown ticket,
already used, then the conditional update. Redeeming a used ticket again is
reported, never re-stamped.
"""
from datetime import datetime
import logging
from urllib.parse import parse_qs, urlsplit

from sqlalchemy.orm import Session

from ..errors import StoreError
from ..models import TicketStatusEnum
from ..models.base import utcnow
from ..schemas import RedeemKind, RedeemResult, TicketRead
from . import store

logger = logging.getLogger(__name__)

QUERY_KEYS = ("ticketId", "ticket_id")
UNREADABLE_PAYLOAD = "Could not read ticketId from QR."


def extract_ticket_id(payload: str | None) -> str:
    text = str(payload or "").strip()
    if not text:
        return ""

    if text.startswith(("http://", "https://")):
        try:
            parts = urlsplit(text)
        except ValueError:
            return text
        query = parse_qs(parts.query)
        for key in QUERY_KEYS:
            for value in query.get(key, []):
                if value.strip():
                    return value.strip()
        segments = [segment for segment in parts.path.split("/") if segment]
        if segments:
            return segments[-1].strip()

    return text


def _used(ticket_id: str, ticket) -> RedeemResult:
    return RedeemResult(
        kind=RedeemKind.USED,
        message=f"Already used: {ticket_id}",
        ticket=TicketRead.model_validate(ticket),
    )


def _not_found(ticket_id: str) -> RedeemResult:
    return RedeemResult(kind=RedeemKind.NOTFOUND, message=f"Ticket not found: {ticket_id}")


def redeem(db: Session, ticket_id: str, now: datetime | None = None) -> RedeemResult:
    ticket_id = (ticket_id or "").strip()
    if not ticket_id:
        return RedeemResult(kind=RedeemKind.ERROR, message=UNREADABLE_PAYLOAD)

    try:
        ticket = store.get_ticket(db, ticket_id)
    except StoreError as exc:
        return RedeemResult(kind=RedeemKind.ERROR, message=exc.message)
    if ticket is None:
        return _not_found(ticket_id)
    if ticket.is_used:
        return _used(ticket_id, ticket)

    snapshot = TicketRead.model_validate(ticket)
    now = now or utcnow()
    try:
        redeemed = store.mark_used_if_unused(db, ticket_id, now)
        if not redeemed:
            # Lost the race to another redeemer, or the row was deleted.
            current = store.get_ticket(db, ticket_id)
            if current is None:
                return _not_found(ticket_id)
            return _used(ticket_id, current)
    except StoreError as exc:
        return RedeemResult(kind=RedeemKind.ERROR, message=exc.message)

    logger.info("Redeemed ticket %s", ticket_id)
    return RedeemResult(
        kind=RedeemKind.OK,
        message=f"Redeemed {ticket_id}",
        ticket=snapshot.model_copy(
            update={"status": TicketStatusEnum.USED, "used_at": now}
        ),
    )


def redeem_payload(db: Session, payload: str | None, now: datetime | None = None) -> RedeemResult:
    return redeem(db, extract_ticket_id(payload), now=now)
