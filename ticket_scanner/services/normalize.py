from datetime import datetime
from typing import Any, Mapping

from ..models import TicketStatusEnum

TICKET_ID_ALIASES = ("ticketId", "TicketId", "ticket_id", "ticket id", "TICKETID")
NAME_ALIASES = ("name", "Name")
EMAIL_ALIASES = ("email", "Email")
STATUS_ALIASES = ("status", "Status")


def normalize_id(value: Any) -> str:
    if value is None:
        return ""
    # Spreadsheets hand back numeric ids as floats.
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def normalize_status(value: Any) -> TicketStatusEnum:
    if value is None:
        return TicketStatusEnum.UNUSED
    if str(value).strip().lower() == TicketStatusEnum.USED.value:
        return TicketStatusEnum.USED
    return TicketStatusEnum.UNUSED


def normalize_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _first_present(row: Mapping[str, Any], aliases: tuple[str, ...]) -> Any:
    for key in aliases:
        value = row.get(key)
        if value is not None:
            return value
    return None


def _compact_key(key: Any) -> str:
    return str(key).lower().replace(" ", "").replace("_", "")


def resolve_ticket_id(row: Mapping[str, Any]) -> str:
    value = _first_present(row, TICKET_ID_ALIASES)
    if value is None:
        for key, candidate in row.items():
            if _compact_key(key) == "ticketid" and candidate is not None:
                value = candidate
                break
    return normalize_id(value)


def row_to_ticket(row: Mapping[str, Any], now: datetime) -> dict | None:
    """Map one spreadsheet row to ticket columns, or None if it has no id."""
    ticket_id = resolve_ticket_id(row)
    if not ticket_id:
        return None
    status = normalize_status(_first_present(row, STATUS_ALIASES))
    return {
        "ticket_id": ticket_id,
        "name": normalize_text(_first_present(row, NAME_ALIASES)),
        "email": normalize_text(_first_present(row, EMAIL_ALIASES)),
        "status": status,
        "used_at": now if status == TicketStatusEnum.USED else None,
    }


def manual_ticket(ticket_id: Any, name: Any = "", email: Any = "") -> dict | None:
    normalized = normalize_id(ticket_id)
    if not normalized:
        return None
    return {
        "ticket_id": normalized,
        "name": normalize_text(name),
        "email": normalize_text(email),
        "status": TicketStatusEnum.UNUSED,
        "used_at": None,
    }
