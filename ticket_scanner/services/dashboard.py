from contextlib import contextmanager
from datetime import datetime
import logging
import threading
from typing import BinaryIO

from sqlalchemy.orm import Session

from ..config import Settings
from ..errors import (
    OperationInProgressError,
    TicketNotFoundError,
    TicketValidationError,
)
from ..models import TicketStatusEnum
from ..models.base import utcnow
from ..schemas import ImportResult, TicketRead
from . import spreadsheet, store
from .cache import TicketCache
from .interaction import Interaction
from .normalize import manual_ticket, row_to_ticket

logger = logging.getLogger(__name__)

EXPORT_COLUMNS = ("ticketId", "name", "email", "status")
NO_VALID_ROWS = "No valid rows found. Ensure your spreadsheet has a 'ticketId' column."
PROMPT_TICKET_ID = "Ticket ID:"
PROMPT_NAME = "Name (optional):"
PROMPT_EMAIL = "Email (optional):"
CONFIRM_DELETE_ALL = "This will delete ALL tickets. Continue?"


class Dashboard:
    def __init__(self, settings: Settings, cache: TicketCache | None = None) -> None:
        self.settings = settings
        self.cache = cache or TicketCache()
        self._busy = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    @contextmanager
    def _exclusive(self, action: str):
        if not self._busy.acquire(blocking=False):
            raise OperationInProgressError(
                f"Cannot {action}: another operation is still running."
            )
        try:
            yield
        finally:
            self._busy.release()

    def load(self, db: Session) -> list[TicketRead]:
        return self.cache.refresh(db)

    def ensure_loaded(self, db: Session) -> None:
        if not self.cache.loaded:
            self.cache.refresh(db)

    def search(self, q: str | None) -> list[TicketRead]:
        return self.cache.search(q)

    def import_file(
        self, db: Session, stream: BinaryIO, now: datetime | None = None
    ) -> ImportResult:
        with self._exclusive("import"):
            now = now or utcnow()
            rows = spreadsheet.read_rows(stream)
            by_id: dict[str, dict] = {}
            for raw in rows:
                ticket = row_to_ticket(raw, now)
                if ticket is not None:
                    by_id[ticket["ticket_id"]] = ticket
            if not by_id:
                raise TicketValidationError(NO_VALID_ROWS)

            store.upsert_many(db, list(by_id.values()))
            self.cache.refresh(db)
            logger.info(
                "Imported %s tickets from %s spreadsheet rows", len(by_id), len(rows)
            )
            return ImportResult(imported=len(by_id))

    def export(self) -> bytes:
        rows = [
            {
                "ticketId": ticket.ticket_id,
                "name": ticket.name or "",
                "email": ticket.email or "",
                "status": ticket.status.value,
            }
            for ticket in self.cache.tickets
        ]
        return spreadsheet.write_rows(
            rows, EXPORT_COLUMNS, self.settings.export_sheet_name
        )

    def add_one(self, db: Session, interaction: Interaction) -> TicketRead | None:
        raw_id = interaction.prompt(PROMPT_TICKET_ID)
        if not raw_id or not raw_id.strip():
            return None
        ticket = manual_ticket(
            raw_id,
            interaction.prompt(PROMPT_NAME) or "",
            interaction.prompt(PROMPT_EMAIL) or "",
        )
        with self._exclusive("add a ticket"):
            store.upsert_many(db, [ticket])
            self.cache.refresh(db)
        return next(
            (row for row in self.cache.tickets if row.ticket_id == ticket["ticket_id"]),
            None,
        )

    def toggle_status(
        self, db: Session, ticket_id: str, now: datetime | None = None
    ) -> TicketRead:
        ticket = store.get_ticket(db, ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket not found: {ticket_id}")
        if ticket.is_used:
            values = {"status": TicketStatusEnum.UNUSED, "used_at": None}
        else:
            values = {"status": TicketStatusEnum.USED, "used_at": now or utcnow()}
        if store.update_ticket(db, ticket_id, values) == 0:
            raise TicketNotFoundError(f"Ticket not found: {ticket_id}")

        updated = TicketRead.model_validate(ticket).model_copy(update=values)
        self.cache.patch(updated)
        return updated

    def delete_one(self, db: Session, ticket_id: str, interaction: Interaction) -> bool:
        if not interaction.confirm(f"Delete ticket {ticket_id}?"):
            return False
        store.delete_ticket(db, ticket_id)
        self.cache.remove(ticket_id)
        return True

    def delete_all(self, db: Session, interaction: Interaction) -> bool:
        if not interaction.confirm(CONFIRM_DELETE_ALL):
            return False
        with self._exclusive("delete all tickets"):
            store.delete_all(db)
            self.cache.clear()
        return True
