"""In-memory copy of the ticket table shown on the dashboard.

Invalidation rule: writes that can collide with other writers (import, add,
first load) replace the whole list from the store. Single-row toggles,
redeems and deletes patch the list in place.
"""
import threading

from sqlalchemy.orm import Session

from ..schemas import TicketRead
from . import store


class TicketCache:
    def __init__(self) -> None:
        self._tickets: list[TicketRead] = []
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def tickets(self) -> list[TicketRead]:
        with self._lock:
            return list(self._tickets)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tickets)

    def refresh(self, db: Session) -> list[TicketRead]:
        fresh = [TicketRead.model_validate(row) for row in store.list_all(db)]
        with self._lock:
            self._tickets = fresh
            self._loaded = True
        return list(fresh)

    def patch(self, ticket: TicketRead) -> None:
        with self._lock:
            self._tickets = [
                ticket if row.ticket_id == ticket.ticket_id else row
                for row in self._tickets
            ]

    def remove(self, ticket_id: str) -> None:
        with self._lock:
            self._tickets = [row for row in self._tickets if row.ticket_id != ticket_id]

    def clear(self) -> None:
        with self._lock:
            self._tickets = []
            self._loaded = True

    def search(self, q: str | None) -> list[TicketRead]:
        needle = (q or "").strip().lower()
        tickets = self.tickets
        if not needle:
            return tickets
        return [
            row
            for row in tickets
            if needle in row.ticket_id.lower()
            or needle in (row.name or "").lower()
            or needle in (row.email or "").lower()
            or needle in row.status.value
        ]
