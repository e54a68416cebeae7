from .base import Base
from .ticket import Ticket, TicketStatusEnum

__all__ = [
    "Base",
    "Ticket",
    "TicketStatusEnum",
]
