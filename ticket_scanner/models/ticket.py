from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class TicketStatusEnum(str, Enum):
    UNUSED = "unused"
    USED = "used"


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (Index("ix_tickets_status", "status"),)

    ticket_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[TicketStatusEnum] = mapped_column(
        SAEnum(
            TicketStatusEnum,
            native_enum=False,
            create_constraint=False,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=TicketStatusEnum.UNUSED,
    )
    # Set exactly when status is USED; every writer clears it on revert.
    used_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow
    )

    @property
    def is_used(self) -> bool:
        return _status_value(self.status) == TicketStatusEnum.USED.value


def _status_value(value) -> str:
    if value is None:
        return ""
    return value.value if hasattr(value, "value") else str(value)
