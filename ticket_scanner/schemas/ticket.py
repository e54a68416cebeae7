from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from ..models import TicketStatusEnum


class TicketRead(BaseModel):
    ticket_id: str
    name: str
    email: str
    status: TicketStatusEnum
    used_at: datetime | None = None

    model_config = {"from_attributes": True}


class ImportResult(BaseModel):
    imported: int

    @property
    def message(self) -> str:
        return f"Imported/updated {self.imported} tickets."


class RedeemKind(str, Enum):
    OK = "ok"
    USED = "used"
    NOTFOUND = "notfound"
    ERROR = "error"
    NOSCAN = "noscan"


class RedeemResult(BaseModel):
    kind: RedeemKind
    message: str
    ticket: TicketRead | None = None


class RedeemRequest(BaseModel):
    payload: str
