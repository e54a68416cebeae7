from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_scanner
from ..errors import StoreError
from ..schemas import RedeemRequest, RedeemResult, TicketRead
from ..services import store
from ..services.scanner import ScannerService

router = APIRouter(prefix="/api")


@router.get("/tickets", response_model=list[TicketRead])
def api_tickets(db: Session = Depends(get_db)) -> list[TicketRead]:
    try:
        return [TicketRead.model_validate(row) for row in store.list_all(db)]
    except StoreError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post("/redeem", response_model=RedeemResult)
def api_redeem(
    payload: RedeemRequest,
    db: Session = Depends(get_db),
    scanner: ScannerService = Depends(get_scanner),
) -> RedeemResult:
    return scanner.submit_payload(db, payload.payload)
