from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_scanner
from ..services.scanner import ScannerService
from ..templating import templates

router = APIRouter(prefix="/scanner")


def _back() -> RedirectResponse:
    return RedirectResponse(url="/scanner", status_code=303)


@router.get("", response_class=HTMLResponse)
def scanner_index(
    request: Request, scanner: ScannerService = Depends(get_scanner)
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "scanner/index.html",
        {
            "request": request,
            "scanning": scanner.scanning,
            "result": scanner.last_result,
            "scan_timeout": int(scanner.settings.scan_timeout_seconds),
        },
    )


# Blocks on the camera until a decode, stop or timeout.
@router.post("/start")
def scanner_start(
    db: Session = Depends(get_db), scanner: ScannerService = Depends(get_scanner)
) -> RedirectResponse:
    scanner.scan_once(db)
    return _back()


@router.post("/stop")
def scanner_stop(scanner: ScannerService = Depends(get_scanner)) -> RedirectResponse:
    scanner.stop()
    return _back()


@router.post("/decode")
async def scanner_decode(
    request: Request,
    db: Session = Depends(get_db),
    scanner: ScannerService = Depends(get_scanner),
) -> RedirectResponse:
    form = await request.form()
    scanner.submit_payload(db, str(form.get("payload") or ""))
    return _back()


@router.post("/manual")
async def scanner_manual(
    request: Request,
    db: Session = Depends(get_db),
    scanner: ScannerService = Depends(get_scanner),
) -> RedirectResponse:
    form = await request.form()
    ticket_id = str(form.get("ticket_id") or "").strip()
    if ticket_id:
        scanner.manual_redeem(db, ticket_id)
    return _back()


@router.post("/clear")
def scanner_clear(scanner: ScannerService = Depends(get_scanner)) -> RedirectResponse:
    scanner.clear_message()
    return _back()
