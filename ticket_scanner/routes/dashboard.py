from io import BytesIO
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..dependencies import get_dashboard
from ..errors import TicketError, TicketValidationError
from ..services.dashboard import (
    PROMPT_EMAIL,
    PROMPT_NAME,
    PROMPT_TICKET_ID,
    Dashboard,
)
from ..services.interaction import FormInteraction
from ..services.spreadsheet import XLSX_MEDIA_TYPE
from ..templating import templates

router = APIRouter()


def _dashboard_url(q: str | None = None, **params: str) -> str:
    query = {key: value for key, value in params.items() if value}
    if q:
        query["q"] = q
    if not query:
        return "/dashboard"
    return f"/dashboard?{urlencode(query)}"


def _form_value(form, key: str) -> str:
    value = form.get(key)
    return str(value).strip() if value is not None else ""


def _ticket_id_field(form) -> str:
    ticket_id = _form_value(form, "ticket_id")
    if not ticket_id:
        raise TicketValidationError("Ticket ID is required.")
    return ticket_id


def _render_dashboard(
    request: Request,
    dashboard: Dashboard,
    q: str | None = None,
    errors: list[str] | None = None,
    messages: list[str] | None = None,
    status_code: int = 200,
) -> HTMLResponse:
    return templates.TemplateResponse(
        request,
        "dashboard/list.html",
        {
            "request": request,
            "tickets": dashboard.search(q),
            "total_count": len(dashboard.cache),
            "q": q or "",
            "busy": dashboard.busy,
            "errors": errors or [],
            "messages": messages or [],
        },
        status_code=status_code,
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard_list(
    request: Request,
    q: str | None = None,
    imported: int | None = None,
    added: str | None = None,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    try:
        dashboard.ensure_loaded(db)
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, q, errors=[f"Load failed: {exc.message}"],
            status_code=exc.status_code,
        )

    messages = []
    if imported is not None:
        messages.append(f"Imported/updated {imported} tickets.")
    if added:
        messages.append(f"Added ticket {added}.")
    return _render_dashboard(request, dashboard, q, messages=messages)


@router.post("/dashboard/refresh", response_class=HTMLResponse)
def dashboard_refresh(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    try:
        dashboard.load(db)
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, errors=[f"Load failed: {exc.message}"],
            status_code=exc.status_code,
        )
    return RedirectResponse(url="/dashboard", status_code=303)


@router.post("/dashboard/import", response_class=HTMLResponse)
async def dashboard_import(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    form = await request.form()
    upload = form.get("file")
    try:
        if upload is None or isinstance(upload, str) or not upload.filename:
            raise TicketValidationError("Choose a spreadsheet to import.")
        result = dashboard.import_file(db, BytesIO(await upload.read()))
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, errors=[f"Import failed: {exc.message}"],
            status_code=exc.status_code,
        )
    finally:
        if upload is not None and not isinstance(upload, str):
            await upload.close()
    return RedirectResponse(
        url=_dashboard_url(imported=str(result.imported)), status_code=303
    )


@router.get("/dashboard/export")
def dashboard_export(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> Response:
    try:
        dashboard.ensure_loaded(db)
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, errors=[f"Export failed: {exc.message}"],
            status_code=exc.status_code,
        )
    filename = dashboard.settings.export_filename
    return Response(
        content=dashboard.export(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/dashboard/tickets", response_class=HTMLResponse)
async def dashboard_add(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    form = await request.form()
    interaction = FormInteraction(
        form,
        fields={
            PROMPT_TICKET_ID: "ticket_id",
            PROMPT_NAME: "name",
            PROMPT_EMAIL: "email",
        },
    )
    try:
        ticket = dashboard.add_one(db, interaction)
        if ticket is None:
            raise TicketValidationError("Ticket ID is required.")
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, errors=[f"Add failed: {exc.message}"],
            status_code=exc.status_code,
        )
    return RedirectResponse(url=_dashboard_url(added=ticket.ticket_id), status_code=303)


@router.post("/dashboard/tickets/toggle", response_class=HTMLResponse)
async def dashboard_toggle(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    form = await request.form()
    q = _form_value(form, "q")
    try:
        dashboard.toggle_status(db, _ticket_id_field(form))
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, q, errors=[f"Update failed: {exc.message}"],
            status_code=exc.status_code,
        )
    return RedirectResponse(url=_dashboard_url(q), status_code=303)


@router.post("/dashboard/tickets/delete", response_class=HTMLResponse)
async def dashboard_delete(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    form = await request.form()
    q = _form_value(form, "q")
    try:
        dashboard.delete_one(db, _ticket_id_field(form), FormInteraction(form))
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, q, errors=[f"Delete failed: {exc.message}"],
            status_code=exc.status_code,
        )
    return RedirectResponse(url=_dashboard_url(q), status_code=303)


@router.post("/dashboard/delete-all", response_class=HTMLResponse)
async def dashboard_delete_all(
    request: Request,
    db: Session = Depends(get_db),
    dashboard: Dashboard = Depends(get_dashboard),
) -> HTMLResponse:
    form = await request.form()
    try:
        dashboard.delete_all(db, FormInteraction(form))
    except TicketError as exc:
        return _render_dashboard(
            request, dashboard, errors=[f"Delete all failed: {exc.message}"],
            status_code=exc.status_code,
        )
    return RedirectResponse(url="/dashboard", status_code=303)
