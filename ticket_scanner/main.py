from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.responses import RedirectResponse
from fastapi.staticfiles import StaticFiles

from .config import settings
from .routes import api_router
from .services.dashboard import Dashboard
from .services.scanner import ScannerService
from .templating import STATIC_DIR


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.getLogger("ticket_scanner").setLevel(settings.log_level.upper())
    try:
        yield
    finally:
        app.state.scanner.shutdown()


app = FastAPI(title="ticket_scanner", lifespan=lifespan)

app.state.dashboard = Dashboard(settings)
app.state.scanner = ScannerService(
    settings, on_redeemed=app.state.dashboard.cache.patch
)

app.include_router(api_router)
app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")


@app.get("/health", tags=["health"])
def health_check() -> dict:
    return {"status": "ok"}


@app.get("/", include_in_schema=False)
def index() -> RedirectResponse:
    return RedirectResponse(url="/dashboard", status_code=307)
