from fastapi import Request

from .services.dashboard import Dashboard
from .services.scanner import ScannerService


def get_dashboard(request: Request) -> Dashboard:
    return request.app.state.dashboard


def get_scanner(request: Request) -> ScannerService:
    return request.app.state.scanner
