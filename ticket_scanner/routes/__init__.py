from fastapi import APIRouter

from .api import router as api_tickets_router
from .dashboard import router as dashboard_router
from .scanner import router as scanner_router

api_router = APIRouter()
api_router.include_router(dashboard_router, tags=["dashboard"])
api_router.include_router(scanner_router, tags=["scanner"])
api_router.include_router(api_tickets_router, tags=["api"])
