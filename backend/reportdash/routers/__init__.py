"""API routers."""

from reportdash.routers.health import router as health_router
from reportdash.routers.map import router as map_router
from reportdash.routers.reports import router as reports_router

__all__ = ["health_router", "map_router", "reports_router"]
