"""Route modules public API."""

from sql_dump_loader.api.routes.health import router as health_router
from sql_dump_loader.api.routes.jobs import router as jobs_router
from sql_dump_loader.api.routes.uploads import router as uploads_router

__all__ = ["health_router", "jobs_router", "uploads_router"]
