"""Top-level API router composition."""

from fastapi import APIRouter

from sql_dump_loader.api.routes import health_router, jobs_router, uploads_router

api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(uploads_router)
api_router.include_router(jobs_router)

__all__ = ["api_router"]
