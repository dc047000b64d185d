"""HTTP API package."""

from sql_dump_loader.api.router import api_router

__all__ = ["api_router"]
