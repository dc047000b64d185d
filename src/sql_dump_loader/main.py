"""FastAPI application entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from sql_dump_loader import __version__
from sql_dump_loader.api import api_router
from sql_dump_loader.api.dependencies import (
    get_import_service,
    get_settings,
    get_upload_receiver,
)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build FastAPI application."""

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        """Create directories and singleton dependencies; drain jobs on shutdown."""

        settings = get_settings()
        receiver = get_upload_receiver()
        service = get_import_service()
        await receiver.start()
        await service.start()
        logger.info(
            "%s listening on port %d (uploads: %s, work: %s, max body: %d bytes, "
            "database: %s %s:%d/%s, backend: %s).",
            settings.app_name,
            settings.port,
            settings.upload_dir,
            settings.work_dir,
            settings.max_body_size_bytes,
            settings.db_engine,
            settings.db_host,
            settings.database_port,
            settings.db_name,
            settings.execution_backend,
        )
        try:
            yield
        finally:
            await service.stop()

    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()


def configure_logging(level: str) -> None:
    """Configure root logging for the service process."""

    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)


def run() -> None:
    """Run the HTTP server."""

    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(
        "sql_dump_loader.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


__all__ = ["app", "configure_logging", "create_app", "run"]
