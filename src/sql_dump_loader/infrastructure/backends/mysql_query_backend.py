"""MySQL execution backend on aiomysql."""

from __future__ import annotations

import logging
from typing import Any

import aiomysql  # type: ignore[import-untyped]
from pymysql.constants import CLIENT  # type: ignore[import-untyped]

from sql_dump_loader.infrastructure.backends.connection_settings import DatabaseConnectionSettings
from sql_dump_loader.infrastructure.backends.query_backend import (
    ConnectFunction,
    StatementQueryBackend,
    build_self_signed_ssl_context,
)
from sql_dump_loader.infrastructure.statements.sql_statement_stream import (
    DEFAULT_CHUNK_SIZE_BYTES,
)

logger = logging.getLogger(__name__)


class AiomysqlQueryBackend(StatementQueryBackend):
    """MySQL backend.

    The connection is opened with multi-statement support and autocommit, so
    a fragment holding several commands runs whole and each one is committed
    as the `mysql` client would.
    """

    def __init__(
        self,
        connection_settings: DatabaseConnectionSettings,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
        connect: ConnectFunction | None = None,
    ) -> None:
        super().__init__(connection_settings, chunk_size)
        self._connect = connect or aiomysql.connect

    async def _open_connection(self) -> Any:
        settings = self._connection_settings
        kwargs: dict[str, Any] = {
            "host": settings.host,
            "port": settings.port,
            "user": settings.user,
            "password": settings.password or "",
            "db": settings.database,
            "client_flag": CLIENT.MULTI_STATEMENTS,
            "autocommit": True,
        }
        if settings.ssl_self_signed:
            kwargs["ssl"] = build_self_signed_ssl_context()
        try:
            return await self._connect(**kwargs)
        except (aiomysql.Error, OSError) as exc:
            raise self._connection_error(exc) from exc

    async def _run_statement(self, connection: Any, statement: str) -> None:
        async with connection.cursor() as cursor:
            await cursor.execute(statement)
            # Every result set must be read before the next statement is sent.
            while await cursor.nextset():
                pass

    async def _close(self, connection: Any) -> None:
        try:
            connection.close()
        except (aiomysql.Error, OSError):
            logger.warning("Failed to close database connection cleanly.", exc_info=True)


__all__ = ["AiomysqlQueryBackend"]
