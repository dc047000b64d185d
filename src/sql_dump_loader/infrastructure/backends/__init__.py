"""Execution backend implementations."""

from sql_dump_loader.infrastructure.backends.connection_settings import DatabaseConnectionSettings
from sql_dump_loader.infrastructure.backends.mysql_query_backend import AiomysqlQueryBackend
from sql_dump_loader.infrastructure.backends.process_backend import SubprocessExecutionBackend
from sql_dump_loader.infrastructure.backends.query_backend import (
    AsyncpgQueryBackend,
    StatementQueryBackend,
    build_self_signed_ssl_context,
)

__all__ = [
    "AiomysqlQueryBackend",
    "AsyncpgQueryBackend",
    "DatabaseConnectionSettings",
    "StatementQueryBackend",
    "SubprocessExecutionBackend",
    "build_self_signed_ssl_context",
]
