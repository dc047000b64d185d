"""Statement streaming utilities."""

from sql_dump_loader.infrastructure.statements.sql_statement_stream import (
    SqlStatementSplitter,
    iter_file_chunks,
    split_sql_text,
    stream_sql_statements,
)

__all__ = [
    "SqlStatementSplitter",
    "iter_file_chunks",
    "split_sql_text",
    "stream_sql_statements",
]
