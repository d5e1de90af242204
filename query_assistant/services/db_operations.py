"""
Database operations for Query Assistant.

This module provides database operations functionality for:
1. Building the shared async engine (the connection pool)
2. Executing validated SQL queries
3. Normalizing result sets into column-list + row-list form
"""
import asyncio
import logging
from datetime import date, datetime, time
from typing import Any, Dict, List, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from query_assistant.config import Settings
from query_assistant.errors import QueryExecutionError
from query_assistant.schemas.responses import TabularResult

logger = logging.getLogger(__name__)


def create_db_engine(settings: Settings) -> AsyncEngine:
    """Create the process-wide engine. Its pool is the only shared resource."""
    url = settings.sqlalchemy_url
    if str(url).startswith("sqlite"):
        return create_async_engine(url)
    return create_async_engine(url, pool_size=settings.db_pool_size, pool_pre_ping=True)


def _normalize_value(value: Any) -> Any:
    """Render date/time values as ISO-8601 strings and binary values as 0x hex; leave everything else alone."""
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        # rowversion / varbinary columns, written the way SQL Server displays them
        return "0x" + bytes(value).hex().upper()
    return value


def to_tabular_result(records: Sequence[Dict[str, Any]]) -> TabularResult:
    """
    Convert keyed records into a TabularResult.

    Columns come from the first record's keys, in insertion order. Every row
    is built by reading those keys, so all rows have the same width.
    """
    if not records:
        return TabularResult(columns=[], rows=[])

    columns = list(records[0].keys())
    rows = [
        [_normalize_value(record.get(col)) for col in columns]
        for record in records
    ]
    return TabularResult(columns=columns, rows=rows)


async def fetch_records(conn, sql: str) -> List[Dict[str, Any]]:
    """Run a statement on an open connection and return its rows as dicts."""
    result = await conn.exec_driver_sql(sql)
    if not result.returns_rows:
        return []
    keys = list(result.keys())
    return [dict(zip(keys, row)) for row in result.fetchall()]


class QueryExecutor:
    """Runs validated statements, one pooled connection per call."""

    def __init__(self, settings: Settings, engine: AsyncEngine):
        self.settings = settings
        self.engine = engine

    async def execute(self, sql: str) -> TabularResult:
        """
        Execute a SQL query and normalize the result set.

        Args:
            sql: Statement that already passed the guardrails

        Returns:
            TabularResult with columns and positional rows

        Raises:
            QueryExecutionError: On any database failure or timeout
        """
        try:
            async with self.engine.connect() as conn:
                records = await asyncio.wait_for(
                    fetch_records(conn, sql),
                    timeout=self.settings.query_timeout_seconds,
                )
        except asyncio.TimeoutError as e:
            logger.error("Query timed out after %ss: %s", self.settings.query_timeout_seconds, sql)
            raise QueryExecutionError(sql, "timeout") from e
        except (SQLAlchemyError, OSError) as e:
            logger.error("Query execution error: %s | SQL: %s", e, sql)
            raise QueryExecutionError(sql, str(e)) from e

        logger.info("Query returned %d rows", len(records))
        return to_tabular_result(records)
