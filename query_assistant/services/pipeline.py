"""
Pipeline service for Query Assistant.

This module wires the query-translation steps for one request:
1. Introspect the target table schema
2. Convert the natural language question to SQL
3. Check the SQL against the guardrails
4. Execute it and normalize the result set

Chart formatting is separate and runs later on an already returned result.
"""
import logging
import random
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from query_assistant.config import Settings
from query_assistant.errors import SQLValidationError
from query_assistant.guardrails import check_sql
from query_assistant.schemas.responses import ChartData, TabularResult
from query_assistant.services.chart import format_chart_data
from query_assistant.services.db_operations import QueryExecutor
from query_assistant.services.schema_introspector import SchemaIntrospector
from query_assistant.services.translator import SQLTranslator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryOutcome:
    """Result of a successful pipeline run."""
    sql: str
    results: TabularResult
    is_fallback: bool = False
    schema_is_fallback: bool = False


class QueryPipeline:
    """Runs introspection, translation, validation and execution in order."""

    def __init__(self, settings: Settings, engine: AsyncEngine,
                 introspector: Optional[SchemaIntrospector] = None,
                 translator: Optional[SQLTranslator] = None,
                 executor: Optional[QueryExecutor] = None):
        self.settings = settings
        self.introspector = introspector or SchemaIntrospector(settings, engine)
        self.translator = translator or SQLTranslator(settings)
        self.executor = executor or QueryExecutor(settings, engine)

    async def process_query(self, question: str) -> QueryOutcome:
        """
        Process a natural language query end-to-end.

        Args:
            question: Non-empty natural language question

        Returns:
            QueryOutcome with the executed SQL and its results

        Raises:
            SQLValidationError: The generated SQL failed the guardrails
            QueryExecutionError: The database could not run the statement
        """
        logger.info("Processing query: '%s'", question)

        schema = await self.introspector.fetch_schema()
        translation = await self.translator.translate(question, schema.text)

        is_valid, reason = check_sql(translation.sql)
        if not is_valid:
            logger.warning("SQL validation failed (%s): %s", reason, translation.sql)
            raise SQLValidationError(translation.sql, reason)

        results = await self.executor.execute(translation.sql)
        return QueryOutcome(
            sql=translation.sql,
            results=results,
            is_fallback=translation.is_fallback,
            schema_is_fallback=schema.is_fallback,
        )

    def format_chart(self, results: TabularResult) -> ChartData:
        """Build chart data; colors are reproducible when chart_color_seed is set."""
        rng = random.Random(self.settings.chart_color_seed) if self.settings.chart_color_seed is not None else None
        return format_chart_data(results, rng=rng, title=self.settings.chart_title)
