"""
Integration tests for the query pipeline.

Runs introspection, translation, validation and execution together against
the in-memory order table, with the LLM replaced by a mock transport.
"""
from unittest.mock import AsyncMock

import pytest

from conftest import failing_transport, gemini_transport, make_settings
from query_assistant.errors import QueryExecutionError, SQLValidationError
from query_assistant.guardrails import validate_sql
from query_assistant.schemas.responses import TabularResult
from query_assistant.services.db_operations import QueryExecutor, create_db_engine
from query_assistant.services.pipeline import QueryPipeline
from query_assistant.services.translator import SQLTranslator


def _pipeline(settings, engine, llm_answer=None, transport=None, executor=None):
    transport = transport or gemini_transport(llm_answer)
    return QueryPipeline(
        settings,
        engine,
        translator=SQLTranslator(settings, transport=transport),
        executor=executor,
    )


@pytest.mark.asyncio
async def test_recent_orders_end_to_end(settings, db_engine):
    pipeline = _pipeline(
        settings, db_engine,
        llm_answer="```sql\nSELECT * FROM SPI ORDER BY SIRA DESC LIMIT 100\n```",
    )

    outcome = await pipeline.process_query("Son 100 siparişi göster")

    assert outcome.sql == "SELECT * FROM SPI ORDER BY SIRA DESC LIMIT 100"
    assert not outcome.is_fallback
    # SQLite has no SQL Server catalog, so the schema came from the fallback text
    assert outcome.schema_is_fallback
    assert outcome.results.columns == ["SIRA", "STARIHI", "NETTUTAR", "CARI_UNVAN"]
    assert 0 < len(outcome.results.rows) <= 100
    assert outcome.results.rows[0][0] == 150


@pytest.mark.asyncio
async def test_schema_text_reaches_the_prompt(settings, db_engine):
    captured = []
    pipeline = _pipeline(settings, db_engine, transport=gemini_transport("SELECT 1 AS one", captured))

    await pipeline.process_query("anything")

    prompt = captured[0].content.decode("utf-8")
    assert "CREATE TABLE FINSAT671.FINSAT671.SPI" in prompt


@pytest.mark.asyncio
async def test_translation_failure_uses_canned_recency_query(settings, db_engine):
    executor = QueryExecutor(settings, db_engine)
    executor.execute = AsyncMock(return_value=TabularResult(columns=["SIRA"], rows=[[1]]))
    pipeline = _pipeline(settings, db_engine, transport=failing_transport(), executor=executor)

    outcome = await pipeline.process_query("Son 100 siparişi göster")

    assert outcome.is_fallback
    assert outcome.sql == "SELECT TOP 100 * FROM FINSAT671.FINSAT671.SPI ORDER BY STARIHI DESC"
    assert validate_sql(outcome.sql)
    executor.execute.assert_awaited_once_with(outcome.sql)


@pytest.mark.asyncio
async def test_rejected_sql_is_not_executed(settings, db_engine):
    executor = QueryExecutor(settings, db_engine)
    executor.execute = AsyncMock()
    pipeline = _pipeline(settings, db_engine, llm_answer="DELETE FROM SPI", executor=executor)

    with pytest.raises(SQLValidationError) as exc_info:
        await pipeline.process_query("remove everything")

    assert exc_info.value.sql == "DELETE FROM SPI"
    executor.execute.assert_not_called()


@pytest.mark.asyncio
async def test_execution_error_carries_sql(settings, db_engine):
    pipeline = _pipeline(settings, db_engine, llm_answer="SELECT * FROM NOPE")

    with pytest.raises(QueryExecutionError) as exc_info:
        await pipeline.process_query("anything")

    assert exc_info.value.to_dict()["sqlQuery"] == "SELECT * FROM NOPE"


def test_format_chart_with_seed_is_deterministic():
    settings = make_settings(chart_color_seed=42, chart_title="Orders")
    pipeline = QueryPipeline(settings, create_db_engine(settings))
    results = TabularResult(columns=["name", "total"], rows=[["a", 1], ["b", "2"]])

    first = pipeline.format_chart(results)
    second = pipeline.format_chart(results)

    assert first == second
    assert first.title == "Orders"
    assert first.datasets[0].values == [1, 2]
