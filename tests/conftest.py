"""
Test configuration and fixtures for Query Assistant.

An in-memory SQLite database stands in for SQL Server and httpx.MockTransport
stands in for the LLM provider, so no test needs network access.
"""
import json
from datetime import datetime

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from query_assistant.config import Settings

TEST_DATABASE_URL = "sqlite+aiosqlite://"


def make_settings(**overrides) -> Settings:
    """Build settings without reading the environment's .env file."""
    values = {
        "database_url": TEST_DATABASE_URL,
        "target_catalog": "FINSAT671",
        "target_schema": "FINSAT671",
        "target_table": "SPI",
        "llm_provider": "gemini",
        "llm_model": None,
        "gemini_api_key": "dummy_key_for_tests",
        "gemini_base_url": "https://generativelanguage.test/v1beta",
        "chart_color_seed": None,
        "chart_title": "Query Result",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def gemini_transport(response_text: str, captured: list = None) -> httpx.MockTransport:
    """Mock the generateContent endpoint, returning response_text as the model answer."""
    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        body = {"candidates": [{"content": {"parts": [{"text": response_text}]}}]}
        return httpx.Response(200, json=body)
    return httpx.MockTransport(handler)


def failing_transport(status_code: int = None) -> httpx.MockTransport:
    """Mock an unreachable provider, or one answering with an HTTP error."""
    def handler(request: httpx.Request) -> httpx.Response:
        if status_code is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status_code, content=json.dumps({"error": "boom"}))
    return httpx.MockTransport(handler)


@pytest.fixture
def settings():
    return make_settings()


@pytest_asyncio.fixture
async def db_engine():
    """In-memory database with a small SPI order table."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.execute(text(
            "CREATE TABLE SPI (SIRA INTEGER NOT NULL, STARIHI TEXT, NETTUTAR NUMERIC, CARI_UNVAN TEXT)"
        ))
        await conn.execute(
            text("INSERT INTO SPI (SIRA, STARIHI, NETTUTAR, CARI_UNVAN) VALUES (:sira, :tarih, :tutar, :unvan)"),
            [
                {
                    "sira": i,
                    "tarih": datetime(2024, 1, 1 + i % 28).isoformat(),
                    "tutar": i * 10,
                    "unvan": f"Customer {i % 5}",
                }
                for i in range(1, 151)
            ],
        )
    yield engine
    await engine.dispose()
