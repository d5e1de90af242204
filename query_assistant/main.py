"""
Main application module for Query Assistant.

This module defines the FastAPI application, routes, and error handlers.
The app is built by a factory; serve it with

    uvicorn --factory query_assistant.main:create_app
"""
import logging
from contextlib import asynccontextmanager
from typing import Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from query_assistant.config import Settings
from query_assistant.errors import InvalidRequestError, QueryAssistantError
from query_assistant.schemas.responses import ChartResponse, QueryResponse, TabularResult
from query_assistant.services.db_operations import create_db_engine
from query_assistant.services.pipeline import QueryPipeline

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"
INVALID_CHART_DATA_MESSAGE = "Invalid data format"
CHART_ERROR_MESSAGE = "An error occurred while preparing chart data"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_pipeline(request: Request) -> QueryPipeline:
    return request.app.state.pipeline


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(QueryAssistantError)
    async def query_assistant_error_handler(request: Request, exc: QueryAssistantError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})


def create_app(settings: Optional[Settings] = None, pipeline: Optional[QueryPipeline] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Configuration; read from the environment when omitted
        pipeline: Pre-built pipeline; when omitted one is created at startup
            together with the database engine

    Returns:
        Configured FastAPI app
    """
    settings = settings or Settings()
    configure_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = None
        if pipeline is None:
            engine = create_db_engine(settings)
            app.state.pipeline = QueryPipeline(settings, engine)
        else:
            app.state.pipeline = pipeline
        logger.info("Query Assistant started (provider: %s, table: %s)",
                    settings.llm_provider, settings.qualified_table)
        try:
            yield
        finally:
            if engine is not None:
                await engine.dispose()

    app = FastAPI(
        title="Query Assistant",
        description="Ask questions about your orders in plain language and get tables and charts back",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if pipeline is not None:
        app.state.pipeline = pipeline

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_error_handlers(app)

    @app.get("/ping")
    @app.head("/ping")
    async def ping():
        """Health check endpoint."""
        return {"status": "ok"}

    @app.post("/api/query", response_model=QueryResponse)
    async def query(request: Request, body: Dict = Body(...)):
        """
        Translate a natural language question to SQL, run it and return the rows.

        Args:
            body: Request body with a non-empty 'query' string

        Returns:
            QueryResponse with the executed SQL and tabular results
        """
        question = body.get("query")
        if not isinstance(question, str) or not question.strip():
            raise InvalidRequestError("Invalid query")

        try:
            outcome = await get_pipeline(request).process_query(question)
        except QueryAssistantError:
            raise
        except Exception as e:
            logger.exception("Error processing query: %s", e)
            return JSONResponse(status_code=500, content={"error": INTERNAL_ERROR_MESSAGE})

        return QueryResponse(
            sql_query=outcome.sql,
            results=outcome.results,
            is_fallback=outcome.is_fallback,
        )

    @app.post("/api/generate-chart", response_model=ChartResponse)
    async def generate_chart(request: Request, body: Dict = Body(...)):
        """
        Format a previously returned query result as bar-chart data.

        Args:
            body: Request body with 'results' holding columns and non-empty rows

        Returns:
            ChartResponse with labels and one dataset per value column
        """
        results = body.get("results")
        if not isinstance(results, dict):
            raise InvalidRequestError(INVALID_CHART_DATA_MESSAGE)
        columns, rows = results.get("columns"), results.get("rows")
        if not isinstance(columns, list) or not isinstance(rows, list) or not rows:
            raise InvalidRequestError(INVALID_CHART_DATA_MESSAGE)
        try:
            tabular = TabularResult(columns=[str(col) if col else "" for col in columns], rows=rows)
        except ValidationError:
            raise InvalidRequestError(INVALID_CHART_DATA_MESSAGE)

        try:
            chart_data = get_pipeline(request).format_chart(tabular)
        except Exception as e:
            logger.exception("Error preparing chart data: %s", e)
            return JSONResponse(status_code=500, content={"error": CHART_ERROR_MESSAGE})

        return ChartResponse(chart_data=chart_data)

    return app