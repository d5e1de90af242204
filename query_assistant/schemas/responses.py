"""
API response schemas for Query Assistant.

This module defines the Pydantic models shared by the pipeline and the API.
"""
from decimal import Decimal
from typing import Any, List

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class TabularResult(BaseModel):
    """Query result normalized to ordered columns and positional rows."""
    model_config = ConfigDict(frozen=True)

    columns: List[str] = Field(default_factory=list, description="Column names in result order")
    rows: List[List[Any]] = Field(
        default_factory=list,
        description="One list per record, values aligned with columns"
    )

    @field_serializer("rows", when_used="json")
    def serialize_rows(self, rows: List[List[Any]]) -> List[List[Any]]:
        # SQL Server DECIMAL/MONEY columns arrive as Decimal; send them as JSON numbers
        return [
            [float(value) if isinstance(value, Decimal) else value for value in row]
            for row in rows
        ]


class ChartDataset(BaseModel):
    """One bar series. Serialized with Chart.js field names."""
    model_config = ConfigDict(populate_by_name=True)

    label: str
    values: List[float] = Field(..., alias="data")
    background_color: str = Field(..., alias="backgroundColor")
    border_color: str = Field(..., alias="borderColor")
    border_width: int = Field(1, alias="borderWidth")


class ChartData(BaseModel):
    """Labeled multi-series data for a bar chart."""
    labels: List[str]
    datasets: List[ChartDataset]
    title: str


class QueryResponse(BaseModel):
    """Response model for the /api/query endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    sql_query: str = Field(..., alias="sqlQuery", description="SQL statement that was executed")
    results: TabularResult
    is_fallback: bool = Field(
        False,
        alias="isFallback",
        description="Indicates whether a canned query was used because SQL generation failed"
    )


class ChartResponse(BaseModel):
    """Response model for the /api/generate-chart endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    chart_data: ChartData = Field(..., alias="chartData")
