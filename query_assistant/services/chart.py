"""
Chart data formatting for Query Assistant.

Turns a TabularResult into bar-chart series: column 0 supplies the labels and
every other column becomes one numeric dataset.
"""
import random
import re
from decimal import Decimal
from numbers import Number
from typing import Any, List, Optional, Tuple

from query_assistant.schemas.responses import ChartData, ChartDataset, TabularResult

DEFAULT_TITLE = "Query Result"

# Leading decimal number, as JavaScript's parseFloat reads it
NUMERIC_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

_MISSING = object()


def _cell(row: List[Any], index: int) -> Any:
    return row[index] if index < len(row) else _MISSING


def to_number(value: Any) -> float:
    """Coerce a cell to a number, substituting 0 when it has no numeric reading."""
    if isinstance(value, bool) or value is None or value is _MISSING:
        return 0
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else 0
    if isinstance(value, Number):
        return value
    match = NUMERIC_PREFIX.match(str(value))
    return float(match.group(1)) if match else 0


def to_label(value: Any) -> str:
    if value is None or value is _MISSING:
        return ""
    return str(value)


def random_color(rng: random.Random) -> Tuple[int, int, int]:
    return rng.randrange(200), rng.randrange(200), rng.randrange(200)


def format_chart_data(results: TabularResult, rng: Optional[random.Random] = None,
                      title: str = DEFAULT_TITLE) -> ChartData:
    """
    Build bar-chart data from a query result.

    Args:
        results: Normalized query result
        rng: Source of dataset colors; pass a seeded Random for reproducible output
        title: Chart title

    Returns:
        ChartData with one label per row and one dataset per non-first column
    """
    if rng is None:
        rng = random.Random()
    labels = [to_label(_cell(row, 0)) for row in results.rows]

    datasets = []
    for index in range(1, len(results.columns)):
        r, g, b = random_color(rng)
        datasets.append(ChartDataset(
            label=results.columns[index] or f"Series {index}",
            values=[to_number(_cell(row, index)) for row in results.rows],
            background_color=f"rgba({r}, {g}, {b}, 0.5)",
            border_color=f"rgb({r}, {g}, {b})",
            border_width=1,
        ))

    return ChartData(labels=labels, datasets=datasets, title=title)
