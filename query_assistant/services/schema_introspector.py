"""
Schema introspection for Query Assistant.

Reads column metadata for the target table from the SQL Server catalog views
and renders it as a CREATE TABLE statement used as prompt context. Any failure
degrades to a built-in schema text instead of stopping the request.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from query_assistant.config import Settings

logger = logging.getLogger(__name__)

CHARACTER_TYPES = {"char", "varchar", "nchar", "nvarchar"}
WIDE_CHARACTER_TYPES = {"nchar", "nvarchar"}

COLUMNS_QUERY = """
SELECT
    c.name AS column_name,
    ty.name AS data_type,
    c.max_length AS max_length,
    c.is_nullable AS is_nullable,
    ISNULL(CAST(ep.value AS NVARCHAR(4000)), '') AS description
FROM
    {catalog}.sys.tables t
    INNER JOIN {catalog}.sys.columns c ON t.object_id = c.object_id
    INNER JOIN {catalog}.sys.types ty ON c.user_type_id = ty.user_type_id
    LEFT JOIN {catalog}.sys.extended_properties ep ON
        ep.major_id = t.object_id AND
        ep.minor_id = c.column_id AND
        ep.name = 'MS_Description'
WHERE
    t.name = :table_name AND
    SCHEMA_NAME(t.schema_id) = :schema_name
ORDER BY
    c.column_id
"""

# Used when the catalog query succeeds but returns no columns
DEFAULT_COLUMN_LINES = [
    "    SIRA INT NOT NULL -- Order number",
    "    STARIHI DATETIME NULL -- Order date",
    "    STUMU DECIMAL(18, 2) NULL -- Order amount",
    "    NETTUTAR DECIMAL(18, 2) NULL -- Net amount",
    "    CARI_UNVAN NVARCHAR(100) NULL -- Customer name",
]

# Used when the catalog cannot be read at all
FALLBACK_COLUMN_LINES = DEFAULT_COLUMN_LINES + [
    "    ADRES NVARCHAR(200) NULL -- Delivery address",
    "    DURUM NVARCHAR(20) NULL -- Order status",
    "    ODEME_SEKLI NVARCHAR(50) NULL -- Payment method",
]


@dataclass(frozen=True)
class SchemaSnapshot:
    """Schema text plus whether it came from the live catalog."""
    text: str
    is_fallback: bool = False


def _format_length(data_type: str, max_length: Any) -> str:
    if data_type.lower() not in CHARACTER_TYPES or max_length is None:
        return ""
    max_length = int(max_length)
    if max_length == -1:
        return "(MAX)"
    if max_length <= 0:
        return ""
    if data_type.lower() in WIDE_CHARACTER_TYPES:
        max_length //= 2
    return f"({max_length})"


def format_column(column: Dict[str, Any]) -> str:
    """Render one catalog row as a column definition line."""
    data_type = str(column["data_type"])
    definition = f"    {column['column_name']} {data_type}"
    definition += _format_length(data_type, column.get("max_length"))
    definition += " NULL" if column.get("is_nullable") else " NOT NULL"
    if column.get("description"):
        definition += f" -- {column['description']}"
    return definition


def render_create_table(table_name: str, column_lines: List[str]) -> str:
    return f"CREATE TABLE {table_name} (\n" + ",\n".join(column_lines) + "\n);\n"


async def read_columns(conn, catalog: str, schema: str, table: str) -> List[Dict[str, Any]]:
    """Read column metadata for one table from the catalog views."""
    query = text(COLUMNS_QUERY.format(catalog=catalog))
    result = await conn.execute(query, {"table_name": table, "schema_name": schema})
    return [dict(row) for row in result.mappings()]


class SchemaIntrospector:
    """Builds the schema description sent to the translator."""

    def __init__(self, settings: Settings, engine: AsyncEngine):
        self.settings = settings
        self.engine = engine

    @property
    def table_name(self) -> str:
        return f"{self.settings.target_schema}.{self.settings.target_table}"

    def fallback_schema(self) -> SchemaSnapshot:
        return SchemaSnapshot(
            text=render_create_table(self.settings.qualified_table, FALLBACK_COLUMN_LINES),
            is_fallback=True,
        )

    async def _fetch_columns(self) -> List[Dict[str, Any]]:
        async with self.engine.connect() as conn:
            return await asyncio.wait_for(
                read_columns(conn, self.settings.target_catalog,
                             self.settings.target_schema, self.settings.target_table),
                timeout=self.settings.query_timeout_seconds,
            )

    async def fetch_schema(self) -> SchemaSnapshot:
        """
        Describe the target table. Never raises.

        Returns:
            SchemaSnapshot with is_fallback set when the catalog was unreadable
        """
        try:
            columns = await self._fetch_columns()
        except Exception as e:
            logger.warning("Schema fetch failed, using fallback schema: %r", e)
            return self.fallback_schema()

        if columns:
            column_lines = [format_column(col) for col in columns]
        else:
            logger.warning("No columns found for %s, using default column list", self.table_name)
            column_lines = DEFAULT_COLUMN_LINES

        logger.info("Database schema built for %s (%d columns)", self.table_name, len(column_lines))
        return SchemaSnapshot(text=render_create_table(self.table_name, column_lines))
