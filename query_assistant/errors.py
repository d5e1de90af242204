"""
Exceptions raised by the query pipeline.

Each carries the HTTP status it maps to; the API layer renders them as
``{"error": ..., "sqlQuery": ...}`` bodies.
"""
from typing import Optional


class QueryAssistantError(Exception):
    """Base exception for errors surfaced to the caller."""
    status_code = 500

    def __init__(self, message: str, sql: Optional[str] = None, status_code: Optional[int] = None):
        self.message = message
        self.sql = sql
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.sql is not None:
            body["sqlQuery"] = self.sql
        return body


class InvalidRequestError(QueryAssistantError):
    """Missing or malformed request fields."""
    status_code = 400


class SQLValidationError(QueryAssistantError):
    """Generated SQL failed the safety check and was not executed."""
    status_code = 400

    def __init__(self, sql: str, reason: str = ""):
        self.reason = reason
        super().__init__("Generated SQL query failed the safety check", sql=sql)


class QueryExecutionError(QueryAssistantError):
    """The database rejected or failed to run a validated statement."""
    status_code = 500

    def __init__(self, sql: str, detail: str = ""):
        self.detail = detail
        super().__init__("An error occurred while executing the database query", sql=sql)
