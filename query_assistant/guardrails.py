"""
SQL guardrails for Query Assistant.

This module provides the safety check applied to generated SQL before it is
executed. It is a coarse lexical filter, not a parser: a statement passes when
it starts with SELECT and none of the forbidden keywords appear anywhere in it.
"""
import logging
from typing import Tuple

logger = logging.getLogger(__name__)

# Mutation and administrative keywords, matched as plain substrings
FORBIDDEN_KEYWORDS = [
    "DROP", "DELETE", "UPDATE", "INSERT", "ALTER", "TRUNCATE", "CREATE",
    "GRANT", "EXECUTE", "EXEC",
    "SP_", "XP_",  # stored procedure prefixes
]


def check_sql(sql: str) -> Tuple[bool, str]:
    """
    Validate SQL query against security guardrails.

    Args:
        sql: The SQL query to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    normalized = str(sql).strip().upper()

    if not normalized.startswith("SELECT"):
        return False, "SQL must start with SELECT"

    for keyword in FORBIDDEN_KEYWORDS:
        if keyword in normalized:
            return False, f"SQL contains forbidden keyword: {keyword}"

    return True, ""


def validate_sql(sql: str) -> bool:
    """Return True when the statement may be executed."""
    is_valid, reason = check_sql(sql)
    if not is_valid:
        logger.warning("SQL rejected (%s): %s", reason, sql[:200])
    return is_valid
