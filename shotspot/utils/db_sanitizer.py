"""
Scrub SQL text and database error messages before they are logged or sent out.

String literals and credential-looking assignments are masked so query
parameters never leak into logs or error notifications.
"""

import re
from typing import Any, Dict, Optional

MAX_QUERY_LOG_LENGTH = 100

_ASSIGNMENT_OR_LITERAL_PATTERN = re.compile(
    r"(?:\b(password|token|secret|api_key)\s*=\s*)?'[^']*'", re.IGNORECASE
)
_STRING_LITERAL_PATTERN = re.compile(r"'[^']*'")
_DOUBLE_QUOTED_PATTERN = re.compile(r'"[^"]*"')
_WHITESPACE_PATTERN = re.compile(r"\s+")
_PARAM_PLACEHOLDER_PATTERN = re.compile(r"\$\d+|:\w+|%\(\w+\)s")
_PASSWORD_WORD_PATTERN = re.compile(r"password\S*", re.IGNORECASE)
_TOKEN_WORD_PATTERN = re.compile(r"token\S*", re.IGNORECASE)


def _mask_literal(match: "re.Match") -> str:
    key = match.group(1)
    if key is None:
        return "'***'"
    if key.lower() == "password":
        return "password='******'"
    return f"{key.lower()}='***'"


def sanitize_query_for_logging(query: Optional[str]) -> str:
    """
    Mask literals in a SQL statement and truncate it for logging.

    Args:
        query: Raw SQL text

    Returns:
        Masked, whitespace-collapsed query, at most MAX_QUERY_LOG_LENGTH chars
        followed by "..." when truncated
    """
    if not query:
        return ""

    sanitized = _ASSIGNMENT_OR_LITERAL_PATTERN.sub(_mask_literal, query)
    sanitized = _WHITESPACE_PATTERN.sub(" ", sanitized).strip()

    if len(sanitized) > MAX_QUERY_LOG_LENGTH:
        sanitized = sanitized[:MAX_QUERY_LOG_LENGTH] + "..."
    return sanitized


def sanitize_db_error(error: Any) -> Dict[str, Optional[str]]:
    """
    Build a loggable summary of a database exception.

    Works with SQLAlchemy DBAPIError wrappers (uses ``.orig`` for the driver
    error) as well as plain exceptions.

    Returns:
        {"message": masked text, "code": SQLSTATE or None, "severity": ... or None}
    """
    orig = getattr(error, "orig", None) or error
    message = str(orig) if orig is not None else ""

    # Only keep the first line; drivers append the full statement after it
    message = message.splitlines()[0] if message else ""
    message = _STRING_LITERAL_PATTERN.sub("'***'", message)
    message = _DOUBLE_QUOTED_PATTERN.sub('"***"', message)
    message = _PASSWORD_WORD_PATTERN.sub("password***", message)
    message = _TOKEN_WORD_PATTERN.sub("token***", message)

    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    severity = getattr(orig, "severity", None)

    return {"message": message, "code": code, "severity": severity}


def is_parameterized_query(query: Optional[str]) -> bool:
    """True if the statement uses bind placeholders rather than inline values."""
    if not query:
        return False
    return bool(_PARAM_PLACEHOLDER_PATTERN.search(query))
