"""
Error taxonomy for the remote data service.

These errors never leave the repository layer; repositories translate them
into the shared domain errors (NotFoundError, ConflictError, DatabaseError).
"""

import json
import re
from typing import Any, Dict, Optional, Tuple

from shared.errors import AccessLayerException


class RemoteDataError(AccessLayerException):
    """Base class for every failure produced by the remote data gateway."""

    code = "REMOTE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(self.code, message, details)

    def is_client_error(self) -> bool:
        return isinstance(self, (
            RemoteValidationError,
            AuthError,
            TableNotFound,
            ColumnNotFound,
            QueryError,
            InsertConflict,
            SerializationError,
            NotFound,
            MultipleResults,
            ConfigError,
        ))

    def is_server_error(self) -> bool:
        return isinstance(self, HttpError) and 500 <= self.status <= 599

    def is_network_error(self) -> bool:
        return isinstance(self, NetworkError)

    def is_auth_error(self) -> bool:
        return isinstance(self, AuthError)

    def is_not_found(self) -> bool:
        return isinstance(self, (NotFound, TableNotFound))


class HttpError(RemoteDataError):
    code = "REMOTE_HTTP_ERROR"

    def __init__(self, status: int, message: str, details: Optional[Any] = None):
        self.status = status
        super().__init__(f"HTTP error {status}: {message}", {"status": status, "body": details})


class ParseError(RemoteDataError):
    code = "REMOTE_PARSE_ERROR"

    def __init__(self, message: str):
        super().__init__(f"JSON parse error: {message}")


class NetworkError(RemoteDataError):
    code = "REMOTE_NETWORK_ERROR"

    def __init__(self, message: str):
        super().__init__(f"Network error: {message}")


class RemoteValidationError(RemoteDataError):
    code = "REMOTE_VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Validation error: {field} - {reason}", {"field": field})


class AuthError(RemoteDataError):
    code = "REMOTE_AUTH_ERROR"

    def __init__(self, message: str):
        super().__init__(f"Authentication error: {message}")


class TableNotFound(RemoteDataError):
    code = "REMOTE_TABLE_NOT_FOUND"

    def __init__(self, table: str):
        self.table = table
        super().__init__(f"Table not found: {table}", {"table": table})


class ColumnNotFound(RemoteDataError):
    code = "REMOTE_COLUMN_NOT_FOUND"

    def __init__(self, table: str, column: str):
        self.table = table
        self.column = column
        super().__init__(f"Column not found: {column} in table {table}", {"table": table, "column": column})


class QueryError(RemoteDataError):
    code = "REMOTE_QUERY_ERROR"

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(f"Query error: {message}", {"body": details})


class InsertConflict(RemoteDataError):
    code = "REMOTE_INSERT_CONFLICT"

    def __init__(self, message: str = "Insert conflict - duplicate key or constraint violation"):
        super().__init__(f"Insert conflict: {message}")


class RateLimited(RemoteDataError):
    code = "REMOTE_RATE_LIMITED"

    def __init__(self, message: str = "Rate limit exceeded"):
        super().__init__(f"Rate limited: {message}")


class SerializationError(RemoteDataError):
    code = "REMOTE_SERIALIZATION_ERROR"

    def __init__(self, message: str):
        super().__init__(f"Serialization error: {message}")


class NotFound(RemoteDataError):
    code = "REMOTE_NOT_FOUND"

    def __init__(self):
        super().__init__("No results found")


class MultipleResults(RemoteDataError):
    code = "REMOTE_MULTIPLE_RESULTS"

    def __init__(self):
        super().__init__("Multiple results found when expecting single result")


class ConfigError(RemoteDataError):
    code = "REMOTE_CONFIG_ERROR"

    def __init__(self, message: str):
        super().__init__(f"Configuration error: {message}")


_RELATION_RE = re.compile(r'relation "?([\w.]+)"? does not exist')
_QUOTED_COLUMN_RE = re.compile(r'column "([\w]+)" of relation "([\w.]+)" does not exist')
_DOTTED_COLUMN_RE = re.compile(r'column "?([\w]+)\.([\w]+)"? does not exist')


def extract_table_name(message: str) -> Optional[str]:
    """Pull `table` out of `relation "public.table" does not exist`."""
    match = _RELATION_RE.search(message)
    if not match:
        return None
    return match.group(1).split(".")[-1]


def extract_table_and_column(message: str) -> Optional[Tuple[str, str]]:
    """Pull `(table, column)` out of a missing-column message.

    Both `column "col" of relation "table" does not exist` and
    `column table.col does not exist` are recognised.
    """
    match = _QUOTED_COLUMN_RE.search(message)
    if match:
        return match.group(2).split(".")[-1], match.group(1)
    match = _DOTTED_COLUMN_RE.search(message)
    if match:
        return match.group(1), match.group(2)
    return None


def _message_of(details: Optional[Any]) -> Optional[str]:
    if isinstance(details, dict):
        message = details.get("message")
        if isinstance(message, str):
            return message
    return None


def classify_error_response(status: int, body: str, path: str) -> RemoteDataError:
    """Map a non-2xx remote response onto the error taxonomy.

    Matching on human-readable error text is best effort only; anything that
    does not match a known shape falls through to a generic error.
    """
    try:
        details: Optional[Any] = json.loads(body) if body else None
    except ValueError:
        details = None

    if status == 400:
        return _classify_bad_request(body, details)
    if status == 401:
        return AuthError("Unauthorized - check your API key")
    if status == 403:
        return AuthError("Forbidden - insufficient permissions")
    if status == 404:
        return TableNotFound(path.split("?", 1)[0])
    if status == 409:
        return InsertConflict()
    if status == 422:
        return _classify_unprocessable(body, details)
    if status == 429:
        return RateLimited()
    if 500 <= status <= 599:
        return HttpError(status, "Server error", details)
    return HttpError(status, body, details)


def _classify_bad_request(body: str, details: Optional[Any]) -> RemoteDataError:
    message = _message_of(details)

    if "column" in body and "does not exist" in body and message:
        pair = extract_table_and_column(message)
        if pair:
            return ColumnNotFound(*pair)

    if "relation" in body and "does not exist" in body and message:
        table = extract_table_name(message)
        if table:
            return TableNotFound(table)

    if "failed to parse filter" in body:
        return QueryError("Invalid filter syntax", details)

    return QueryError(body, details)


def _classify_unprocessable(body: str, details: Optional[Any]) -> RemoteDataError:
    message = _message_of(details)
    if message and "failed to parse filter" in message:
        return QueryError("Invalid filter syntax", details)
    return RemoteValidationError("unknown", body)
