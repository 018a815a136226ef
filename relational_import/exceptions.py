"""Exceptions raised by relational import."""

from typing import Iterable, Optional


class RelationalImportError(Exception):
    """Base class for all relational import errors."""


class ConfigurationError(RelationalImportError):
    """Invalid import options or connection configuration."""


class PrimaryTableNotFoundError(ConfigurationError):
    """The requested primary table is not part of the analysed schema."""

    def __init__(self, table: str, available_tables: Optional[Iterable[str]] = None):
        self.table = table
        self.available_tables = sorted(available_tables or [])
        super().__init__(f"Primary table '{table}' not found in schema")


class ConnectorError(RelationalImportError):
    """A connector operation against the data source failed."""

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(f"{operation} failed: {message}")


class QueryError(ConnectorError):
    """A single query failed."""
