"""Database connectors consumed by the relational import core."""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from ..config import DRIVERS, DatabaseConfig
from ..exceptions import ConfigurationError, ConnectorError, QueryError
from ..models.metadata import (
    ColumnInfo,
    DatabaseSchema,
    ForeignKeyInfo,
    IndexInfo,
    QueryResult,
    TableInfo,
)

logger = logging.getLogger(__name__)


class Connector(ABC):
    """Abstract base class for data source connectors.

    The import core only relies on schema introspection, row counting,
    sampling and raw parameterized queries. Parameters are passed as a
    mapping and referenced in SQL as named binds (``:value``).
    """

    @abstractmethod
    def connect(self):
        """Establish connection."""

    @abstractmethod
    def disconnect(self):
        """Close connection."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Test if connection is alive."""

    @abstractmethod
    def get_schema(self) -> DatabaseSchema:
        """Get all tables with metadata."""

    @abstractmethod
    def get_table_count(self, table_name: str) -> int:
        """Count rows of a table."""

    @abstractmethod
    def get_sample_rows(self, table_name: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Get at most ``limit`` rows from a table."""

    @abstractmethod
    def execute_query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> QueryResult:
        """Execute a SQL query and return columns plus rows."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Check if currently connected."""

    def quote_identifier(self, identifier: str) -> str:
        """Quote an identifier ANSI style, doubling embedded quotes."""
        return '"' + identifier.replace('"', '""') + '"'

    def table_reference(self, table_name: str) -> str:
        """Quoted name used to address a table in generated SQL."""
        return self.quote_identifier(table_name)

    def __enter__(self) -> "Connector":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.disconnect()


class SQLAlchemyConnector(Connector):
    """Connector for any database reachable through a SQLAlchemy URL.

    A single connection is opened on ``connect()`` and shared by every query
    until ``disconnect()``; queries are issued sequentially.
    """

    def __init__(self, config: DatabaseConfig):
        """Initialize the connector.

        Args:
            config: Database connection configuration
        """
        self.config = config
        self.schema_name = config.schema_name
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def connect(self):
        if self._connection is not None:
            return
        try:
            self._engine = create_engine(self.config.connection_string)
            self._connection = self._engine.connect()
        except SQLAlchemyError as e:
            self._dispose()
            raise ConnectorError("connect", str(e)) from e
        logger.debug("Connected to %s", self._engine.url.render_as_string(hide_password=True))

    def disconnect(self):
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._dispose()

    def _dispose(self):
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def test_connection(self) -> bool:
        if self._connection is None:
            return False
        try:
            self._connection.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError:
            self._reset_connection()
            return False

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise ConnectorError("query", "Database connection not established. Call connect() first.")
        return self._connection

    def _reset_connection(self):
        """Roll back so a failed statement does not poison later queries."""
        if self._connection is not None:
            try:
                self._connection.rollback()
            except SQLAlchemyError:
                logger.debug("Rollback after failed statement also failed", exc_info=True)

    def quote_identifier(self, identifier: str) -> str:
        if self._engine is None:
            return super().quote_identifier(identifier)
        return self._engine.dialect.identifier_preparer.quote_identifier(identifier)

    def table_reference(self, table_name: str) -> str:
        if self.schema_name:
            return f"{self.quote_identifier(self.schema_name)}.{self.quote_identifier(table_name)}"
        return self.quote_identifier(table_name)

    def get_schema(self) -> DatabaseSchema:
        connection = self._require_connection()
        try:
            inspector = inspect(connection)
            table_names = inspector.get_table_names(schema=self.schema_name)
            tables = [self._extract_table_info(inspector, name) for name in table_names]
        except SQLAlchemyError as e:
            self._reset_connection()
            raise ConnectorError("get_schema", str(e)) from e

        logger.debug("Introspected %d tables", len(tables))
        return DatabaseSchema(
            database_name=self.config.database,
            tables=tables,
        )

    def _extract_table_info(self, inspector, table_name: str) -> TableInfo:
        """Extract information for a single table.

        Args:
            inspector: SQLAlchemy inspector
            table_name: Name of the table

        Returns:
            TableInfo object
        """
        schema = self.schema_name
        # Keep declared order; the first PK column identifies records
        pk_columns = inspector.get_pk_constraint(table_name, schema=schema).get("constrained_columns") or []

        columns = []
        for col in inspector.get_columns(table_name, schema=schema):
            columns.append(ColumnInfo(
                name=col["name"],
                data_type=str(col["type"]),
                nullable=col.get("nullable", True),
                default=str(col.get("default")) if col.get("default") is not None else None,
                is_primary_key=col["name"] in pk_columns,
                comment=col.get("comment"),
                ordinal_position=len(columns) + 1,
            ))

        foreign_keys = []
        for fk in inspector.get_foreign_keys(table_name, schema=schema):
            ref_cols = fk.get("referred_columns") or []
            for i, col in enumerate(fk.get("constrained_columns") or []):
                ref_col = ref_cols[i] if i < len(ref_cols) else ref_cols[0] if ref_cols else ""
                foreign_keys.append(ForeignKeyInfo(
                    constraint_name=fk.get("name") or "",
                    column=col,
                    references_table=fk.get("referred_table", ""),
                    references_column=ref_col,
                ))

        indexes = []
        for idx in inspector.get_indexes(table_name, schema=schema):
            indexes.append(IndexInfo(
                name=idx.get("name") or "",
                columns=[c for c in idx.get("column_names", []) if c],
                is_unique=bool(idx.get("unique", False)),
            ))

        # Update unique constraints on columns
        for idx in indexes:
            if idx.is_unique and len(idx.columns) == 1:
                for col in columns:
                    if col.name == idx.columns[0]:
                        col.is_unique = True

        return TableInfo(
            name=table_name,
            columns=columns,
            primary_keys=list(pk_columns),
            foreign_keys=foreign_keys,
            indexes=indexes,
            comment=self._get_table_comment(inspector, table_name),
        )

    def _get_table_comment(self, inspector, table_name: str) -> Optional[str]:
        try:
            return inspector.get_table_comment(table_name, schema=self.schema_name).get("text")
        except NotImplementedError:
            return None

    def get_table_count(self, table_name: str) -> int:
        sql = f"SELECT COUNT(*) FROM {self.table_reference(table_name)}"
        try:
            result = self._require_connection().execute(text(sql))
            return int(result.scalar() or 0)
        except SQLAlchemyError as e:
            self._reset_connection()
            raise ConnectorError("get_table_count", str(e)) from e

    def get_sample_rows(self, table_name: str, limit: int = 100) -> List[Dict[str, Any]]:
        sql = f"SELECT * FROM {self.table_reference(table_name)} LIMIT :limit"
        try:
            result = self._require_connection().execute(text(sql), {"limit": limit})
            return [dict(row) for row in result.mappings().fetchall()]
        except SQLAlchemyError as e:
            self._reset_connection()
            raise ConnectorError("get_sample_rows", str(e)) from e

    def execute_query(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> QueryResult:
        try:
            result = self._require_connection().execute(text(sql), dict(params or {}))
            if not result.returns_rows:
                return QueryResult()
            return QueryResult(
                columns=list(result.keys()),
                rows=[list(row) for row in result.fetchall()],
            )
        except SQLAlchemyError as e:
            self._reset_connection()
            raise QueryError("execute_query", str(e)) from e


def build_related_query(
    connector: Connector,
    table_name: str,
    column_name: str,
    limit: Optional[int] = None,
) -> str:
    """Build an equality-filtered SELECT against one table column.

    Identifiers are quoted by the connector; the lookup value is always
    bound as ``:value``.
    """
    sql = (
        f"SELECT * FROM {connector.table_reference(table_name)} "
        f"WHERE {connector.quote_identifier(column_name)} = :value"
    )
    if limit is not None:
        sql += f" LIMIT {int(limit)}"
    return sql


def create_connector(config: DatabaseConfig) -> Connector:
    """Factory function to get the connector for a configuration."""
    if not config.url and config.db_type.lower() not in DRIVERS:
        raise ConfigurationError(f"Unsupported database type: {config.db_type}")
    return SQLAlchemyConnector(config)
