"""Metadata models for database schema representation."""

from typing import Any, Optional
from pydantic import BaseModel, Field


DEFAULT_PRIMARY_KEY = "id"


class ColumnInfo(BaseModel):
    """Information about a database column."""
    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Native data type")
    nullable: bool = Field(True, description="Whether the column allows NULL")
    default: Optional[str] = Field(None, description="Default value")
    is_primary_key: bool = Field(False, description="Whether this is a primary key")
    is_unique: bool = Field(False, description="Whether this column has unique constraint")
    comment: Optional[str] = Field(None, description="Column comment/description")
    ordinal_position: int = Field(0, description="Column position in the table")


class ForeignKeyInfo(BaseModel):
    """Information about a foreign key constraint."""
    constraint_name: str = Field("", description="Name of the FK constraint")
    column: str = Field(..., description="Column in the current table")
    references_table: str = Field(..., description="Referenced table name")
    references_column: str = Field(..., description="Referenced column name")


class IndexInfo(BaseModel):
    """Information about an index."""
    name: str = Field(..., description="Index name")
    columns: list[str] = Field(default_factory=list, description="Indexed columns")
    is_unique: bool = Field(False, description="Whether this is a unique index")


class TableInfo(BaseModel):
    """Complete information about a database table."""
    name: str = Field(..., description="Table name")
    columns: list[ColumnInfo] = Field(default_factory=list, description="Table columns")
    primary_keys: list[str] = Field(default_factory=list, description="Primary key columns")
    foreign_keys: list[ForeignKeyInfo] = Field(default_factory=list, description="Foreign keys")
    indexes: list[IndexInfo] = Field(default_factory=list, description="Table indexes")
    comment: Optional[str] = Field(None, description="Table comment/description")

    @property
    def primary_key_column(self) -> str:
        """First declared primary key column, ``id`` when none is declared."""
        return self.primary_keys[0] if self.primary_keys else DEFAULT_PRIMARY_KEY

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        """Get column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None


class DatabaseSchema(BaseModel):
    """Schema snapshot returned by a connector."""
    database_name: str = Field("", description="Database name")
    tables: list[TableInfo] = Field(default_factory=list, description="All tables")

    def get_table(self, name: str) -> Optional[TableInfo]:
        """Get table by name."""
        for table in self.tables:
            if table.name == name:
                return table
        return None

    @property
    def table_count(self) -> int:
        """Get total table count."""
        return len(self.tables)

    @property
    def column_count(self) -> int:
        """Get total column count across all tables."""
        return sum(len(t.columns) for t in self.tables)

    @property
    def foreign_key_count(self) -> int:
        """Get total foreign key count."""
        return sum(len(t.foreign_keys) for t in self.tables)


class QueryResult(BaseModel):
    """Column names plus positional rows from a raw query."""
    columns: list[str] = Field(default_factory=list, description="Result column names")
    rows: list[list[Any]] = Field(default_factory=list, description="Result rows")

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def records(self) -> list[dict[str, Any]]:
        """Convert positional rows into column-keyed dictionaries."""
        return [dict(zip(self.columns, row)) for row in self.rows]
