"""Relationship graph models used by schema analysis and nested import."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .metadata import DEFAULT_PRIMARY_KEY, TableInfo


class RelationshipType(str, Enum):
    """Cardinality of a relationship as seen from its ``from_table``."""
    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"    # Synthesized reverse of a foreign key
    MANY_TO_ONE = "many-to-one"    # Declared foreign key

    @property
    def is_reverse(self) -> bool:
        """Reverse edges walk a foreign key from the referenced side."""
        return self is RelationshipType.ONE_TO_MANY


class TableRelationship(BaseModel):
    """A directed edge between two tables."""
    model_config = ConfigDict(frozen=True)

    from_table: str = Field(..., description="Table the edge starts from")
    from_column: str = Field(..., description="Column holding the lookup value")
    to_table: str = Field(..., description="Table the edge points to")
    to_column: str = Field(..., description="Column matched against the lookup value")
    relationship_type: RelationshipType = Field(..., description="Edge cardinality")

    def describe(self) -> str:
        return (
            f"{self.from_table}.{self.from_column} -> "
            f"{self.to_table}.{self.to_column} ({self.relationship_type.value})"
        )


class RelationalSchema(BaseModel):
    """Filtered tables plus the relationship list driving an import."""
    model_config = ConfigDict(frozen=True)

    tables: dict[str, TableInfo] = Field(default_factory=dict, description="Included tables by name")
    relationships: list[TableRelationship] = Field(default_factory=list, description="Directed edges")
    primary_table: str = Field(..., description="Root table of the import")

    def has_table(self, name: str) -> bool:
        return name in self.tables

    def outgoing(self, table: str) -> list[TableRelationship]:
        """Relationships starting at ``table`` in declaration order."""
        return [rel for rel in self.relationships if rel.from_table == table]

    def primary_key_for(self, table: str) -> str:
        info = self.tables.get(table)
        return info.primary_key_column if info else DEFAULT_PRIMARY_KEY


class ImportOptions(BaseModel):
    """Options accepted by schema analysis and relational import."""
    primary_table: str = Field(..., description="Required root table")
    max_depth: int = Field(3, ge=0, description="Forward expansion bound")
    max_records: int = Field(100, ge=1, description="Root row sample size")
    included_tables: list[str] = Field(default_factory=list, description="Allow-list; empty means all")
    excluded_tables: list[str] = Field(default_factory=list, description="Deny-list")
    follow_reverse: bool = Field(False, description="Synthesize one-to-many edges")

    @field_validator("primary_table")
    @classmethod
    def _primary_table_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("primary_table must not be empty")
        return value

    @field_validator("included_tables", "excluded_tables", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


class RelationshipReport(BaseModel):
    """Relationship preview for a primary table."""
    primary_table: str
    tables: list[TableInfo] = Field(default_factory=list)
    relationships: list[TableRelationship] = Field(default_factory=list)
    diagram: str = ""
    statistics: dict[str, Any] = Field(default_factory=dict)
    primary_table_rows: Optional[int] = Field(None, description="Row count of the primary table")

    def to_schema(self) -> RelationalSchema:
        return RelationalSchema(
            tables={table.name: table for table in self.tables},
            relationships=self.relationships,
            primary_table=self.primary_table,
        )
