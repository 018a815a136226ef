"""Data models for relational import."""

from .metadata import (
    ColumnInfo,
    ForeignKeyInfo,
    IndexInfo,
    TableInfo,
    DatabaseSchema,
    QueryResult,
)

from .relational import (
    RelationshipType,
    TableRelationship,
    RelationalSchema,
    ImportOptions,
    RelationshipReport,
)

from .nested import (
    NestedRecord,
    RecordReference,
    is_reference,
)

__all__ = [
    # Metadata models
    "ColumnInfo",
    "ForeignKeyInfo",
    "IndexInfo",
    "TableInfo",
    "DatabaseSchema",
    "QueryResult",
    # Relationship graph models
    "RelationshipType",
    "TableRelationship",
    "RelationalSchema",
    "ImportOptions",
    "RelationshipReport",
    # Nested documents
    "NestedRecord",
    "RecordReference",
    "is_reference",
]
