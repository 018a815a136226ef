"""Relational import: nested documents from relational data sources."""

from .connectors import Connector, SQLAlchemyConnector, create_connector
from .diagram import DiagramFormatter
from .exceptions import (
    ConfigurationError,
    ConnectorError,
    PrimaryTableNotFoundError,
    QueryError,
    RelationalImportError,
)
from .importer import (
    RelationalImporter,
    analyze_schema,
    get_relationship_diagram,
    import_relational_data,
)
from .record_builder import NestedRecordBuilder
from .schema_analyzer import SchemaAnalyzer

__version__ = "0.1.0"

__all__ = [
    "Connector",
    "SQLAlchemyConnector",
    "create_connector",
    "DiagramFormatter",
    "NestedRecordBuilder",
    "RelationalImporter",
    "SchemaAnalyzer",
    "analyze_schema",
    "import_relational_data",
    "get_relationship_diagram",
    "RelationalImportError",
    "ConfigurationError",
    "PrimaryTableNotFoundError",
    "ConnectorError",
    "QueryError",
]
