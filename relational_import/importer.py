"""Relational import: nested documents from a primary table."""

import logging
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from .config import ImportConfig
from .connectors import Connector
from .diagram import DiagramFormatter
from .exceptions import ConfigurationError, PrimaryTableNotFoundError
from .models.nested import NestedRecord
from .models.relational import ImportOptions, RelationalSchema, RelationshipReport
from .record_builder import NestedRecordBuilder
from .schema_analyzer import SchemaAnalyzer

logger = logging.getLogger(__name__)

OptionsLike = Union[ImportOptions, Mapping[str, Any]]


# Option fields that fall back to ImportConfig when the caller leaves them out
CONFIG_DEFAULTED_OPTIONS = ("max_depth", "max_records", "follow_reverse")


def coerce_options(options: OptionsLike, config: Optional[ImportConfig] = None) -> ImportOptions:
    """Validate raw options, reporting problems as configuration errors.

    Fields named in ``CONFIG_DEFAULTED_OPTIONS`` that were not given take
    their value from ``config``.
    """
    if isinstance(options, ImportOptions):
        if config is None:
            return options
        values = options.model_dump(exclude_unset=True)
    else:
        values = dict(options)

    if config is not None:
        for name in CONFIG_DEFAULTED_OPTIONS:
            values.setdefault(name, getattr(config, name))

    try:
        return ImportOptions(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid import options: {e}") from e


class RelationalImporter:
    """Orchestrates schema analysis, root sampling and nested record building."""

    def __init__(self, connector: Connector, config: Optional[ImportConfig] = None):
        """Initialize the importer.

        Args:
            connector: Connected data source
            config: Traversal limits and defaults for options left unset
        """
        self.connector = connector
        self.config = config or ImportConfig()
        self.analyzer = SchemaAnalyzer(connector)
        self.formatter = DiagramFormatter()

    def analyze_schema(self, options: OptionsLike) -> RelationalSchema:
        """Analyze the database schema and build the relationship graph."""
        return self.analyzer.analyze(coerce_options(options, self.config))

    def import_relational_data(self, options: OptionsLike) -> list[NestedRecord]:
        """Import primary table rows as nested documents.

        Args:
            options: Import options

        Returns:
            One nested document per sampled root row, in sampling order

        Raises:
            PrimaryTableNotFoundError: The primary table is not in the analysed schema
            ConnectorError: Introspection or sampling failed
        """
        options = coerce_options(options, self.config)
        schema = self.analyze_schema(options)
        self._require_primary_table(schema)

        logger.info(
            "Starting relational import of %s (max depth %d, max records %d, %d relationships)",
            options.primary_table, options.max_depth, options.max_records, len(schema.relationships),
        )

        rows = self.connector.get_sample_rows(options.primary_table, options.max_records)
        logger.info("Retrieved %d records from primary table", len(rows))

        builder = NestedRecordBuilder(self.connector, schema, self.config, max_depth=options.max_depth)
        results = []
        for row in rows:
            # Cycle tracking starts fresh for every root record
            results.append(builder.build(options.primary_table, row, visited=frozenset()))

        logger.info("Relational import complete: %d records", len(results))
        return results

    def get_relationship_diagram(self, schema: RelationalSchema) -> str:
        """Get a text representation of the relationships."""
        return self.formatter.format_text(schema)

    def describe_relationships(self, options: OptionsLike) -> RelationshipReport:
        """Preview the relationship graph of a primary table.

        Args:
            options: Import options

        Returns:
            Tables, relationships, diagram and statistics
        """
        options = coerce_options(options, self.config)
        schema = self.analyze_schema(options)
        self._require_primary_table(schema)

        primary_rows = self.connector.get_table_count(options.primary_table)
        statistics = {
            "table_count": len(schema.tables),
            "relationship_count": len(schema.relationships),
            "primary_table_rows": primary_rows,
            "reachable_tables": self.analyzer.reachable_tables(options.primary_table, options.max_depth),
        }
        statistics.update(self.analyzer.get_relationship_stats())

        return RelationshipReport(
            primary_table=schema.primary_table,
            tables=list(schema.tables.values()),
            relationships=schema.relationships,
            diagram=self.get_relationship_diagram(schema),
            statistics=statistics,
            primary_table_rows=primary_rows,
        )

    def _require_primary_table(self, schema: RelationalSchema):
        if not schema.has_table(schema.primary_table):
            raise PrimaryTableNotFoundError(schema.primary_table, schema.tables.keys())


def analyze_schema(connector: Connector, options: OptionsLike) -> RelationalSchema:
    """Convenience function to analyze a schema."""
    return RelationalImporter(connector).analyze_schema(options)


def import_relational_data(
    connector: Connector,
    options: OptionsLike,
    config: Optional[ImportConfig] = None,
) -> list[NestedRecord]:
    """Convenience function to run a relational import."""
    return RelationalImporter(connector, config).import_relational_data(options)


def get_relationship_diagram(schema: RelationalSchema) -> str:
    """Convenience function to render a relationship diagram."""
    return DiagramFormatter().format_text(schema)
