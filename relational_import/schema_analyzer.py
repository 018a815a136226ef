"""Schema analyzer building the relationship graph for relational import."""

import logging
from typing import Optional

import networkx as nx

from .connectors import Connector
from .models.metadata import DatabaseSchema, TableInfo
from .models.relational import (
    ImportOptions,
    RelationalSchema,
    RelationshipType,
    TableRelationship,
)

logger = logging.getLogger(__name__)


class SchemaAnalyzer:
    """Turns connector schema introspection into a ``RelationalSchema``."""

    def __init__(self, connector: Connector):
        """Initialize the schema analyzer.

        Args:
            connector: Connector used for schema introspection
        """
        self.connector = connector
        self.relationship_graph = nx.MultiDiGraph()

    def analyze(self, options: ImportOptions) -> RelationalSchema:
        """Analyze the source schema for an import.

        Args:
            options: Import options (primary table and table filters)

        Returns:
            Filtered tables plus directed relationships
        """
        db_schema = self.connector.get_schema()
        logger.info(
            "Analyzing database schema: %d tables, primary table %s",
            db_schema.table_count, options.primary_table,
        )
        schema = build_relational_schema(db_schema, options)
        self._build_relationship_graph(schema)

        logger.info(
            "Schema analysis complete: %d tables, %d relationships",
            len(schema.tables), len(schema.relationships),
        )
        for rel in schema.relationships:
            logger.debug("Relationship %s", rel.describe())
        return schema

    def _build_relationship_graph(self, schema: RelationalSchema):
        """Mirror the relationship list into a NetworkX graph."""
        self.relationship_graph.clear()

        for table_name in schema.tables:
            self.relationship_graph.add_node(table_name)

        for rel in schema.relationships:
            self.relationship_graph.add_edge(
                rel.from_table,
                rel.to_table,
                from_column=rel.from_column,
                to_column=rel.to_column,
                relationship_type=rel.relationship_type.value,
            )

    def _forward_graph(self) -> nx.DiGraph:
        graph = nx.DiGraph()
        graph.add_nodes_from(self.relationship_graph.nodes())
        for source, target, data in self.relationship_graph.edges(data=True):
            if data["relationship_type"] != RelationshipType.ONE_TO_MANY.value:
                graph.add_edge(source, target)
        return graph

    def reachable_tables(self, primary_table: str, max_depth: Optional[int] = None) -> list[str]:
        """Tables reachable from ``primary_table`` by forward edges.

        Args:
            primary_table: Starting table
            max_depth: Maximum number of hops (unlimited when None)

        Returns:
            Reachable table names, excluding the starting table
        """
        graph = self._forward_graph()
        if primary_table not in graph:
            return []
        lengths = nx.single_source_shortest_path_length(graph, primary_table, cutoff=max_depth)
        return sorted(name for name in lengths if name != primary_table)

    def get_relationship_stats(self) -> dict:
        """Get statistics about the analysed relationships.

        Returns:
            Statistics dictionary
        """
        graph = self.relationship_graph
        forward = self._forward_graph()
        self_references = sorted({u for u, v in forward.edges() if u == v})
        schema_cycles = [
            cycle for cycle in nx.simple_cycles(forward) if len(cycle) > 1
        ]
        reverse_count = sum(
            1 for _, _, data in graph.edges(data=True)
            if data["relationship_type"] == RelationshipType.ONE_TO_MANY.value
        )

        return {
            "total_tables": graph.number_of_nodes(),
            "total_relationships": graph.number_of_edges(),
            "reverse_relationships": reverse_count,
            "isolated_tables": len(list(nx.isolates(graph))),
            "connected_components": nx.number_weakly_connected_components(graph) if graph else 0,
            "self_referencing_tables": self_references,
            "schema_cycles": [sorted(cycle) for cycle in schema_cycles],
        }


def filter_tables(db_schema: DatabaseSchema, options: ImportOptions) -> dict[str, TableInfo]:
    """Apply the exclude list, then the include list when one is given."""
    excluded = set(options.excluded_tables)
    included = set(options.included_tables)

    tables: dict[str, TableInfo] = {}
    for table in db_schema.tables:
        if table.name in excluded:
            continue
        if included and table.name not in included:
            continue
        tables[table.name] = table
    return tables


def build_relationships(tables: dict[str, TableInfo], follow_reverse: bool = False) -> list[TableRelationship]:
    """Build directed edges from the foreign keys of the included tables.

    Foreign keys pointing outside ``tables`` are dropped. With
    ``follow_reverse`` every kept edge is followed by its one-to-many mirror.
    """
    relationships = []

    for table in tables.values():
        for fk in table.foreign_keys:
            if fk.references_table not in tables:
                logger.debug(
                    "Dropping foreign key %s.%s -> %s: table not included",
                    table.name, fk.column, fk.references_table,
                )
                continue

            relationships.append(TableRelationship(
                from_table=table.name,
                from_column=fk.column,
                to_table=fk.references_table,
                to_column=fk.references_column,
                relationship_type=RelationshipType.MANY_TO_ONE,
            ))

            if follow_reverse:
                relationships.append(TableRelationship(
                    from_table=fk.references_table,
                    from_column=fk.references_column,
                    to_table=table.name,
                    to_column=fk.column,
                    relationship_type=RelationshipType.ONE_TO_MANY,
                ))

    return relationships


def build_relational_schema(db_schema: DatabaseSchema, options: ImportOptions) -> RelationalSchema:
    """Pure schema analysis over an already introspected snapshot."""
    tables = filter_tables(db_schema, options)
    return RelationalSchema(
        tables=tables,
        relationships=build_relationships(tables, options.follow_reverse),
        primary_table=options.primary_table,
    )
