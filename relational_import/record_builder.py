"""Recursive builder turning relational rows into nested documents."""

import logging
from typing import Any, Mapping, Optional

from .config import ImportConfig
from .connectors import Connector, build_related_query
from .models.nested import (
    NestedRecord,
    RecordReference,
    list_keys,
    relation_key,
)
from .models.relational import RelationalSchema, RelationshipType, TableRelationship

logger = logging.getLogger(__name__)


class NestedRecordBuilder:
    """Expands one root row by following relationships over live data.

    Expansion is bounded three ways:

    - depth: a record at ``current_depth >= max_depth`` becomes a reference
      stub; once a reverse (one-to-many) edge has been followed the bound is
      ``min(max_depth, reverse_max_depth)``
    - cycles: each branch carries its own frozen set of visited
      ``<table>_<pk>`` keys, so a record never contains itself while siblings
      may still expand the same related record
    - fan-out: one-to-many fetches are capped (``root_fanout_limit`` for the
      root row, ``nested_fanout_limit`` deeper), and a reverse hop never
      chains directly into another reverse hop
    """

    def __init__(
        self,
        connector: Connector,
        schema: RelationalSchema,
        config: Optional[ImportConfig] = None,
        max_depth: Optional[int] = None,
    ):
        """Initialize the builder.

        Args:
            connector: Connector used for relationship lookups
            schema: Relationship graph to traverse
            config: Traversal limits (defaults apply when omitted)
            max_depth: Overrides ``config.max_depth``
        """
        self.connector = connector
        self.schema = schema
        self.config = config or ImportConfig()
        self.max_depth = self.config.max_depth if max_depth is None else max_depth

    def build(
        self,
        table_name: str,
        record: Mapping[str, Any],
        current_depth: int = 0,
        visited: frozenset = frozenset(),
        is_reverse: bool = False,
    ) -> NestedRecord:
        """Build the nested document for ``record`` of ``table_name``.

        Args:
            table_name: Table the record belongs to
            record: Row as a column-keyed mapping
            current_depth: Distance from the root row
            visited: Record keys already expanded on the current path
            is_reverse: Whether a one-to-many edge led to this record

        Returns:
            The expanded record, or a reference stub where expansion stops
        """
        primary_key = self.schema.primary_key_for(table_name)
        record_key = f"{table_name}_{record.get(primary_key)}"
        effective_max_depth = self._effective_max_depth(is_reverse)

        if current_depth >= effective_max_depth or record_key in visited:
            logger.debug(
                "Stopping at %s (depth %d/%d, circular=%s, reverse=%s)",
                record_key, current_depth, effective_max_depth, record_key in visited, is_reverse,
            )
            return RecordReference(
                table=table_name,
                primary_key=primary_key,
                value=record.get(primary_key),
            ).to_stub()

        branch_visited = visited | {record_key}
        result: NestedRecord = dict(record)

        for rel in self.schema.outgoing(table_name):
            # A reverse hop may not chain into another reverse hop
            if is_reverse and rel.relationship_type.is_reverse:
                continue

            value = record.get(rel.from_column)
            if value is None:
                continue

            try:
                self._follow(rel, value, result, current_depth, branch_visited)
            except Exception:
                logger.warning(
                    "Failed to fetch related data for %s", rel.describe(), exc_info=True
                )

        return result

    def _effective_max_depth(self, is_reverse: bool) -> int:
        if is_reverse:
            return min(self.max_depth, self.config.reverse_max_depth)
        return self.max_depth

    def fanout_limit(self, current_depth: int) -> int:
        """Row cap for a one-to-many edge expanded at ``current_depth``."""
        if current_depth == 0:
            return self.config.root_fanout_limit
        return self.config.nested_fanout_limit

    def _follow(
        self,
        rel: TableRelationship,
        value: Any,
        result: NestedRecord,
        current_depth: int,
        visited: frozenset,
    ):
        """Resolve one edge and store its data in ``result``."""
        if rel.relationship_type in (RelationshipType.MANY_TO_ONE, RelationshipType.ONE_TO_ONE):
            related = self._fetch(rel, value, limit=1)
            if related:
                result[relation_key(rel.to_table, result)] = self.build(
                    rel.to_table, related[0], current_depth + 1, visited, is_reverse=False
                )

        elif rel.relationship_type is RelationshipType.ONE_TO_MANY:
            limit = self.fanout_limit(current_depth)
            related = self._fetch(rel, value, limit=limit)
            if related:
                items_key, marker_key = list_keys(rel.to_table, result)
                result[items_key] = [
                    self.build(rel.to_table, row, current_depth + 1, visited, is_reverse=True)
                    for row in related
                ]
                # Hitting the cap means more rows may exist
                if len(related) == limit:
                    result[marker_key] = f"{limit}+"

        else:
            raise ValueError(f"Unsupported relationship type: {rel.relationship_type}")

    def _fetch(self, rel: TableRelationship, value: Any, limit: int) -> list[dict[str, Any]]:
        sql = build_related_query(self.connector, rel.to_table, rel.to_column, limit=limit)
        logger.debug("Fetching related rows for %s with %r", rel.describe(), value)
        return self.connector.execute_query(sql, {"value": value}).records()
