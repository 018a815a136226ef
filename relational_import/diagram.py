"""Text and Markdown renderings of a relationship graph."""

from typing import Any, Optional
from jinja2 import Template

from .models.relational import RelationalSchema, RelationshipType


ONE_TO_MANY_ARROW = "-->>"
DEFAULT_ARROW = "-->"


def _field(obj: Any, name: str) -> str:
    value = getattr(obj, name, None)
    return str(value) if value else "?"


def _arrow(rel: Any) -> str:
    rel_type = getattr(rel, "relationship_type", None)
    return ONE_TO_MANY_ARROW if rel_type == RelationshipType.ONE_TO_MANY else DEFAULT_ARROW


class DiagramFormatter:
    """Renders a ``RelationalSchema`` for humans."""

    def format_text(self, schema: RelationalSchema) -> str:
        lines = [f"Primary Table: {_field(schema, 'primary_table')}", "", "Relationships:"]

        for rel in getattr(schema, "relationships", None) or []:
            lines.append(
                f"  {_field(rel, 'from_table')}.{_field(rel, 'from_column')} {_arrow(rel)} "
                f"{_field(rel, 'to_table')}.{_field(rel, 'to_column')}"
            )

        return "\n".join(lines)

    def format_markdown(self, schema: RelationalSchema, statistics: Optional[dict] = None) -> str:
        """Generate a Markdown relationship report.

        Args:
            schema: Analysed relational schema
            statistics: Optional statistics to list at the end

        Returns:
            Markdown report content
        """
        template = Template(RELATIONSHIP_REPORT_TEMPLATE)

        tables = []
        for name, table in sorted((getattr(schema, "tables", None) or {}).items()):
            tables.append({
                "name": name,
                "primary_key": ", ".join(getattr(table, "primary_keys", None) or []) or "-",
                "columns": len(getattr(table, "columns", None) or []),
                "foreign_keys": [
                    f"{fk.column} → {fk.references_table}.{fk.references_column}"
                    for fk in getattr(table, "foreign_keys", None) or []
                ],
            })

        relationships = [
            {
                "source": f"{_field(rel, 'from_table')}.{_field(rel, 'from_column')}",
                "target": f"{_field(rel, 'to_table')}.{_field(rel, 'to_column')}",
                "arrow": _arrow(rel),
                "type": getattr(getattr(rel, "relationship_type", None), "value", "?"),
            }
            for rel in getattr(schema, "relationships", None) or []
        ]

        return template.render(
            primary_table=_field(schema, "primary_table"),
            tables=tables,
            relationships=relationships,
            statistics=statistics or {},
        )


RELATIONSHIP_REPORT_TEMPLATE = """# Relationship Report: {{ primary_table }}

## Tables

| Table | Primary Key | Columns | Foreign Keys |
|-------|-------------|---------|--------------|
{% for table in tables -%}
| {{ table.name }} | {{ table.primary_key }} | {{ table.columns }} | {{ table.foreign_keys | join("<br>") or "-" }} |
{% endfor %}
## Relationships

{% if relationships -%}
| Source | | Target | Type |
|--------|---|--------|------|
{% for rel in relationships -%}
| `{{ rel.source }}` | `{{ rel.arrow }}` | `{{ rel.target }}` | {{ rel.type }} |
{% endfor %}
{%- else -%}
No relationships found.
{% endif %}
{% if statistics -%}
## Statistics

{% for key, value in statistics.items() -%}
- **{{ key }}**: {{ value }}
{% endfor %}
{%- endif %}
"""
