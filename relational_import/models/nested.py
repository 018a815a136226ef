"""Nested document values produced by the record builder.

A nested record is a plain ``dict``. Besides the row's own columns it may hold:

- ``_<table>``: a single related record (to-one edge)
- ``_<table>_list``: related records (to-many edge)
- ``_<table>_count``: ``"<cap>+"`` when the list hit its row cap
- a reference stub ``{<pk>: value, "_ref": table}`` where expansion stopped
"""

from typing import Any, Mapping
from pydantic import BaseModel, Field


NestedRecord = dict[str, Any]

REF_KEY = "_ref"
RELATION_PREFIX = "_"


class RecordReference(BaseModel):
    """A record that was not expanded, identified by table and key."""
    table: str = Field(..., description="Table the record belongs to")
    primary_key: str = Field(..., description="Primary key column name")
    value: Any = Field(None, description="Primary key value")

    def to_stub(self) -> NestedRecord:
        return {self.primary_key: self.value, REF_KEY: self.table}

    @classmethod
    def from_stub(cls, stub: Mapping[str, Any]) -> "RecordReference":
        if not is_reference(stub):
            raise ValueError("Not a reference stub")
        key = next(k for k in stub if k != REF_KEY)
        return cls(table=stub[REF_KEY], primary_key=key, value=stub[key])


def is_reference(value: Any) -> bool:
    """Whether ``value`` is a reference stub rather than an expanded record."""
    return isinstance(value, Mapping) and len(value) == 2 and REF_KEY in value


def _unique_key(key: str, record: Mapping[str, Any]) -> str:
    # Relation keys never overwrite a real column of the row
    while key in record:
        key = RELATION_PREFIX + key
    return key


def relation_key(table: str, record: Mapping[str, Any]) -> str:
    return _unique_key(f"{RELATION_PREFIX}{table}", record)


def list_keys(table: str, record: Mapping[str, Any]) -> tuple[str, str]:
    """Keys for a to-many edge's list and its ``"<cap>+"`` count marker.

    Both keys share one prefix, so a count marker always pairs with its own
    list even when several edges lead into the same table.
    """
    base = f"{RELATION_PREFIX}{table}"
    while f"{base}_list" in record or f"{base}_count" in record:
        base = RELATION_PREFIX + base
    return f"{base}_list", f"{base}_count"
