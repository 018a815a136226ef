"""Shared fixtures: SQLite databases built through SQLAlchemy."""

import re

import pytest
from sqlalchemy import create_engine, text

from relational_import.config import DatabaseConfig
from relational_import.connectors import SQLAlchemyConnector
from relational_import.exceptions import QueryError


class RecordingConnector(SQLAlchemyConnector):
    """SQLite connector that records queries and can fail on chosen tables."""

    def __init__(self, config, fail_tables=()):
        super().__init__(config)
        self.fail_tables = set(fail_tables)
        self.queries = []

    def execute_query(self, sql, params=None):
        self.queries.append((sql, dict(params or {})))
        match = re.search(r'FROM "([^"]+)"', sql)
        if match and match.group(1) in self.fail_tables:
            raise QueryError("execute_query", f"simulated failure on {match.group(1)}")
        return super().execute_query(sql, params)

    def queries_for(self, table, column=None):
        target = f'FROM "{table}"'
        if column:
            target += f' WHERE "{column}"'
        return [sql for sql, _ in self.queries if target in sql]


def create_database(path, statements):
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))
    engine.dispose()
    return DatabaseConfig(url=f"sqlite:///{path}")


@pytest.fixture
def make_connector(tmp_path):
    """Build a connected RecordingConnector over a fresh SQLite file."""
    connectors = []

    def _make(statements, fail_tables=(), name="source.db"):
        config = create_database(tmp_path / name, statements)
        connector = RecordingConnector(config, fail_tables=fail_tables)
        connector.connect()
        connectors.append(connector)
        return connector

    yield _make

    for connector in connectors:
        connector.disconnect()


SHOP_STATEMENTS = [
    "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT)",
    "CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER REFERENCES customers(id))",
    "INSERT INTO customers (id, name) VALUES (1, 'A')",
    "INSERT INTO orders (id, customer_id) VALUES (10, 1)",
]


@pytest.fixture
def shop_statements():
    return list(SHOP_STATEMENTS)


@pytest.fixture
def shop_connector(make_connector, shop_statements):
    """customers(id) <- orders(customer_id) with one row each."""
    return make_connector(shop_statements)


@pytest.fixture
def employee_connector(make_connector):
    """Self-referencing employees: 5 -> 4 -> 3 -> 2 -> 1, plus a 6 <-> 7 loop."""
    return make_connector([
        "CREATE TABLE employees (id INTEGER PRIMARY KEY, name TEXT, "
        "manager_id INTEGER REFERENCES employees(id))",
        "INSERT INTO employees VALUES (1, 'root', NULL)",
        "INSERT INTO employees VALUES (2, 'b', 1)",
        "INSERT INTO employees VALUES (3, 'c', 2)",
        "INSERT INTO employees VALUES (4, 'd', 3)",
        "INSERT INTO employees VALUES (5, 'e', 4)",
        "INSERT INTO employees VALUES (6, 'loop-a', 7)",
        "INSERT INTO employees VALUES (7, 'loop-b', 6)",
    ])


@pytest.fixture
def create_sqlite_url():
    """Create a SQLite file from statements and return its URL."""
    def _create(path, statements):
        return create_database(path, statements).url
    return _create
