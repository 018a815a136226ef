"""Unit tests for the nested record builder."""

import pytest

from relational_import.config import ImportConfig
from relational_import.models.nested import is_reference
from relational_import.models.relational import ImportOptions
from relational_import.record_builder import NestedRecordBuilder
from relational_import.schema_analyzer import SchemaAnalyzer


def make_builder(connector, primary_table, follow_reverse=False, max_depth=3, config=None):
    schema = SchemaAnalyzer(connector).analyze(
        ImportOptions(primary_table=primary_table, follow_reverse=follow_reverse)
    )
    return NestedRecordBuilder(connector, schema, config, max_depth=max_depth)


def fetch_row(connector, table, row_id):
    result = connector.execute_query(f'SELECT * FROM "{table}" WHERE "id" = :value', {"value": row_id})
    return result.records()[0]


@pytest.fixture
def fanout_connector(make_connector):
    """Customer 1 has 150 orders, customer 2 has 3."""
    statements = [
        "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT)",
        "CREATE TABLE orders (id INTEGER PRIMARY KEY, customer_id INTEGER REFERENCES customers(id))",
        "INSERT INTO customers VALUES (1, 'big')",
        "INSERT INTO customers VALUES (2, 'small')",
    ]
    statements += [f"INSERT INTO orders VALUES ({i}, 1)" for i in range(1, 151)]
    statements += [f"INSERT INTO orders VALUES ({i}, 2)" for i in range(151, 154)]
    return make_connector(statements)


@pytest.fixture
def mutual_connector(make_connector):
    """departments.head_id -> staff.id and staff.department_id -> departments.id."""
    return make_connector([
        "CREATE TABLE departments (id INTEGER PRIMARY KEY, name TEXT, head_id INTEGER REFERENCES staff(id))",
        "CREATE TABLE staff (id INTEGER PRIMARY KEY, name TEXT, department_id INTEGER REFERENCES departments(id))",
        "INSERT INTO departments VALUES (1, 'research', 100)",
        "INSERT INTO staff VALUES (100, 'head', 1)",
        "INSERT INTO staff VALUES (101, 'member', 1)",
    ])


class TestDepthAndCycles:
    """Depth limit and record-level cycle detection."""

    def test_self_reference_chain_stops_at_max_depth(self, employee_connector):
        builder = make_builder(employee_connector, "employees", max_depth=3)
        doc = builder.build("employees", fetch_row(employee_connector, "employees", 5))

        assert doc["_employees"]["id"] == 4
        assert doc["_employees"]["_employees"]["id"] == 3
        assert doc["_employees"]["_employees"]["_employees"] == {"id": 2, "_ref": "employees"}

    def test_null_foreign_key_is_not_followed(self, employee_connector):
        builder = make_builder(employee_connector, "employees")
        doc = builder.build("employees", fetch_row(employee_connector, "employees", 1))

        assert doc == {"id": 1, "name": "root", "manager_id": None}
        assert employee_connector.queries == [
            ('SELECT * FROM "employees" WHERE "id" = :value', {"value": 1})
        ]

    def test_record_cycle_becomes_reference(self, employee_connector):
        builder = make_builder(employee_connector, "employees", max_depth=10)
        doc = builder.build("employees", fetch_row(employee_connector, "employees", 6))

        assert doc["_employees"]["id"] == 7
        assert doc["_employees"]["_employees"] == {"id": 6, "_ref": "employees"}

    def test_max_depth_zero_returns_stub(self, employee_connector):
        builder = make_builder(employee_connector, "employees", max_depth=0)
        doc = builder.build("employees", fetch_row(employee_connector, "employees", 5))
        assert doc == {"id": 5, "_ref": "employees"}

    def test_visited_record_is_stubbed(self, employee_connector):
        builder = make_builder(employee_connector, "employees")
        row = fetch_row(employee_connector, "employees", 5)
        assert builder.build("employees", row, visited=frozenset({"employees_5"})) == {
            "id": 5, "_ref": "employees"
        }

    def test_siblings_expand_the_same_record(self, make_connector):
        connector = make_connector([
            "CREATE TABLE accounts (id INTEGER PRIMARY KEY, owner TEXT)",
            "CREATE TABLE transfers (id INTEGER PRIMARY KEY, "
            "source_id INTEGER REFERENCES accounts(id), target_id INTEGER REFERENCES accounts(id))",
            "INSERT INTO accounts VALUES (1, 'alice')",
            "INSERT INTO transfers VALUES (9, 1, 1)",
        ])
        builder = make_builder(connector, "transfers")
        doc = builder.build("transfers", fetch_row(connector, "transfers", 9))

        related = [value for key, value in doc.items() if key.endswith("_accounts")]
        assert len(related) == 2
        assert all(value == {"id": 1, "owner": "alice"} for value in related)


class TestReverseRelationships:
    """One-to-many fan-out caps and reverse chaining."""

    def test_root_fanout_capped_at_100(self, fanout_connector):
        builder = make_builder(fanout_connector, "customers", follow_reverse=True)
        doc = builder.build("customers", fetch_row(fanout_connector, "customers", 1))

        assert len(doc["_orders_list"]) == 100
        assert doc["_orders_count"] == "100+"
        assert fanout_connector.queries_for("orders", "customer_id")[0].endswith("LIMIT 100")

    def test_small_list_has_no_count_marker(self, fanout_connector):
        builder = make_builder(fanout_connector, "customers", follow_reverse=True)
        doc = builder.build("customers", fetch_row(fanout_connector, "customers", 2))

        assert [order["id"] for order in doc["_orders_list"]] == [151, 152, 153]
        assert "_orders_count" not in doc

    def test_list_entries_reference_their_parent(self, fanout_connector):
        builder = make_builder(fanout_connector, "customers", follow_reverse=True)
        doc = builder.build("customers", fetch_row(fanout_connector, "customers", 2))

        for order in doc["_orders_list"]:
            assert order["customer_id"] == 2
            assert order["_customers"] == {"id": 2, "_ref": "customers"}

    def test_nested_fanout_capped_at_10(self, fanout_connector):
        builder = make_builder(fanout_connector, "orders", follow_reverse=True)
        doc = builder.build("orders", fetch_row(fanout_connector, "orders", 1))

        customer = doc["_customers"]
        assert customer["id"] == 1
        assert len(customer["_orders_list"]) == 10
        assert customer["_orders_count"] == "10+"
        # Depth 2 after a reverse hop is past the reverse depth cap
        assert all(is_reference(order) for order in customer["_orders_list"])

    def test_configured_fanout_limits(self, fanout_connector):
        config = ImportConfig(root_fanout_limit=5, nested_fanout_limit=2)
        builder = make_builder(fanout_connector, "customers", follow_reverse=True, config=config)
        doc = builder.build("customers", fetch_row(fanout_connector, "customers", 1))

        assert len(doc["_orders_list"]) == 5
        assert doc["_orders_count"] == "5+"

    def test_count_marker_pairs_with_its_own_list(self, make_connector):
        statements = [
            "CREATE TABLE accounts (id INTEGER PRIMARY KEY, owner TEXT)",
            "CREATE TABLE transfers (id INTEGER PRIMARY KEY, "
            "source_id INTEGER REFERENCES accounts(id), target_id INTEGER REFERENCES accounts(id))",
            "INSERT INTO accounts VALUES (1, 'alice')",
            "INSERT INTO accounts VALUES (2, 'bob')",
            "INSERT INTO transfers VALUES (1, 1, 2)",
        ]
        statements += [f"INSERT INTO transfers VALUES ({i}, 2, 1)" for i in range(2, 14)]
        connector = make_connector(statements)
        config = ImportConfig(root_fanout_limit=5)
        builder = make_builder(connector, "accounts", follow_reverse=True, config=config)
        doc = builder.build("accounts", fetch_row(connector, "accounts", 1))

        lists = {key: value for key, value in doc.items() if key.endswith("_transfers_list")}
        assert sorted(len(items) for items in lists.values()) == [1, 5]
        for key, items in lists.items():
            marker = key[:-len("_list")] + "_count"
            if len(items) == 5:
                assert doc[marker] == "5+"
            else:
                assert marker not in doc
        assert len([key for key in doc if key.endswith("_transfers_count")]) == 1

    def test_reverse_depth_capped_at_two(self, fanout_connector):
        builder = make_builder(fanout_connector, "orders", follow_reverse=True, max_depth=10)
        doc = builder.build("orders", fetch_row(fanout_connector, "orders", 151))

        assert builder.fanout_limit(0) == 100
        assert builder.fanout_limit(3) == 10
        # Reached through a reverse edge at depth 2: stubbed despite max_depth=10
        assert doc["_customers"]["_orders_list"] == [
            {"id": 151, "_ref": "orders"},
            {"id": 152, "_ref": "orders"},
            {"id": 153, "_ref": "orders"},
        ]

    def test_reverse_entries_expand_below_the_cap(self, fanout_connector):
        builder = make_builder(fanout_connector, "customers", follow_reverse=True, max_depth=10)
        doc = builder.build("customers", fetch_row(fanout_connector, "customers", 2))

        order = doc["_orders_list"][0]
        assert not is_reference(order)
        assert is_reference(order["_customers"])

    def test_reverse_entries_stubbed_when_max_depth_is_one(self, fanout_connector):
        builder = make_builder(fanout_connector, "customers", follow_reverse=True, max_depth=1)
        doc = builder.build("customers", fetch_row(fanout_connector, "customers", 2))

        assert doc["_orders_list"] == [
            {"id": 151, "_ref": "orders"},
            {"id": 152, "_ref": "orders"},
            {"id": 153, "_ref": "orders"},
        ]

    def test_reverse_never_chains_into_reverse(self, mutual_connector):
        builder = make_builder(mutual_connector, "departments", follow_reverse=True, max_depth=5)
        doc = builder.build("departments", fetch_row(mutual_connector, "departments", 1))

        staff = doc["_staff_list"]
        assert [member["id"] for member in staff] == [100, 101]
        for member in staff:
            assert "_departments_list" not in member
            assert member["_departments"] == {"id": 1, "_ref": "departments"}

        # Only the forward path through the head of department follows staff -> departments reversed
        assert len(mutual_connector.queries_for("departments", "head_id")) == 1
        head = doc["_staff"]
        assert head["_departments_list"] == [{"id": 1, "_ref": "departments"}]


class TestFailures:
    """Per-edge failures are skipped without aborting the record."""

    @pytest.fixture
    def order_statements(self):
        return [
            "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT)",
            "CREATE TABLE products (id INTEGER PRIMARY KEY, title TEXT)",
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, "
            "customer_id INTEGER REFERENCES customers(id), product_id INTEGER REFERENCES products(id))",
            "INSERT INTO customers VALUES (1, 'A')",
            "INSERT INTO products VALUES (7, 'widget')",
            "INSERT INTO orders VALUES (10, 1, 7)",
        ]

    def test_failed_edge_is_omitted(self, make_connector, order_statements):
        connector = make_connector(order_statements, fail_tables={"customers"})
        builder = make_builder(connector, "orders")
        doc = builder.build("orders", fetch_row(connector, "orders", 10))

        assert "_customers" not in doc
        assert doc["_products"] == {"id": 7, "title": "widget"}

    def test_unknown_referenced_column_is_skipped(self, make_connector):
        connector = make_connector([
            "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT)",
            "CREATE TABLE orders (id INTEGER PRIMARY KEY, "
            "customer_id INTEGER REFERENCES customers(id), legacy_ref INTEGER REFERENCES customers(missing))",
            "INSERT INTO customers VALUES (1, 'A')",
            "INSERT INTO orders VALUES (10, 1, 1)",
        ])
        builder = make_builder(connector, "orders")
        doc = builder.build("orders", fetch_row(connector, "orders", 10))

        assert doc["_customers"] == {"id": 1, "name": "A"}
        assert "__customers" not in doc
        assert connector.test_connection()
