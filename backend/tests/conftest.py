import os
import sys

# Add the parent directory (backend) to the Python path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

import pytest
import sqlite3
import tempfile
from fastapi.testclient import TestClient

from main import app
from fakes import InMemoryCatalog, col, fk, pk

SQLITE_DDL = [
    "CREATE TABLE customers (id INTEGER NOT NULL PRIMARY KEY, name TEXT NOT NULL, email TEXT)",
    """CREATE TABLE orders (
        id INTEGER NOT NULL PRIMARY KEY,
        customer_id INTEGER NOT NULL REFERENCES customers(id),
        status TEXT DEFAULT 'PENDING',
        total REAL
    )""",
    "CREATE VIEW order_summary AS SELECT id, customer_id FROM orders",
    """CREATE VIEW order_details AS
        SELECT o.id AS order_id, c.name AS customer_name, o.total * 1.2 AS gross
        FROM orders o JOIN customers c ON c.id = o.customer_id""",
    "CREATE VIEW recent_orders AS SELECT * FROM order_summary",
]


@pytest.fixture(scope="session")
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def temp_sqlite_db():
    fd, path = tempfile.mkstemp(suffix=".db")
    try:
        conn = sqlite3.connect(path)
        cur = conn.cursor()
        for stmt in SQLITE_DDL:
            cur.execute(stmt)
        conn.commit()
        conn.close()
        yield path
    finally:
        os.close(fd)
        os.remove(path)


@pytest.fixture
def orders_catalog():
    """public.customers, public.orders and a view selecting from orders."""
    catalog = InMemoryCatalog("public")
    catalog.add_table(
        "customers",
        [col("id", not_null=True), col("name", "text", not_null=True)],
        [pk("id", name="customers_pkey")],
    )
    catalog.add_table(
        "orders",
        [
            col("id", not_null=True, default="nextval('orders_id_seq'::regclass)"),
            col("customer_id", not_null=True, comment="Who placed it @type:CustomerId"),
            col("note", "character varying(200)"),
        ],
        [pk("id", name="orders_pkey"), fk("customer_id", "customers", "id", name="orders_customer_id_fkey")],
        comment="Customer orders",
    )
    catalog.add_view(
        "order_summary",
        " SELECT orders.id,\n    orders.customer_id\n   FROM orders;",
        [col("id"), col("customer_id")],
    )
    return catalog
