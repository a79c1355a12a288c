#!/usr/bin/env python3
"""
Create a local SQLite database with tables and layered views for Schemascope development.
Usage (from the repository root):
    python scripts/seed_demo_db.py
Creates: scripts/demo.db

Then extract it with:
    curl -X POST localhost:8000/api/extract -H 'Content-Type: application/json' \
         -d '{"connection": {"db_type": "sqlite", "service_name": "demo", "file_path": "'$PWD'/scripts/demo.db"}}'
"""
import sqlite3
from pathlib import Path

DB_PATH = Path(__file__).parent / "demo.db"

TABLES = [
    """
    CREATE TABLE IF NOT EXISTS customers (
        id          INTEGER NOT NULL PRIMARY KEY,
        name        TEXT    NOT NULL,
        email       TEXT    UNIQUE NOT NULL,
        country     TEXT
    )""",
    """
    CREATE TABLE IF NOT EXISTS products (
        id          INTEGER NOT NULL PRIMARY KEY,
        sku         TEXT    UNIQUE NOT NULL,
        name        TEXT    NOT NULL,
        price       NUMERIC(10, 2) NOT NULL
    )""",
    """
    CREATE TABLE IF NOT EXISTS orders (
        id              INTEGER NOT NULL PRIMARY KEY,
        customer_id     INTEGER NOT NULL REFERENCES customers(id) ON DELETE CASCADE,
        status          TEXT DEFAULT 'PENDING',
        ordered_at      TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )""",
    """
    CREATE TABLE IF NOT EXISTS order_items (
        order_id    INTEGER NOT NULL REFERENCES orders(id),
        line_no     INTEGER NOT NULL,
        product_id  INTEGER REFERENCES products(id),
        quantity    INTEGER NOT NULL,
        PRIMARY KEY (order_id, line_no)
    )""",
    """
    CREATE TABLE IF NOT EXISTS shipments (
        id          INTEGER NOT NULL PRIMARY KEY,
        order_id    INTEGER NOT NULL,
        line_no     INTEGER NOT NULL,
        FOREIGN KEY (order_id, line_no) REFERENCES order_items(order_id, line_no)
    )""",
]

VIEWS = [
    # plain projection
    "CREATE VIEW IF NOT EXISTS order_summary AS SELECT id, customer_id, status FROM orders",
    # join with aliases and an expression
    """
    CREATE VIEW IF NOT EXISTS order_lines AS
        SELECT o.id AS order_id, c.name AS customer_name, p.sku, i.quantity * p.price AS line_total
        FROM orders o
        JOIN customers c ON c.id = o.customer_id
        JOIN order_items i ON i.order_id = o.id
        JOIN products p ON p.id = i.product_id""",
    # view over a view
    "CREATE VIEW IF NOT EXISTS pending_orders AS SELECT * FROM order_summary WHERE status = 'PENDING'",
    # set operation: columns stay unresolved
    """
    CREATE VIEW IF NOT EXISTS contact_names AS
        SELECT name FROM customers UNION SELECT name FROM products""",
]


def seed():
    conn = sqlite3.connect(DB_PATH)
    cur = conn.cursor()
    for stmt in TABLES + VIEWS:
        cur.execute(stmt)
    conn.commit()
    conn.close()
    print(f"Demo database created: {DB_PATH}")
    print("   Tables: customers, products, orders, order_items, shipments")
    print("   Views:  order_summary, order_lines, pending_orders, contact_names")


if __name__ == "__main__":
    seed()
