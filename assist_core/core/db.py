"""
SQLite storage for the collaborator-owned tables the assist core reads and
appends to: knowledge items, interaction outcomes, alerts and shipping zones.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator

from . import config


@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection, closed on every exit path."""
    conn = sqlite3.connect(db_path or config.DB_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db(db_path: str = None):
    """Initialize the database with required tables."""
    config.ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # Tenant-scoped knowledge corpus; embedding is optional JSON text
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS knowledge_items (
                id TEXT NOT NULL,
                tenant_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT DEFAULT '',
                embedding TEXT,
                embedding_mode TEXT,
                active BOOLEAN DEFAULT TRUE,
                price REAL,
                sale_price REAL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (tenant_id, id)
            )
        ''')

        # Append-only outcome log; corrections reference the record they supersede
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS interaction_outcomes (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id TEXT NOT NULL,
                intent TEXT,
                outcome TEXT NOT NULL DEFAULT 'unknown',
                metadata TEXT,
                corrects_id INTEGER,
                created_at TIMESTAMP NOT NULL
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS alerts (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id TEXT NOT NULL,
                title TEXT NOT NULL,
                message TEXT NOT NULL,
                metadata TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        cursor.execute('''
            CREATE TABLE IF NOT EXISTS shipping_zones (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tenant_id TEXT NOT NULL,
                name TEXT NOT NULL,
                locations TEXT NOT NULL,  -- comma separated place names
                price REAL NOT NULL,
                delivery_days TEXT,
                active BOOLEAN DEFAULT TRUE
            )
        ''')

        cursor.execute('CREATE INDEX IF NOT EXISTS idx_knowledge_tenant_active ON knowledge_items(tenant_id, active)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_outcomes_tenant_ts ON interaction_outcomes(tenant_id, created_at DESC)')
        cursor.execute('CREATE INDEX IF NOT EXISTS idx_shipping_tenant ON shipping_zones(tenant_id)')

        conn.commit()


def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            table_names = [row[0] for row in cursor.fetchall()]

            required_tables = ['knowledge_items', 'interaction_outcomes', 'alerts', 'shipping_zones']
            return all(table in table_names for table in required_tables)
    except sqlite3.Error:
        return False
