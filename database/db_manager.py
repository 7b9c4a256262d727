import os
import sqlite3
from contextlib import contextmanager
from typing import Iterator

import structlog

from utils.constants import DB_FILE, DEFAULT_SETTINGS

log = structlog.get_logger(__name__)


class DatabaseManager:
    """Owns the sqlite3 connection, the schema and the unit of work.

    The connection runs in autocommit mode; every compound write goes through
    ``transaction()``, which is the only place that commits or rolls back.
    """

    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_FILE
        self._conn: sqlite3.Connection | None = None
        self._depth = 0

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(
                self.db_path, check_same_thread=False, isolation_level=None
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Unit of work. Nested calls become savepoints of the outer one."""
        conn = self.get_connection()
        savepoint = f"uow_{self._depth}"
        if self._depth == 0:
            conn.execute("BEGIN IMMEDIATE")
        else:
            conn.execute(f"SAVEPOINT {savepoint}")
        self._depth += 1
        try:
            yield conn
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                conn.execute("ROLLBACK")
            else:
                conn.execute(f"ROLLBACK TO SAVEPOINT {savepoint}")
                conn.execute(f"RELEASE SAVEPOINT {savepoint}")
            raise
        self._depth -= 1
        if self._depth == 0:
            conn.execute("COMMIT")
        else:
            conn.execute(f"RELEASE SAVEPOINT {savepoint}")

    def initialize(self):
        """Create schema and seed defaults."""
        with self.transaction() as conn:
            self._create_schema(conn)
            self._seed_defaults(conn)
        log.debug("database_initialized", path=self.db_path)

    def _create_schema(self, conn: sqlite3.Connection):
        # executescript() would commit the open unit of work, so run one statement at a time
        for statement in _SCHEMA.split(";"):
            if statement.strip():
                conn.execute(statement)

    def _seed_defaults(self, conn: sqlite3.Connection):
        for key, value in DEFAULT_SETTINGS:
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        with self.transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    @staticmethod
    def open(db_folder: str | None = None) -> "DatabaseManager":
        """Startup factory: opens (creating if needed) the database in db_folder or CWD."""
        if db_folder:
            os.makedirs(db_folder, exist_ok=True)
            path = os.path.join(db_folder, DB_FILE)
        else:
            path = DB_FILE
        db = DatabaseManager(path)
        db.initialize()
        return db

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None


_SCHEMA = """
    CREATE TABLE IF NOT EXISTS budgets (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        name            TEXT    NOT NULL,
        currency_symbol TEXT    NOT NULL DEFAULT '$',
        created_at      TEXT    NOT NULL DEFAULT (datetime('now'))
    );

    CREATE TABLE IF NOT EXISTS accounts (
        id                INTEGER PRIMARY KEY AUTOINCREMENT,
        budget_id         INTEGER NOT NULL REFERENCES budgets(id) ON DELETE CASCADE,
        name              TEXT    NOT NULL,
        type              TEXT    NOT NULL DEFAULT 'checking'
                          CHECK(type IN ('checking','savings','cash','credit','tracking')),
        balance           INTEGER NOT NULL DEFAULT 0,
        cleared_balance   INTEGER NOT NULL DEFAULT 0,
        uncleared_balance INTEGER NOT NULL DEFAULT 0,
        note              TEXT    NOT NULL DEFAULT '',
        closed            INTEGER NOT NULL DEFAULT 0,
        created_at        TEXT    NOT NULL DEFAULT (datetime('now')),
        UNIQUE(budget_id, name)
    );

    CREATE TABLE IF NOT EXISTS category_groups (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        budget_id  INTEGER NOT NULL REFERENCES budgets(id) ON DELETE CASCADE,
        name       TEXT    NOT NULL,
        sort_order INTEGER NOT NULL DEFAULT 0,
        hidden     INTEGER NOT NULL DEFAULT 0,
        is_income  INTEGER NOT NULL DEFAULT 0
    );

    CREATE TABLE IF NOT EXISTS categories (
        id                INTEGER PRIMARY KEY AUTOINCREMENT,
        category_group_id INTEGER NOT NULL REFERENCES category_groups(id) ON DELETE CASCADE,
        name              TEXT    NOT NULL,
        sort_order        INTEGER NOT NULL DEFAULT 0,
        hidden            INTEGER NOT NULL DEFAULT 0,
        linked_account_id INTEGER REFERENCES accounts(id) ON DELETE SET NULL
    );

    CREATE TABLE IF NOT EXISTS budget_months (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        budget_id   INTEGER NOT NULL REFERENCES budgets(id) ON DELETE CASCADE,
        category_id INTEGER NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
        month       TEXT    NOT NULL,
        assigned    INTEGER NOT NULL DEFAULT 0,
        activity    INTEGER NOT NULL DEFAULT 0,
        available   INTEGER NOT NULL DEFAULT 0,
        UNIQUE(category_id, month)
    );

    CREATE TABLE IF NOT EXISTS transactions (
        id          INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id  INTEGER NOT NULL REFERENCES accounts(id) ON DELETE CASCADE,
        date        TEXT    NOT NULL,
        payee       TEXT    NOT NULL DEFAULT '',
        category_id INTEGER REFERENCES categories(id) ON DELETE SET NULL,
        memo        TEXT    NOT NULL DEFAULT '',
        outflow     INTEGER NOT NULL DEFAULT 0 CHECK(outflow >= 0),
        inflow      INTEGER NOT NULL DEFAULT 0 CHECK(inflow >= 0),
        cleared     TEXT    NOT NULL DEFAULT 'Uncleared'
                    CHECK(cleared IN ('Uncleared','Cleared','Reconciled')),
        flag        TEXT,
        created_at  TEXT    NOT NULL DEFAULT (datetime('now')),
        updated_at  TEXT    NOT NULL DEFAULT (datetime('now'))
    );

    CREATE TABLE IF NOT EXISTS transfers (
        id                  INTEGER PRIMARY KEY AUTOINCREMENT,
        from_transaction_id INTEGER NOT NULL REFERENCES transactions(id) ON DELETE CASCADE,
        to_transaction_id   INTEGER NOT NULL REFERENCES transactions(id) ON DELETE CASCADE
    );

    CREATE TABLE IF NOT EXISTS app_settings (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL
    );

    CREATE INDEX IF NOT EXISTS idx_transactions_account_id  ON transactions(account_id);
    CREATE INDEX IF NOT EXISTS idx_transactions_date        ON transactions(date);
    CREATE INDEX IF NOT EXISTS idx_transactions_category_id ON transactions(category_id);
    CREATE INDEX IF NOT EXISTS idx_budget_months_month      ON budget_months(budget_id, month);
    CREATE INDEX IF NOT EXISTS idx_transfers_from           ON transfers(from_transaction_id);
    CREATE INDEX IF NOT EXISTS idx_transfers_to             ON transfers(to_transaction_id)
"""
