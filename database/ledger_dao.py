"""Sparse (category, month) ledger rows in ``budget_months``.

An all-zero row is never stored: ``upsert`` deletes the key instead. No
cross-month consistency is checked here.
"""
import sqlite3
from typing import Optional
from models.ledger_entry import LedgerEntry
from utils.date_helpers import today_str


class LedgerDAO:
    def _row_to_model(self, row) -> LedgerEntry:
        return LedgerEntry(
            id=row["id"],
            budget_id=row["budget_id"],
            category_id=row["category_id"],
            month=row["month"],
            assigned=row["assigned"],
            activity=row["activity"],
            available=row["available"],
        )

    def get(self, conn: sqlite3.Connection, category_id: int,
            month: str) -> Optional[LedgerEntry]:
        row = conn.execute(
            "SELECT * FROM budget_months WHERE category_id = ? AND month = ?",
            (category_id, month),
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_previous(self, conn: sqlite3.Connection, category_id: int,
                     month: str) -> Optional[LedgerEntry]:
        """Latest stored row strictly before month."""
        row = conn.execute(
            """SELECT * FROM budget_months
               WHERE category_id = ? AND month < ?
               ORDER BY month DESC LIMIT 1""",
            (category_id, month),
        ).fetchone()
        return self._row_to_model(row) if row else None

    def upsert(
        self,
        conn: sqlite3.Connection,
        budget_id: int,
        category_id: int,
        month: str,
        assigned: int,
        activity: int,
        available: int,
    ) -> Optional[LedgerEntry]:
        """Write the row, or delete it when all three amounts are zero. Returns the stored row."""
        entry = LedgerEntry(category_id=category_id, month=month, assigned=assigned,
                            activity=activity, available=available, budget_id=budget_id)
        if entry.is_ghost:
            self.delete(conn, category_id, month)
            return None
        conn.execute(
            """INSERT INTO budget_months(budget_id, category_id, month, assigned, activity, available)
               VALUES (?, ?, ?, ?, ?, ?)
               ON CONFLICT(category_id, month)
               DO UPDATE SET assigned  = excluded.assigned,
                             activity  = excluded.activity,
                             available = excluded.available""",
            (budget_id, category_id, month, assigned, activity, available),
        )
        return self.get(conn, category_id, month)

    def save(self, conn: sqlite3.Connection, entry: LedgerEntry) -> Optional[LedgerEntry]:
        return self.upsert(conn, entry.budget_id, entry.category_id, entry.month,
                           entry.assigned, entry.activity, entry.available)

    def delete(self, conn: sqlite3.Connection, category_id: int, month: str):
        conn.execute(
            "DELETE FROM budget_months WHERE category_id = ? AND month = ?",
            (category_id, month),
        )

    def list_month_range(
        self,
        conn: sqlite3.Connection,
        category_id: int,
        from_month: str,
        to_month: str | None = None,
    ) -> list[LedgerEntry]:
        """Stored rows with from_month <= month (<= to_month), ascending."""
        sql = "SELECT * FROM budget_months WHERE category_id = ? AND month >= ?"
        params: list = [category_id, from_month]
        if to_month:
            sql += " AND month <= ?"
            params.append(to_month)
        sql += " ORDER BY month ASC"
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_model(r) for r in rows]

    # ── Aggregates for Ready to Assign ────────────────────────────────────────

    def sum_assigned(
        self,
        conn: sqlite3.Connection,
        budget_id: int,
        from_month: str | None = None,
        to_month: str | None = None,
    ) -> int:
        """Total assigned to non-income categories over an inclusive month range."""
        sql = """SELECT COALESCE(SUM(bm.assigned), 0)
                 FROM budget_months bm
                 JOIN categories c       ON bm.category_id = c.id
                 JOIN category_groups g  ON c.category_group_id = g.id
                 WHERE bm.budget_id = ? AND g.is_income = 0"""
        params: list = [budget_id]
        if from_month:
            sql += " AND bm.month >= ?"
            params.append(from_month)
        if to_month:
            sql += " AND bm.month <= ?"
            params.append(to_month)
        return conn.execute(sql, params).fetchone()[0]

    def list_negative_available(
        self,
        conn: sqlite3.Connection,
        budget_id: int,
        from_month: str | None = None,
        to_month: str | None = None,
    ) -> list[tuple[int, Optional[int], int]]:
        """(available, linked_account_id, cash_spending) of every overspent non-income row.

        cash_spending is the row month's net outflow from non-credit accounts.
        """
        sql = """SELECT bm.available, c.linked_account_id,
                        (SELECT COALESCE(SUM(t.outflow - t.inflow), 0)
                         FROM transactions t
                         JOIN accounts a ON t.account_id = a.id
                         WHERE t.category_id = bm.category_id
                           AND a.type != 'credit'
                           AND strftime('%Y-%m', t.date) = bm.month
                           AND t.date <= ?) AS cash_spending
                 FROM budget_months bm
                 JOIN categories c       ON bm.category_id = c.id
                 JOIN category_groups g  ON c.category_group_id = g.id
                 WHERE bm.budget_id = ? AND g.is_income = 0 AND bm.available < 0"""
        params: list = [today_str(), budget_id]
        if from_month:
            sql += " AND bm.month >= ?"
            params.append(from_month)
        if to_month:
            sql += " AND bm.month <= ?"
            params.append(to_month)
        rows = conn.execute(sql, params).fetchall()
        return [(r["available"], r["linked_account_id"], r["cash_spending"]) for r in rows]
