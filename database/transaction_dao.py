import sqlite3
from typing import Optional
from models.transaction import Transaction, Transfer
from utils.date_helpers import today_str


class TransactionDAO:
    def _row_to_model(self, row) -> Transaction:
        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            date=row["date"],
            payee=row["payee"],
            category_id=row["category_id"],
            memo=row["memo"],
            outflow=row["outflow"],
            inflow=row["inflow"],
            cleared=row["cleared"],
            flag=row["flag"],
            transfer_id=row["transfer_id"],
            account_name=row["account_name"],
            category_name=row["category_name"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _select(self) -> str:
        return """
            SELECT t.*,
                   a.name                AS account_name,
                   COALESCE(c.name, '')  AS category_name,
                   tr.id                 AS transfer_id
            FROM transactions t
            JOIN accounts a        ON t.account_id = a.id
            LEFT JOIN categories c ON t.category_id = c.id
            LEFT JOIN transfers tr ON tr.from_transaction_id = t.id
                                   OR tr.to_transaction_id = t.id
        """

    def get_by_id(self, conn: sqlite3.Connection, tx_id: int) -> Optional[Transaction]:
        row = conn.execute(
            self._select() + " WHERE t.id = ?", (tx_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_in_budget(self, conn: sqlite3.Connection, budget_id: int,
                      tx_id: int) -> Optional[Transaction]:
        row = conn.execute(
            self._select() + " WHERE t.id = ? AND a.budget_id = ?", (tx_id, budget_id)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_account(
        self,
        conn: sqlite3.Connection,
        account_id: int,
        month: str | None = None,
        cleared: str | None = None,
    ) -> list[Transaction]:
        sql = self._select() + " WHERE t.account_id = ?"
        params: list = [account_id]
        if month:
            sql += " AND strftime('%Y-%m', t.date) = ?"
            params.append(month)
        if cleared:
            sql += " AND t.cleared = ?"
            params.append(cleared)
        sql += " ORDER BY t.date ASC, t.id ASC"
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_model(r) for r in rows]

    def create(
        self,
        conn: sqlite3.Connection,
        account_id: int,
        date: str,
        payee: str = "",
        category_id: int | None = None,
        memo: str = "",
        outflow: int = 0,
        inflow: int = 0,
        cleared: str = "Uncleared",
        flag: str | None = None,
    ) -> int:
        cursor = conn.execute(
            """INSERT INTO transactions
               (account_id, date, payee, category_id, memo, outflow, inflow, cleared, flag)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (account_id, date, payee, category_id, memo, outflow, inflow, cleared, flag),
        )
        return cursor.lastrowid

    def update(self, conn: sqlite3.Connection, tx: Transaction):
        conn.execute(
            """UPDATE transactions
               SET account_id = ?, date = ?, payee = ?, category_id = ?, memo = ?,
                   outflow = ?, inflow = ?, cleared = ?, flag = ?,
                   updated_at = datetime('now')
               WHERE id = ?""",
            (tx.account_id, tx.date, tx.payee, tx.category_id, tx.memo,
             tx.outflow, tx.inflow, tx.cleared, tx.flag, tx.id),
        )

    def set_cleared(self, conn: sqlite3.Connection, tx_id: int, cleared: str):
        conn.execute(
            "UPDATE transactions SET cleared = ?, updated_at = datetime('now') WHERE id = ?",
            (cleared, tx_id),
        )

    def delete(self, conn: sqlite3.Connection, tx_id: int):
        conn.execute("DELETE FROM transactions WHERE id = ?", (tx_id,))

    # ── Transfers ─────────────────────────────────────────────────────────────

    def _transfer_to_model(self, row) -> Transfer:
        return Transfer(
            id=row["id"],
            from_transaction_id=row["from_transaction_id"],
            to_transaction_id=row["to_transaction_id"],
            from_account_id=row["from_account_id"],
            to_account_id=row["to_account_id"],
        )

    def _select_transfer(self) -> str:
        return """
            SELECT tr.*,
                   f.account_id AS from_account_id,
                   t.account_id AS to_account_id
            FROM transfers tr
            JOIN transactions f ON tr.from_transaction_id = f.id
            JOIN transactions t ON tr.to_transaction_id = t.id
        """

    def create_transfer(self, conn: sqlite3.Connection, from_tx_id: int,
                        to_tx_id: int) -> Transfer:
        cursor = conn.execute(
            "INSERT INTO transfers(from_transaction_id, to_transaction_id) VALUES (?, ?)",
            (from_tx_id, to_tx_id),
        )
        return self.get_transfer(conn, cursor.lastrowid)

    def get_transfer(self, conn: sqlite3.Connection, transfer_id: int) -> Optional[Transfer]:
        row = conn.execute(
            self._select_transfer() + " WHERE tr.id = ?", (transfer_id,)
        ).fetchone()
        return self._transfer_to_model(row) if row else None

    def delete_transfer(self, conn: sqlite3.Connection, transfer: Transfer):
        conn.execute("DELETE FROM transfers WHERE id = ?", (transfer.id,))
        conn.execute(
            "DELETE FROM transactions WHERE id IN (?, ?)",
            (transfer.from_transaction_id, transfer.to_transaction_id),
        )

    # ── Aggregates (future-dated rows excluded) ──────────────────────────────

    def get_account_totals(self, conn: sqlite3.Connection, account_id: int) -> dict:
        """Signed balance split by cleared state. Cleared includes Reconciled."""
        row = conn.execute(
            """SELECT
                   COALESCE(SUM(inflow - outflow), 0) AS balance,
                   COALESCE(SUM(CASE WHEN cleared IN ('Cleared', 'Reconciled')
                                     THEN inflow - outflow ELSE 0 END), 0) AS cleared,
                   COALESCE(SUM(CASE WHEN cleared = 'Reconciled'
                                     THEN inflow - outflow ELSE 0 END), 0) AS reconciled,
                   COALESCE(SUM(CASE WHEN cleared = 'Cleared'
                                     THEN inflow - outflow ELSE 0 END), 0) AS pending_cleared,
                   COALESCE(SUM(CASE WHEN cleared = 'Cleared' THEN 1 ELSE 0 END), 0)
                       AS pending_cleared_count
               FROM transactions
               WHERE account_id = ? AND date <= ?""",
            (account_id, today_str()),
        ).fetchone()
        return dict(row)

    def reconcile_cleared(self, conn: sqlite3.Connection, account_id: int) -> int:
        """Lock every Cleared row on the account. Returns the count locked."""
        cursor = conn.execute(
            """UPDATE transactions
               SET cleared = 'Reconciled', updated_at = datetime('now')
               WHERE account_id = ? AND cleared = 'Cleared' AND date <= ?""",
            (account_id, today_str()),
        )
        return cursor.rowcount

    def get_activity_by_category(self, conn: sqlite3.Connection, budget_id: int,
                                 month: str) -> dict[int, int]:
        """category_id -> inflow - outflow for the month, budget accounts only."""
        rows = conn.execute(
            """SELECT t.category_id, SUM(t.inflow - t.outflow) AS net
               FROM transactions t
               JOIN accounts a ON t.account_id = a.id
               WHERE a.budget_id = ?
                 AND a.type != 'tracking'
                 AND t.category_id IS NOT NULL
                 AND strftime('%Y-%m', t.date) = ?
                 AND t.date <= ?
               GROUP BY t.category_id""",
            (budget_id, month, today_str()),
        ).fetchall()
        return {r["category_id"]: r["net"] for r in rows}

    def get_cash_spending(self, conn: sqlite3.Connection, budget_id: int,
                          month: str) -> dict[int, int]:
        """category_id -> outflow - inflow from non-credit accounts for the month."""
        rows = conn.execute(
            """SELECT t.category_id, SUM(t.outflow - t.inflow) AS net
               FROM transactions t
               JOIN accounts a ON t.account_id = a.id
               WHERE a.budget_id = ?
                 AND a.type != 'credit'
                 AND t.category_id IS NOT NULL
                 AND strftime('%Y-%m', t.date) = ?
                 AND t.date <= ?
               GROUP BY t.category_id""",
            (budget_id, month, today_str()),
        ).fetchall()
        return {r["category_id"]: r["net"] for r in rows}

    def sum_income(
        self,
        conn: sqlite3.Connection,
        budget_id: int,
        from_month: str | None = None,
        to_month: str | None = None,
    ) -> int:
        """Net inflow categorised to the income group over an inclusive month range."""
        sql = """SELECT COALESCE(SUM(t.inflow - t.outflow), 0)
                 FROM transactions t
                 JOIN accounts a         ON t.account_id = a.id
                 JOIN categories c       ON t.category_id = c.id
                 JOIN category_groups g  ON c.category_group_id = g.id
                 WHERE a.budget_id = ?
                   AND a.type != 'tracking'
                   AND g.is_income = 1
                   AND t.date <= ?"""
        params: list = [budget_id, today_str()]
        if from_month:
            sql += " AND strftime('%Y-%m', t.date) >= ?"
            params.append(from_month)
        if to_month:
            sql += " AND strftime('%Y-%m', t.date) <= ?"
            params.append(to_month)
        return conn.execute(sql, params).fetchone()[0]

    def get_card_spending(self, conn: sqlite3.Connection, account_id: int, month: str,
                          card_category_id: int) -> list[tuple[int, int]]:
        """(category_id, outflow - inflow) per spending category on a card for the month."""
        rows = conn.execute(
            """SELECT t.category_id, SUM(t.outflow - t.inflow) AS net
               FROM transactions t
               JOIN categories c       ON t.category_id = c.id
               JOIN category_groups g  ON c.category_group_id = g.id
               WHERE t.account_id = ?
                 AND t.category_id != ?
                 AND g.is_income = 0
                 AND strftime('%Y-%m', t.date) = ?
                 AND t.date <= ?
               GROUP BY t.category_id""",
            (account_id, card_category_id, month, today_str()),
        ).fetchall()
        return [(r["category_id"], r["net"]) for r in rows]

    def sum_card_payments(self, conn: sqlite3.Connection, account_id: int, month: str) -> int:
        """Uncategorised inflows on a card for the month."""
        return conn.execute(
            """SELECT COALESCE(SUM(inflow), 0)
               FROM transactions
               WHERE account_id = ?
                 AND category_id IS NULL
                 AND inflow > 0
                 AND strftime('%Y-%m', date) = ?
                 AND date <= ?""",
            (account_id, month, today_str()),
        ).fetchone()[0]
