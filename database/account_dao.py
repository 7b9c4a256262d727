import sqlite3
from typing import Optional
from models.account import Account


class AccountDAO:
    def _row_to_model(self, row) -> Account:
        return Account(
            id=row["id"],
            budget_id=row["budget_id"],
            name=row["name"],
            type=row["type"],
            balance=row["balance"],
            cleared_balance=row["cleared_balance"],
            uncleared_balance=row["uncleared_balance"],
            note=row["note"],
            closed=bool(row["closed"]),
            created_at=row["created_at"],
        )

    def get_all(self, conn: sqlite3.Connection, budget_id: int) -> list[Account]:
        rows = conn.execute(
            "SELECT * FROM accounts WHERE budget_id = ? ORDER BY name", (budget_id,)
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, conn: sqlite3.Connection, account_id: int) -> Optional[Account]:
        row = conn.execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_in_budget(self, conn: sqlite3.Connection, budget_id: int,
                      account_id: int) -> Optional[Account]:
        row = conn.execute(
            "SELECT * FROM accounts WHERE id = ? AND budget_id = ?",
            (account_id, budget_id),
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_credit_accounts(self, conn: sqlite3.Connection, budget_id: int) -> list[Account]:
        rows = conn.execute(
            "SELECT * FROM accounts WHERE budget_id = ? AND type = 'credit' ORDER BY id",
            (budget_id,),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def create(
        self,
        conn: sqlite3.Connection,
        budget_id: int,
        name: str,
        type_: str = "checking",
        note: str = "",
    ) -> Account:
        cursor = conn.execute(
            "INSERT INTO accounts(budget_id, name, type, note) VALUES (?, ?, ?, ?)",
            (budget_id, name, type_, note),
        )
        return self.get_by_id(conn, cursor.lastrowid)

    def update_balances(self, conn: sqlite3.Connection, account_id: int,
                        balance: int, cleared: int, uncleared: int):
        conn.execute(
            """UPDATE accounts
               SET balance = ?, cleared_balance = ?, uncleared_balance = ?
               WHERE id = ?""",
            (balance, cleared, uncleared, account_id),
        )

    def set_closed(self, conn: sqlite3.Connection, account_id: int, closed: bool):
        conn.execute(
            "UPDATE accounts SET closed = ? WHERE id = ?", (int(closed), account_id)
        )
