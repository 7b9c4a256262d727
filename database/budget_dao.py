import sqlite3
from typing import Optional
from models.budget import Budget


class BudgetDAO:
    def _row_to_model(self, row) -> Budget:
        return Budget(
            id=row["id"],
            name=row["name"],
            currency_symbol=row["currency_symbol"],
            created_at=row["created_at"],
        )

    def get_all(self, conn: sqlite3.Connection) -> list[Budget]:
        rows = conn.execute("SELECT * FROM budgets ORDER BY name").fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, conn: sqlite3.Connection, budget_id: int) -> Optional[Budget]:
        row = conn.execute(
            "SELECT * FROM budgets WHERE id = ?", (budget_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(self, conn: sqlite3.Connection, name: str, currency_symbol: str = "$") -> Budget:
        cursor = conn.execute(
            "INSERT INTO budgets(name, currency_symbol) VALUES (?, ?)",
            (name, currency_symbol),
        )
        return self.get_by_id(conn, cursor.lastrowid)
