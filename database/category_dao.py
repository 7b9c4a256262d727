import sqlite3
from typing import Optional
from models.category import Category, CategoryGroup


class CategoryDAO:
    def _group_to_model(self, row) -> CategoryGroup:
        return CategoryGroup(
            id=row["id"],
            budget_id=row["budget_id"],
            name=row["name"],
            sort_order=row["sort_order"],
            hidden=bool(row["hidden"]),
            is_income=bool(row["is_income"]),
        )

    def _row_to_model(self, row) -> Category:
        return Category(
            id=row["id"],
            category_group_id=row["category_group_id"],
            name=row["name"],
            sort_order=row["sort_order"],
            hidden=bool(row["hidden"]),
            linked_account_id=row["linked_account_id"],
            group_name=row["group_name"],
            is_income=bool(row["is_income"]),
            budget_id=row["budget_id"],
        )

    def _select(self) -> str:
        return """
            SELECT c.*,
                   g.name      AS group_name,
                   g.is_income AS is_income,
                   g.budget_id AS budget_id
            FROM categories c
            JOIN category_groups g ON c.category_group_id = g.id
        """

    # ── Groups ────────────────────────────────────────────────────────────────

    def get_groups(self, conn: sqlite3.Connection, budget_id: int) -> list[CategoryGroup]:
        rows = conn.execute(
            "SELECT * FROM category_groups WHERE budget_id = ? ORDER BY sort_order, id",
            (budget_id,),
        ).fetchall()
        return [self._group_to_model(r) for r in rows]

    def get_group(self, conn: sqlite3.Connection, group_id: int) -> Optional[CategoryGroup]:
        row = conn.execute(
            "SELECT * FROM category_groups WHERE id = ?", (group_id,)
        ).fetchone()
        return self._group_to_model(row) if row else None

    def get_group_by_name(self, conn: sqlite3.Connection, budget_id: int,
                          name: str) -> Optional[CategoryGroup]:
        row = conn.execute(
            "SELECT * FROM category_groups WHERE budget_id = ? AND name = ?",
            (budget_id, name),
        ).fetchone()
        return self._group_to_model(row) if row else None

    def create_group(self, conn: sqlite3.Connection, budget_id: int, name: str,
                     is_income: bool = False) -> CategoryGroup:
        next_order = conn.execute(
            "SELECT COALESCE(MAX(sort_order), 0) + 1 FROM category_groups WHERE budget_id = ?",
            (budget_id,),
        ).fetchone()[0]
        cursor = conn.execute(
            """INSERT INTO category_groups(budget_id, name, sort_order, is_income)
               VALUES (?, ?, ?, ?)""",
            (budget_id, name, next_order, int(is_income)),
        )
        return self.get_group(conn, cursor.lastrowid)

    def update_group(self, conn: sqlite3.Connection, group_id: int, name: str,
                     hidden: bool = False):
        conn.execute(
            "UPDATE category_groups SET name = ?, hidden = ? WHERE id = ?",
            (name, int(hidden), group_id),
        )

    # ── Categories ────────────────────────────────────────────────────────────

    def get_all(self, conn: sqlite3.Connection, budget_id: int,
                include_income: bool = True) -> list[Category]:
        sql = self._select() + " WHERE g.budget_id = ?"
        if not include_income:
            sql += " AND g.is_income = 0"
        sql += " ORDER BY g.sort_order, g.id, c.sort_order, c.id"
        rows = conn.execute(sql, (budget_id,)).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, conn: sqlite3.Connection, category_id: int) -> Optional[Category]:
        row = conn.execute(
            self._select() + " WHERE c.id = ?", (category_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_linked_account(self, conn: sqlite3.Connection,
                              account_id: int) -> Optional[Category]:
        row = conn.execute(
            self._select() + " WHERE c.linked_account_id = ?", (account_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_income_category(self, conn: sqlite3.Connection,
                            budget_id: int) -> Optional[Category]:
        row = conn.execute(
            self._select() + " WHERE g.budget_id = ? AND g.is_income = 1 ORDER BY c.id LIMIT 1",
            (budget_id,),
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(self, conn: sqlite3.Connection, group_id: int, name: str,
               linked_account_id: int | None = None) -> Category:
        next_order = conn.execute(
            "SELECT COALESCE(MAX(sort_order), 0) + 1 FROM categories WHERE category_group_id = ?",
            (group_id,),
        ).fetchone()[0]
        cursor = conn.execute(
            """INSERT INTO categories(category_group_id, name, sort_order, linked_account_id)
               VALUES (?, ?, ?, ?)""",
            (group_id, name, next_order, linked_account_id),
        )
        return self.get_by_id(conn, cursor.lastrowid)

    def update(self, conn: sqlite3.Connection, category_id: int, name: str,
               group_id: int, hidden: bool = False):
        conn.execute(
            "UPDATE categories SET name = ?, category_group_id = ?, hidden = ? WHERE id = ?",
            (name, group_id, int(hidden), category_id),
        )

    def set_sort_order(self, conn: sqlite3.Connection, category_id: int, sort_order: int):
        conn.execute(
            "UPDATE categories SET sort_order = ? WHERE id = ?", (sort_order, category_id)
        )
