import sqlite3

import structlog

from database.category_dao import CategoryDAO
from database.db_manager import DatabaseManager
from engine.errors import DomainError, NotFoundError
from models.account import Account
from models.category import Category, CategoryGroup
from utils.constants import CREDIT_CARD_GROUP_NAME

log = structlog.get_logger(__name__)


class CategoryService:
    def __init__(self, db: DatabaseManager, category_dao: CategoryDAO):
        self._db = db
        self._dao = category_dao

    def get_groups(self, budget_id: int) -> list[CategoryGroup]:
        return self._dao.get_groups(self._db.get_connection(), budget_id)

    def get_all(self, budget_id: int, include_income: bool = True) -> list[Category]:
        return self._dao.get_all(self._db.get_connection(), budget_id, include_income)

    def get_income_category(self, budget_id: int) -> Category:
        category = self._dao.get_income_category(self._db.get_connection(), budget_id)
        if category is None:
            raise NotFoundError("Income category for budget", budget_id)
        return category

    def create_group(self, budget_id: int, name: str) -> CategoryGroup:
        name = self._clean_name(name)
        with self._db.transaction() as conn:
            if self._dao.get_group_by_name(conn, budget_id, name):
                raise DomainError(f"A category group named '{name}' already exists.")
            group = self._dao.create_group(conn, budget_id, name)
        log.info("category_group_created", budget_id=budget_id, group_id=group.id)
        return group

    def update_group(self, budget_id: int, group_id: int, name: str,
                     hidden: bool = False) -> CategoryGroup:
        name = self._clean_name(name)
        with self._db.transaction() as conn:
            group = self._require_group(conn, budget_id, group_id)
            if group.is_income:
                raise DomainError("The income group cannot be changed.")
            self._dao.update_group(conn, group_id, name, hidden)
            return self._dao.get_group(conn, group_id)

    def create_category(self, budget_id: int, group_id: int, name: str) -> Category:
        name = self._clean_name(name)
        with self._db.transaction() as conn:
            group = self._require_group(conn, budget_id, group_id)
            if group.is_income:
                raise DomainError("Categories cannot be added to the income group.")
            category = self._dao.create(conn, group_id, name)
        log.info("category_created", budget_id=budget_id, category_id=category.id)
        return category

    def update_category(self, budget_id: int, category_id: int, name: str,
                        group_id: int | None = None, hidden: bool = False) -> Category:
        name = self._clean_name(name)
        with self._db.transaction() as conn:
            category = self._dao.get_by_id(conn, category_id)
            if category is None or category.budget_id != budget_id:
                raise NotFoundError("Category", category_id)
            if category.is_income:
                raise DomainError("The income category cannot be changed.")
            target_group = self._require_group(conn, budget_id, group_id or category.category_group_id)
            if target_group.is_income:
                raise DomainError("Categories cannot be moved into the income group.")
            self._dao.update(conn, category_id, name, target_group.id, hidden)
            return self._dao.get_by_id(conn, category_id)

    def reorder_categories(self, budget_id: int, category_ids: list[int]):
        """Persist sort order within groups from an ordered list of ids."""
        with self._db.transaction() as conn:
            for order, category_id in enumerate(category_ids, start=1):
                category = self._dao.get_by_id(conn, category_id)
                if category is None or category.budget_id != budget_id:
                    raise NotFoundError("Category", category_id)
                self._dao.set_sort_order(conn, category_id, order)

    def ensure_card_payment_category(self, conn: sqlite3.Connection, budget_id: int,
                                     account: Account) -> Category:
        """Payment category for a credit account, creating it (and its group) on first use."""
        existing = self._dao.get_by_linked_account(conn, account.id)
        if existing:
            return existing
        group = self._dao.get_group_by_name(conn, budget_id, CREDIT_CARD_GROUP_NAME)
        if group is None:
            group = self._dao.create_group(conn, budget_id, CREDIT_CARD_GROUP_NAME)
        return self._dao.create(conn, group.id, account.name, linked_account_id=account.id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _require_group(self, conn: sqlite3.Connection, budget_id: int,
                       group_id: int) -> CategoryGroup:
        group = self._dao.get_group(conn, group_id)
        if group is None or group.budget_id != budget_id:
            raise NotFoundError("Category group", group_id)
        return group

    @staticmethod
    def _clean_name(name: str) -> str:
        name = (name or "").strip()
        if not name:
            raise DomainError("Name cannot be empty.")
        return name
