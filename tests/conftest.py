import pytest

from database.db_manager import DatabaseManager
from database.ledger_dao import LedgerDAO
from main import build_services


@pytest.fixture
def db(tmp_path):
    manager = DatabaseManager(str(tmp_path / "test.db"))
    manager.initialize()
    yield manager
    manager.close()

@pytest.fixture
def svc(db):
    return build_services(db)

@pytest.fixture
def budget(svc):
    return svc.budgets.create_budget("Household")

@pytest.fixture
def cats(svc, budget):
    """Three spending categories in one group: groceries, rent, fun."""
    group = svc.categories.create_group(budget.id, "Monthly")
    return [
        svc.categories.create_category(budget.id, group.id, name)
        for name in ("Groceries", "Rent", "Fun")
    ]

@pytest.fixture
def checking(svc, budget):
    return svc.accounts.create_account(budget.id, "Checking", "checking")

@pytest.fixture
def credit(svc, budget):
    return svc.accounts.create_account(budget.id, "Visa", "credit")

@pytest.fixture
def ledger(db):
    """ledger(category_id, month) -> stored LedgerEntry or None."""
    dao = LedgerDAO()

    def _get(category_id, month):
        return dao.get(db.get_connection(), category_id, month)

    return _get
