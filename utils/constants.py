APP_NAME = "ZBBudget"
DB_FILE = "zbbudget.db"
DATE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"

# ── Money ─────────────────────────────────────────────────────────────────────
MILLIUNIT_FACTOR = 1000
# Largest integer a float (and a JSON client) can hold without losing precision.
MAX_SAFE_MILLIUNITS = 2**53 - 1
# 100 billion currency units
MAX_ASSIGNED_VALUE = 100_000_000_000_000
# 0.01 currency units
RECONCILIATION_TOLERANCE = 10

# ── Accounts ──────────────────────────────────────────────────────────────────
ACCOUNT_TYPES = ("checking", "savings", "cash", "credit", "tracking")
CREDIT_ACCOUNT_TYPES = ("credit",)
OFF_BUDGET_ACCOUNT_TYPES = ("tracking",)

ACCOUNT_TYPE_LABELS = {
    "checking": "Checking",
    "savings": "Savings",
    "cash": "Cash",
    "credit": "Credit Card",
    "tracking": "Tracking",
}

# ── Transactions ──────────────────────────────────────────────────────────────
CLEARED_STATES = ("Uncleared", "Cleared", "Reconciled")
STARTING_BALANCE_PAYEE = "Starting Balance"
TRANSFER_PAYEE_PREFIX = "Transfer : "

# ── Categories ────────────────────────────────────────────────────────────────
INCOME_GROUP_NAME = "Inflow"
INCOME_CATEGORY_NAME = "Ready to Assign"
CREDIT_CARD_GROUP_NAME = "Credit Card Payments"

DEFAULT_SETTINGS = [
    ("currency_symbol", "$"),
    ("date_format", "YYYY-MM-DD"),
]
