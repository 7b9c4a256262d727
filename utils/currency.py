from engine.milliunits import from_milliunits


def format_currency(amount: int, symbol: str = "$") -> str:
    """Format a milliunit amount as a currency string, e.g. '$1,234.56'."""
    value = from_milliunits(amount)
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"
