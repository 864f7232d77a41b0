from decimal import Decimal, InvalidOperation
from urllib.parse import quote

CASHAPP_BASE_URL = "https://cash.app"


def normalize_tag(tag: str) -> str:
    return tag.strip().lstrip("$")


def format_amount(amount) -> str:
    """Cash App wants plain decimals: 29.99, 30 (no trailing .00)."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {amount!r}")
    if value <= 0:
        raise ValueError("Amount must be positive")
    value = value.quantize(Decimal("0.01"))
    if value == value.to_integral_value():
        return str(value.to_integral_value())
    return str(value)


def build_payment_link(tag: str, amount) -> str:
    """https://cash.app/$<tag>/<amount>"""
    return f"{CASHAPP_BASE_URL}/${quote(normalize_tag(tag))}/{format_amount(amount)}"
