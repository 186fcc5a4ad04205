# Overview: Money rounding and display formatting.

from __future__ import annotations

DEFAULT_CURRENCY_SYMBOL = "GHS"


def round_money(value) -> float:
    """Round to 2 decimal places; None counts as 0."""
    if value is None:
        return 0.0
    return round(float(value), 2) + 0.0


def format_currency(amount, symbol: str = DEFAULT_CURRENCY_SYMBOL) -> str:
    """format_currency(1234.5) -> 'GHS 1,234.50'"""
    return f"{symbol} {round_money(amount):,.2f}"
