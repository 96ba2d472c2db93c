# Overview: Display formatting for amounts in notifications and CLI output.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

# (symbol, placed after the number)
CURRENCY_SYMBOLS = {
    "USD": ("$", False),
    "EUR": ("€", False),
    "GBP": ("£", False),
    "SEK": ("kr", True),
    "NOK": ("kr", True),
    "DKK": ("kr", True),
}


def format_currency(amount: float | None, currency: str = "USD") -> str:
    """
    Whole-unit currency string: 12.5 -> "$13", 1234 SEK -> "1,234 kr".

    None renders as "-". Unknown currency codes are appended as the code.
    """
    if amount is None:
        return "-"

    rounded = int(Decimal(repr(abs(float(amount)))).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    sign = "-" if amount < 0 and rounded else ""
    number = f"{rounded:,}"

    symbol, suffix = CURRENCY_SYMBOLS.get((currency or "").upper(), (currency, True))
    if suffix:
        return f"{sign}{number} {symbol}"
    return f"{sign}{symbol}{number}"
