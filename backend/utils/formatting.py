"""Display formatting for holdings amounts and fiat values.

Mirrors the locale formatting the web client uses: up to six fraction
digits, at least two for values below one, thousands separators.
"""

import math
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Any

_CURRENCY_SYMBOLS = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
}


def _to_finite_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return float(value)
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric if math.isfinite(numeric) else None


def format_number(
    value: Any,
    min_fraction_digits: int | None = None,
    max_fraction_digits: int = 6,
) -> str:
    """Format a number for display.

    Non-numeric and non-finite values format as ``"0"``.

    Examples:
        >>> format_number(1.5)
        '1.5'
        >>> format_number(0.5)
        '0.50'
        >>> format_number(1234567.1234567)
        '1,234,567.123457'
    """
    numeric = _to_finite_float(value)
    if numeric is None:
        return "0"
    if min_fraction_digits is None:
        min_fraction_digits = 2 if numeric < 1 else 0
    max_fraction_digits = max(max_fraction_digits, min_fraction_digits)

    quantum = Decimal(1).scaleb(-max_fraction_digits)
    with localcontext() as ctx:
        # Enough precision for any finite float at six fraction digits
        ctx.prec = 400
        rounded = Decimal(repr(numeric)).quantize(quantum, rounding=ROUND_HALF_UP)
    fraction = f"{rounded:f}".partition(".")[2].rstrip("0")
    digits = max(len(fraction), min_fraction_digits)
    text = f"{rounded:,.{digits}f}"
    # Avoid "-0" after rounding tiny negatives
    if text.startswith("-") and Decimal(text.replace(",", "")) == 0:
        text = text[1:]
    return text


def format_fiat(value: Any, currency: str | None = None) -> str:
    """Format a fiat value with two fraction digits and a currency marker."""
    code = (currency or "USD").upper()
    amount = format_number(value, min_fraction_digits=2, max_fraction_digits=2)
    if amount == "0":
        amount = "0.00"
    symbol = _CURRENCY_SYMBOLS.get(code)
    negative = amount.startswith("-")
    digits = amount.lstrip("-")
    if symbol:
        formatted = f"{symbol}{digits}"
    else:
        formatted = f"{code} {digits}"
    return f"-{formatted}" if negative else formatted
