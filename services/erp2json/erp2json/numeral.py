"""Helpers for parsing amounts printed by the ERP exports."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

__all__ = ["parse_amount", "is_amount", "parse_percent", "first_int", "money", "number_out"]

_NUMBER_PATTERN = re.compile(r"-?\d[\d,]*(?:\.\d+)?")
_INT_PATTERN = re.compile(r"\d+")
_PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)\s*%")

TWO_PLACES = Decimal("0.01")


def parse_amount(raw: Optional[str]) -> Optional[Decimal]:
    """Parse a printed amount such as '5,596.10', '(120.00)' or '฿ 80'.

    Returns None when the text carries no number. Thousands separators are
    commas and the decimal separator is a dot, as in every Thai ERP export.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not text:
        return None

    negative = text.startswith("(") and text.endswith(")")
    match = _NUMBER_PATTERN.search(text)
    if not match:
        return None
    token = match.group(0).replace(",", "")
    try:
        value = Decimal(token)
    except InvalidOperation:
        return None
    return -value if negative else value


def is_amount(raw: Optional[str]) -> bool:
    """True when the whole text is a single printed number."""
    if raw is None:
        return False
    text = raw.strip().strip("()")
    return bool(text) and _NUMBER_PATTERN.fullmatch(text) is not None


def parse_percent(raw: Optional[str]) -> Optional[Decimal]:
    """Return the number in front of a '%' sign, e.g. '7.00 %' -> 7.00."""
    if not raw:
        return None
    match = _PERCENT_PATTERN.search(raw)
    if not match:
        return None
    return Decimal(match.group(1))


def first_int(raw: Optional[str]) -> Optional[int]:
    if not raw:
        return None
    match = _INT_PATTERN.search(raw)
    if not match:
        return None
    return int(match.group(0))


def money(value: Optional[Decimal]) -> Optional[Decimal]:
    if value is None:
        return None
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def number_out(value: Optional[Decimal]) -> Optional[Union[int, float]]:
    """Emit int if integral, else float, for JSON output."""
    if value is None:
        return None
    if value == value.to_integral_value():
        return int(value)
    return float(value)
