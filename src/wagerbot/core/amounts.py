"""Parse and format human-entered currency amounts such as ``"500K"``."""

from __future__ import annotations

import re
from decimal import ROUND_DOWN, ROUND_FLOOR, Decimal, InvalidOperation
from typing import Dict, Tuple, Union

from .errors import MalformedAmount

SUFFIXES: Dict[str, int] = {
    "K": 1_000,
    "M": 1_000_000,
    "B": 1_000_000_000,
}

# Largest first so formatting picks the biggest applicable tier
_FORMAT_TIERS: Tuple[Tuple[str, int], ...] = tuple(
    sorted(SUFFIXES.items(), key=lambda item: item[1], reverse=True)
)

AMOUNT_PATTERN = re.compile(r"^(?P<number>\d+(?:\.\d*)?|\.\d+)(?P<suffix>[kmb])?$", re.IGNORECASE)
_TWO_PLACES = Decimal("0.01")


def parse_amount(text: Union[str, int]) -> int:
    """Parse a magnitude string into an integer, truncating toward zero.

    >>> parse_amount("500K")
    500000
    >>> parse_amount("2.5m")
    2500000
    >>> parse_amount("1,250")
    1250
    """
    if isinstance(text, bool):
        raise MalformedAmount(str(text))
    if isinstance(text, int):
        if text < 0:
            raise MalformedAmount(str(text))
        return text

    cleaned = str(text).strip().replace(",", "").replace("_", "").replace(" ", "")
    match = AMOUNT_PATTERN.match(cleaned)
    if not match:
        raise MalformedAmount(str(text))

    try:
        number = Decimal(match.group("number"))
    except InvalidOperation as exc:  # pragma: no cover - regex already guards this
        raise MalformedAmount(str(text)) from exc

    suffix = match.group("suffix")
    if suffix:
        number *= SUFFIXES[suffix.upper()]
    return int(number.to_integral_value(rounding=ROUND_DOWN))


def format_amount(value: int) -> str:
    """Render an integer with the largest applicable suffix.

    >>> format_amount(500000)
    '500.00K'
    >>> format_amount(2_000_000_000)
    '2.00B'
    >>> format_amount(999)
    '999'
    """
    sign = "-" if value < 0 else ""
    magnitude = abs(int(value))
    for suffix, factor in _FORMAT_TIERS:
        if magnitude >= factor:
            scaled = (Decimal(magnitude) / factor).quantize(_TWO_PLACES, rounding=ROUND_DOWN)
            return f"{sign}{scaled}{suffix}"
    return f"{sign}{magnitude}"


def apply_multiplier(bet: int, multiplier: float) -> int:
    """Return ``floor(bet * multiplier)`` without float rounding drift."""
    return int((Decimal(bet) * Decimal(str(multiplier))).to_integral_value(rounding=ROUND_FLOOR))
