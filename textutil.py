"""
Small text helpers shared by the heuristic extractors.

The extractors are written as ordered lists of strategy functions
``(html, ctx) -> value | None``; ``first_some`` evaluates them in priority order.
"""

import re
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

T = TypeVar("T")


def first_some(strategies: Iterable[Callable[[str, Any], T | None]], html: str, ctx: Any = None) -> T | None:
    """Return the first non-empty result from an ordered list of strategies."""
    for strategy in strategies:
        value = strategy(html, ctx)
        if value is not None and value != "" and value != []:
            return value
    return None


# ---------------------------------------------------------------------------
# Markup stripping
# ---------------------------------------------------------------------------

_SCRIPT_STYLE_RE = re.compile(r"<(script|style|noscript)\b[^>]*>.*?</\1\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_WS_RE = re.compile(r"\s+")


def strip_tags(fragment: str) -> str:
    """Strip HTML tags and normalize whitespace."""
    text = _TAG_RE.sub(" ", fragment)
    return _WS_RE.sub(" ", text).strip()


def visible_text(html: str, limit: int | None = None) -> str:
    """Page text with scripts, styles and tags removed."""
    text = _SCRIPT_STYLE_RE.sub(" ", html)
    text = strip_tags(text)
    return text[:limit] if limit else text


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------

_AMOUNT_RE = re.compile(r"^\$?\s*(\d{1,3}(?:,\d{3})+|\d+)(?:\.(\d{1,2}))?$")


def parse_amount(raw: Any, low: float = 0.0, high: float = 100_000.0) -> float | None:
    """Parse a currency amount with at most two fractional digits.

    Returns None unless the value lies strictly inside (low, high).
    """
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        match = _AMOUNT_RE.match(str(raw).strip())
        if not match:
            return None
        whole = match.group(1).replace(",", "")
        frac = match.group(2) or ""
        value = float(f"{whole}.{frac}" if frac else whole)
    if not (low < value < high):
        return None
    return round(value, 2)


def has_cents(value: float | None) -> bool:
    """True when a price carries a non-zero fractional part."""
    return value is not None and round(value * 100) % 100 != 0


def discount_percent(original: float, sale: float) -> float:
    """Relative discount of sale against original, rounded to one decimal."""
    return round((original - sale) / original * 100, 1)
