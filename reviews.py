"""
Rating, review count, merchandising badges and stock status.

One ranked strategy list per field. A rating is only trusted when it carries a
fractional digit ("4.6", "4.0") and lies in 1.0-5.0; bare integers on a page
are too often star-widget counts or unrelated numbers.
"""

import re
from collections.abc import Callable
from typing import Any

from bs4 import BeautifulSoup

from structured import StructuredData
from textutil import first_some, strip_tags

_RATING_TEXT_RE = re.compile(r"^\s*([1-5]\.\d)\b")


def parse_rating(raw: Any) -> float | None:
    """Accept "4.6", 4.6 or "4.6 out of 5 stars"; reject integers and out-of-range values."""
    if raw is None or isinstance(raw, (bool, int)):
        return None
    if isinstance(raw, float):
        value = raw
    else:
        match = _RATING_TEXT_RE.match(str(raw))
        if not match:
            return None
        value = float(match.group(1))
    if not (1.0 <= value <= 5.0):
        return None
    return round(value, 1)


def parse_count(raw: Any) -> int | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        count = int(raw)
    else:
        match = re.search(r"\d[\d,]*", str(raw))
        if not match:
            return None
        count = int(match.group(0).replace(",", ""))
    return count if count >= 1 else None


# ---------------------------------------------------------------------------
# Rating
# ---------------------------------------------------------------------------


def _rating_structured(html: str, structured: StructuredData | None) -> float | None:
    return parse_rating(structured.rating) if structured else None


def _rating_acr_popover(html: str, structured: StructuredData | None) -> float | None:
    match = re.search(r"id=\"acrPopover\"[^>]*title=\"([^\"]+)\"", html)
    return parse_rating(match.group(1)) if match else None


def _rating_out_of_five(html: str, structured: StructuredData | None) -> float | None:
    match = re.search(r"([1-5]\.\d)\s+out of\s+5(?:\s+stars)?", html)
    return parse_rating(match.group(1)) if match else None


def _rating_data_attribute(html: str, structured: StructuredData | None) -> float | None:
    match = re.search(r"data-(?:rating|average-rating|star-rating)=\"([^\"]+)\"", html)
    return parse_rating(match.group(1)) if match else None


RATING_STRATEGIES: list[Callable[[str, StructuredData | None], float | None]] = [
    _rating_structured,
    _rating_acr_popover,
    _rating_out_of_five,
    _rating_data_attribute,
]


def extract_rating(html: str, structured: StructuredData | None = None) -> float | None:
    return first_some(RATING_STRATEGIES, html, structured)


# ---------------------------------------------------------------------------
# Review count
# ---------------------------------------------------------------------------


def _count_structured(html: str, structured: StructuredData | None) -> int | None:
    return parse_count(structured.review_count) if structured else None


def _count_amazon_widget(html: str, structured: StructuredData | None) -> int | None:
    match = re.search(r"id=\"acrCustomerReviewText\"[^>]*>\s*([\d,]+)\s+(?:global\s+)?ratings?", html)
    return parse_count(match.group(1)) if match else None


def _count_text(html: str, structured: StructuredData | None) -> int | None:
    match = re.search(r"\b([\d,]+)\s+(?:customer\s+|global\s+)?(?:reviews|ratings)\b", html, re.IGNORECASE)
    return parse_count(match.group(1)) if match else None


def _count_data_attribute(html: str, structured: StructuredData | None) -> int | None:
    match = re.search(r"data-(?:review-count|reviews-count|rating-count)=\"([^\"]+)\"", html)
    return parse_count(match.group(1)) if match else None


REVIEW_COUNT_STRATEGIES: list[Callable[[str, StructuredData | None], int | None]] = [
    _count_structured,
    _count_amazon_widget,
    _count_text,
    _count_data_attribute,
]


def extract_review_count(html: str, structured: StructuredData | None = None) -> int | None:
    return first_some(REVIEW_COUNT_STRATEGIES, html, structured)


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------

_AMAZON_CHOICE_RE = re.compile(r"(acBadge_feature_div|ac-badge-wrapper|Amazon's\s+(?:<[^>]+>\s*)*Choice)", re.IGNORECASE)
_BEST_SELLER_RE = re.compile(r"(zeitgeistBadge|best-seller-badge|#1\s+Best\s+Seller)", re.IGNORECASE)


def detect_badges(html: str) -> tuple[bool, bool]:
    """(amazon_choice, best_seller) flags."""
    return bool(_AMAZON_CHOICE_RE.search(html)), bool(_BEST_SELLER_RE.search(html))


# ---------------------------------------------------------------------------
# Stock status
# ---------------------------------------------------------------------------

AVAILABILITY_LABELS = {
    "instock": "In Stock",
    "outofstock": "Out of Stock",
    "limitedavailability": "Limited Availability",
    "preorder": "Pre-Order",
    "soldout": "Sold Out",
    "backorder": "Backorder",
    "discontinued": "Discontinued",
}


def _availability_label(raw: str | None) -> str | None:
    if not raw:
        return None
    key = raw.rstrip("/").rsplit("/", 1)[-1].replace(" ", "").replace("_", "").lower()
    return AVAILABILITY_LABELS.get(key)


def _amazon_availability(html: str) -> str | None:
    soup = BeautifulSoup(html, "lxml") if "id=\"availability\"" in html else None
    node = soup.select_one("#availability") if soup else None
    if node is None:
        return None
    text = strip_tags(node.get_text(" "))
    lowered = text.lower()
    if "left in stock" in lowered:
        return "Limited Availability"
    if "unavailable" in lowered or "out of stock" in lowered:
        return "Out of Stock"
    if "in stock" in lowered:
        return "In Stock"
    return text[:60] or None


def extract_stock_status(html: str, structured: StructuredData | None = None, price: float | None = None) -> str:
    status = _availability_label(structured.availability if structured else None)
    if status:
        return status
    status = _amazon_availability(html) if html else None
    if status:
        return status
    return "In Stock" if price is not None else "Unknown"
