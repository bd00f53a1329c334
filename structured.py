"""
Structured data extractor: JSON-LD Product blocks and social meta tags.

Produces a loose bag of product fields. Values are left undecoded; entity
decoding happens once when the final record is assembled.
"""

import re
from dataclasses import dataclass, field
from typing import Any

from images import is_marketing_image
from parser import ParsedPage, find_product_block, parse_html
from textutil import parse_amount

# Amazon in-URL size/crop codes such as _SX38_ or _AC_US40_ mark thumbnails
_AMAZON_THUMB_RE = re.compile(r"_[A-Z]{2}(?:[0-5]\d|\d)_")


@dataclass(frozen=True)
class StructuredData:
    name: str | None = None
    description: str | None = None
    image: str | None = None
    price: float | None = None
    brand: str | None = None
    color: str | None = None
    material: str | None = None
    type: str | None = None
    availability: str | None = None
    rating: Any = None
    review_count: Any = None
    notes: tuple[str, ...] = field(default_factory=tuple)


def extract_structured_data(html: str, parsed: ParsedPage | None = None) -> StructuredData:
    """Pull product fields from JSON-LD, falling back to meta tags for the image.

    Never raises on malformed JSON-LD; broken blocks are skipped by the parser.
    """
    parsed = parsed or parse_html(html)
    notes: list[str] = list(parsed.notes)
    product = find_product_block(parsed.json_ld) or {}

    image = None
    raw_image = product.get("image")
    if isinstance(raw_image, list):
        raw_image = raw_image[0] if raw_image else None
    if isinstance(raw_image, dict):
        raw_image = raw_image.get("url") or raw_image.get("contentUrl")
    if isinstance(raw_image, str) and raw_image:
        if acceptable_structured_image(raw_image):
            image = raw_image
        else:
            notes.append(f"rejected JSON-LD image {raw_image[:80]}")

    if image is None:
        image = _fallback_image(parsed, html, notes)

    offers = product.get("offers")
    if isinstance(offers, list):
        offers = offers[0] if offers else {}
    if not isinstance(offers, dict):
        offers = {}
    price = parse_amount(offers.get("price"))
    if price is None:
        price = parse_amount(offers.get("lowPrice"))

    brand = product.get("brand")
    if isinstance(brand, dict):
        brand = brand.get("name")
    elif isinstance(brand, list):
        brand = brand[0].get("name") if brand and isinstance(brand[0], dict) else None

    aggregate = product.get("aggregateRating") if isinstance(product.get("aggregateRating"), dict) else {}

    return StructuredData(
        name=_as_text(product.get("name")),
        description=_as_text(product.get("description")),
        image=image,
        price=price,
        brand=_as_text(brand),
        color=_as_text(product.get("color")),
        material=_as_text(product.get("material")),
        type=_as_text(product.get("type") or product.get("category")),
        availability=_as_text(offers.get("availability")),
        rating=aggregate.get("ratingValue"),
        review_count=aggregate.get("reviewCount") or aggregate.get("ratingCount"),
        notes=tuple(notes),
    )


def acceptable_structured_image(url: str) -> bool:
    """Classifier check plus Amazon's product-path and thumbnail rules."""
    if is_marketing_image(url):
        return False
    lower = url.lower()
    if "amazon" in lower:
        if "media-amazon.com/images/i/" not in lower:
            return False
        if _AMAZON_THUMB_RE.search(url):
            return False
    return True


def _fallback_image(parsed: ParsedPage, html: str, notes: list[str]) -> str | None:
    candidates = [parsed.og_tags.get("image"), parsed.meta_tags.get("image")]
    match = re.search(r"<img[^>]+class=[\"'][^\"']*product[^\"']*[\"'][^>]*>", html, re.IGNORECASE)
    if match:
        src = re.search(r"\bsrc=[\"']([^\"']+)[\"']", match.group(0))
        candidates.append(src.group(1) if src else None)
    for url in candidates:
        if not url:
            continue
        if is_marketing_image(url):
            notes.append(f"rejected fallback image {url[:80]}")
            continue
        return url
    return None


def _as_text(value: Any) -> str | None:
    if isinstance(value, list):
        value = ", ".join(str(v) for v in value if isinstance(v, (str, int, float)))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
