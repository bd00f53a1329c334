"""
Category-aware attribute extraction.

Every attribute is resolved by an ordered list of strategy functions
``(html, ctx) -> value | None`` evaluated with ``first_some``. Generic
attributes (brand, color, size, material) run for every page; the coarse
category selects one block of category-specific rules on top.

Values are returned undecoded; entity decoding happens once at assembly.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import parse_qs, unquote_plus, urlparse

from bs4 import BeautifulSoup

from entities import decode_entities
from models import dedupe_attributes
from structured import StructuredData
from textutil import first_some, visible_text

Strategy = Callable[[str, "AttributeContext"], Any]

# Generic non-informative values, never promoted to an attribute
PLACEHOLDER_VALUES = frozenset({"base", "default", "standard", "normal", "regular", "basic", "none", "n/a"})
BRAND_PLACEHOLDERS = PLACEHOLDER_VALUES | {"unknown", "generic", "brand"}
# UI prompts that leak out of selectors
_PROMPT_VALUES = frozenset({"select", "select size", "select color", "choose", "choose an option", "color", "size"})

MAX_VALUE_LENGTH = 200
MAX_FEATURES = 8


@dataclass(frozen=True)
class AttributeContext:
    host: str
    product_name: str
    category: str
    page_url: str = ""
    structured: StructuredData = field(default_factory=StructuredData)
    text: str = ""
    table: dict[str, str] = field(default_factory=dict)
    soup: Any = None


@dataclass(frozen=True)
class AttributeResult:
    attributes: dict[str, Any]
    notes: tuple[str, ...] = ()


def is_placeholder(value: Any, brand: bool = False) -> bool:
    if not isinstance(value, str):
        return False
    lowered = value.strip().lower()
    return lowered in (BRAND_PLACEHOLDERS if brand else PLACEHOLDER_VALUES) or lowered in _PROMPT_VALUES


def clean_value(value: Any) -> str | None:
    if not isinstance(value, str):
        return None
    value = re.sub(r"\s+", " ", value).strip(" \t\n:;,|-")
    if not value or len(value) > MAX_VALUE_LENGTH:
        return None
    return value


# ---------------------------------------------------------------------------
# Specification tables
# ---------------------------------------------------------------------------

_LABEL_NOISE_RE = re.compile(r"[:\u200e\u200f]+")


def _clean_label(label: str) -> str:
    label = decode_entities(label)
    return re.sub(r"\s+", " ", _LABEL_NOISE_RE.sub(" ", label)).strip().lower()


def spec_table(soup: BeautifulSoup) -> dict[str, str]:
    """Label -> value pairs from spec tables, definition lists and detail bullets.

    Labels are lowercased; the first occurrence of a label wins.
    """
    rows: dict[str, str] = {}

    def put(label: str, value: str) -> None:
        label = _clean_label(label)
        value = value.strip()
        if label and value and len(label) <= 60:
            rows.setdefault(label, value)

    for tr in soup.find_all("tr"):
        cells = tr.find_all(["th", "td"], recursive=False)
        if len(cells) >= 2:
            put(cells[0].get_text(" ", strip=True), cells[1].get_text(" ", strip=True))

    for dt in soup.find_all("dt"):
        dd = dt.find_next_sibling("dd")
        if dd:
            put(dt.get_text(" ", strip=True), dd.get_text(" ", strip=True))

    # Amazon detail bullets: <span class="a-text-bold">Publisher : </span><span>Value</span>
    for bold in soup.select("#detailBullets_feature_div span.a-text-bold, #detailBulletsWrapper_feature_div span.a-text-bold"):
        value = bold.find_next_sibling("span")
        if value:
            put(bold.get_text(" ", strip=True), value.get_text(" ", strip=True))

    return rows


def build_context(
    html: str,
    host: str,
    product_name: str,
    category: str,
    structured: StructuredData | None = None,
    page_url: str = "",
) -> AttributeContext:
    soup = BeautifulSoup(html, "lxml") if html else None
    return AttributeContext(
        host=host,
        product_name=product_name or "",
        category=category,
        page_url=page_url,
        structured=structured or StructuredData(),
        text=visible_text(html) if html else "",
        table=spec_table(soup) if soup is not None else {},
        soup=soup,
    )


# ---------------------------------------------------------------------------
# Strategy factories
# ---------------------------------------------------------------------------


def from_structured(name: str) -> Strategy:
    def strategy(html: str, ctx: AttributeContext) -> str | None:
        return clean_value(getattr(ctx.structured, name, None))

    return strategy


def from_table(*labels: str) -> Strategy:
    def strategy(html: str, ctx: AttributeContext) -> str | None:
        for label in labels:
            value = clean_value(ctx.table.get(label))
            if value:
                return value
        return None

    return strategy


def from_text(pattern: str, flags: int = re.IGNORECASE, fmt: Callable[[re.Match], str] | None = None) -> Strategy:
    regex = re.compile(pattern, flags)

    def strategy(html: str, ctx: AttributeContext) -> str | None:
        match = regex.search(ctx.text)
        if not match:
            return None
        return clean_value(fmt(match) if fmt else match.group(1))

    return strategy


def from_html(pattern: str, flags: int = re.IGNORECASE) -> Strategy:
    regex = re.compile(pattern, flags)

    def strategy(html: str, ctx: AttributeContext) -> str | None:
        match = regex.search(html)
        return clean_value(match.group(1)) if match else None

    return strategy


def from_name(pattern: str, flags: int = re.IGNORECASE, fmt: Callable[[re.Match], str] | None = None) -> Strategy:
    regex = re.compile(pattern, flags)

    def strategy(html: str, ctx: AttributeContext) -> str | None:
        match = regex.search(ctx.product_name)
        if not match:
            return None
        return clean_value(fmt(match) if fmt else match.group(1))

    return strategy


def from_meta(*properties: str) -> Strategy:
    regexes = [
        re.compile(rf"<meta[^>]+(?:property|name|itemprop)=[\"']{re.escape(p)}[\"'][^>]*content=[\"']([^\"']+)[\"']", re.I)
        for p in properties
    ]

    def strategy(html: str, ctx: AttributeContext) -> str | None:
        for regex in regexes:
            match = regex.search(html)
            if match:
                return clean_value(match.group(1))
        return None

    return strategy


def from_inline_json(*keys: str) -> Strategy:
    """``"key":"value"`` or ``"key":{"name":"value"}`` anywhere in the document."""
    regexes = [
        re.compile(rf"\"{re.escape(k)}\"\s*:\s*(?:\{{\s*\"name\"\s*:\s*)?\"([^\"]{{1,120}})\"") for k in keys
    ]

    def strategy(html: str, ctx: AttributeContext) -> str | None:
        for regex in regexes:
            for match in regex.finditer(html):
                value = clean_value(match.group(1))
                if value and not value.startswith(("http", "/", "{")):
                    return value
        return None

    return strategy


def from_class(name: str) -> Strategy:
    """Text content of an element whose class mentions the attribute name."""
    regex = re.compile(
        rf"<(?:span|div|p|dd|li|a)[^>]*class=[\"'][^\"']*{re.escape(name)}[^\"']*[\"'][^>]*>\s*([^<]{{1,80}}?)\s*<",
        re.IGNORECASE,
    )

    def strategy(html: str, ctx: AttributeContext) -> str | None:
        for match in regex.finditer(html):
            value = clean_value(match.group(1))
            if value and not is_placeholder(value) and not value.lower().startswith(name.lower()):
                return value
        return None

    return strategy


def from_url_params(*params: str) -> Strategy:
    def strategy(html: str, ctx: AttributeContext) -> str | None:
        if not ctx.page_url:
            return None
        query = parse_qs(urlparse(ctx.page_url).query)
        for param in params:
            for key, values in query.items():
                if key.lower() == param.lower() and values:
                    return clean_value(unquote_plus(values[0]))
        return None

    return strategy


def rejecting(strategy: Strategy, brand: bool = False) -> Strategy:
    """Wrap a strategy so placeholder values count as "nothing found"."""

    def wrapped(html: str, ctx: AttributeContext) -> Any:
        value = strategy(html, ctx)
        return None if is_placeholder(value, brand=brand) else value

    return wrapped


# ---------------------------------------------------------------------------
# Generic attributes
# ---------------------------------------------------------------------------

_GARMENT_WORDS = (
    "Sweater|Cardigan|Dress|Jacket|Coat|Shirt|T-Shirt|Tee|Top|Blouse|Jeans|Pants|Trousers|Shorts|Skirt|"
    "Hoodie|Sweatshirt|Polo|Leggings|Vest|Blazer|Sneakers?|Boots?|Sandals?|Heels|Loafers?|Pumps?|Flats"
)
_BRAND_NAME_PATTERNS = (
    re.compile(r"^([A-Z][\w&.'-]*(?:\s+[A-Z][\w&.'-]*){0,3}?)\s+(?:Women'?s|Men'?s|Kids'?|Unisex|Girls'?|Boys'?)\b"),
    re.compile(r"^([A-Z][\w&.'-]+)\s+[A-Z]"),
    re.compile(rf"^([A-Z][\w&.'-]*(?:\s+[A-Z][\w&.'-]*){{0,2}}?)\s+(?:[\w-]+\s+){{0,3}}(?:{_GARMENT_WORDS})\b"),
)


# Leading words that name the audience or are articles, never a brand
_NOT_BRAND_WORDS = {
    "men", "mens", "men's", "women", "womens", "women's", "kids", "kids'", "kid's", "unisex",
    "girls", "girls'", "boys", "boys'", "baby", "toddler", "the", "a", "an", "new",
}


def _brand_from_name(html: str, ctx: AttributeContext) -> str | None:
    for pattern in _BRAND_NAME_PATTERNS:
        match = pattern.match(ctx.product_name.strip())
        if not match:
            continue
        brand = clean_value(match.group(1))
        if brand and brand.lower().replace("’", "'") not in _NOT_BRAND_WORDS:
            return brand
    return None


BRAND_STRATEGIES: list[Strategy] = [
    rejecting(s, brand=True)
    for s in (
        from_structured("brand"),
        from_meta("product:brand", "og:brand", "brand"),
        from_html(r"id=\"bylineInfo\"[^>]*>\s*(?:Visit the\s+|Brand:\s*)?([^<]+?)(?:\s+Store)?\s*<"),
        from_table("brand", "brand name"),
        from_inline_json("brand", "brandName"),
        from_class("brand"),
        _brand_from_name,
    )
]

COLOR_WORDS = (
    "black", "white", "navy", "blue", "red", "green", "grey", "gray", "pink", "purple", "beige", "brown", "tan",
    "ivory", "cream", "silver", "gold", "charcoal", "olive", "burgundy", "maroon", "khaki", "yellow", "orange",
    "teal", "turquoise", "coral", "natural", "camel", "midnight", "starlight", "graphite", "lavender", "mint",
    "taupe", "denim", "multi", "multicolor", "clear",
)
_COLOR_NAME_RE = re.compile(
    r"\b((?:light|dark|navy|sky|royal|rose|space|heather|pale|deep|bright|hot|baby|forest|jet)\s+)?("
    + "|".join(COLOR_WORDS)
    + r")\b",
    re.IGNORECASE,
)


def _color_from_name(html: str, ctx: AttributeContext) -> str | None:
    match = _COLOR_NAME_RE.search(ctx.product_name)
    if not match:
        return None
    return clean_value(match.group(0).title())


COLOR_STRATEGIES: list[Strategy] = [
    rejecting(s)
    for s in (
        from_structured("color"),
        from_meta("product:color", "og:color", "color"),
        from_inline_json("color", "colorName", "selectedColor"),
        from_html(r"<span[^>]*class=[\"'][^\"']*(?:selected-color|color-name|colorName|swatch-label)[^\"']*[\"'][^>]*>\s*([^<]{1,60}?)\s*<"),
        from_table("color", "colour", "color name"),
        from_url_params("swatchColor", "color", "colour"),
        _color_from_name,
    )
]

SIZE_STRATEGIES: list[Strategy] = [
    rejecting(s)
    for s in (
        from_inline_json("selectedSize", "size"),
        from_html(r"<span[^>]*class=[\"'][^\"']*(?:selected-size|size-name|sizeName)[^\"']*[\"'][^>]*>\s*([^<]{1,40}?)\s*<"),
        from_table("size"),
        from_url_params("size"),
        from_name(r"\bSize\s*:?\s*([A-Z0-9][\w./-]{0,10})\b"),
    )
]

MATERIAL_WORDS = (
    "cotton", "polyester", "wool", "cashmere", "silk", "linen", "leather", "suede", "denim", "nylon", "spandex",
    "rayon", "viscose", "acrylic", "stainless steel", "aluminum", "titanium", "ceramic", "glass", "bamboo",
    "oak", "walnut", "velvet", "fleece", "canvas",
)
_MATERIAL_NAME_RE = re.compile(r"\b(" + "|".join(MATERIAL_WORDS) + r")\b", re.IGNORECASE)

MATERIAL_STRATEGIES: list[Strategy] = [
    rejecting(s)
    for s in (
        from_structured("material"),
        from_inline_json("material", "fabric"),
        from_table("material", "material type", "fabric type", "material composition", "frame material"),
        from_text(r"\b(?:Material|Fabric|Composition)\s*:\s*([^.|]{2,80}?)(?:\.|\||$|\s{2})"),
        from_text(r"\b(\d{1,3}%\s*[A-Za-z]+(?:\s*(?:,|/|and)\s*\d{1,3}%\s*[A-Za-z]+)*)"),
        from_name(r"\b(" + "|".join(MATERIAL_WORDS) + r")\b", fmt=lambda m: m.group(1).title()),
    )
]

TYPE_STRATEGIES: list[Strategy] = [
    rejecting(s) for s in (from_structured("type"), from_table("type", "item type", "product type", "style type"))
]


def _features(html: str, ctx: AttributeContext) -> list[str] | None:
    if ctx.soup is None:
        return None
    items = ctx.soup.select("#feature-bullets li span.a-list-item, #feature-bullets li")
    features: list[str] = []
    for item in items:
        text = clean_value(item.get_text(" ", strip=True))
        if text and text not in features and not text.lower().startswith("make sure this fits"):
            features.append(text)
        if len(features) >= MAX_FEATURES:
            break
    return features or None


WARRANTY_STRATEGIES: list[Strategy] = [
    from_table("warranty", "warranty description", "manufacturer warranty"),
    from_text(r"\b(\d+[- ](?:year|yr|month)s?\s+(?:limited\s+)?warranty)\b"),
]

_KINDLE_UNLIMITED_RE = re.compile(r"kindle\s+unlimited", re.IGNORECASE)


def _offer_type(html: str, ctx: AttributeContext) -> str | None:
    name = ctx.product_name.lower()
    if "renewed premium" in name:
        return "Renewed Premium"
    if "(renewed)" in name or "renewed" in name.split():
        return "Renewed"
    if "amazon.com" in ctx.host and _KINDLE_UNLIMITED_RE.search(ctx.text) and "kindle" in ctx.text.lower():
        return "Kindle Unlimited"
    return None


def _kindle_unlimited(html: str, ctx: AttributeContext) -> str | None:
    if "amazon.com" not in ctx.host:
        return None
    if re.search(r"kindle\s+unlimited[^.]{0,80}?(?:read for free|\$0\.00)", ctx.text, re.IGNORECASE):
        return "Yes"
    return None


# ---------------------------------------------------------------------------
# Capacity and size normalisation
# ---------------------------------------------------------------------------

_QUART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*-?\s*(?:qt\.?|quarts?)\b", re.IGNORECASE)
_LITER_RE = re.compile(r"(\d+(?:\.\d+)?)\s*-?\s*(?:l|ltr|liters?|litres?)\b", re.IGNORECASE)
_FL_OZ_RE = re.compile(r"(\d+(?:\.\d+)?)\s*-?\s*(?:fl\.?\s*)?(?:oz|ounces?)\b", re.IGNORECASE)
_CUP_RE = re.compile(r"(\d+(?:\.\d+)?)\s*-?\s*cups?\b", re.IGNORECASE)


def _fmt_number(raw: str) -> str:
    number = float(raw)
    return str(int(number)) if number.is_integer() else f"{number:g}"


def normalize_capacity(text: str | None) -> str | None:
    """Canonical capacity wording: ``"6 Quarts"``, ``"1 Quart"``, ``"1.7 Liters"``, ``"20 oz"``."""
    if not text:
        return None
    match = _QUART_RE.search(text)
    if match:
        n = _fmt_number(match.group(1))
        return f"{n} Quart" if n == "1" else f"{n} Quarts"
    match = _LITER_RE.search(text)
    if match:
        n = _fmt_number(match.group(1))
        return f"{n} Liter" if n == "1" else f"{n} Liters"
    match = _FL_OZ_RE.search(text)
    if match:
        return f"{_fmt_number(match.group(1))} oz"
    match = _CUP_RE.search(text)
    if match:
        n = _fmt_number(match.group(1))
        return f"{n} Cup" if n == "1" else f"{n} Cups"
    return clean_value(text)


def _capacity_from_name(html: str, ctx: AttributeContext) -> str | None:
    for regex in (_QUART_RE, _LITER_RE, _CUP_RE):
        match = regex.search(ctx.product_name)
        if match:
            return normalize_capacity(match.group(0))
    return None


def _capacity_from_table(html: str, ctx: AttributeContext) -> str | None:
    raw = from_table("capacity", "volume", "liquid volume", "capacity (quarts)")(html, ctx)
    return normalize_capacity(raw) if raw else None


def _capacity_from_text(html: str, ctx: AttributeContext) -> str | None:
    match = re.search(r"\bcapacity\s*:?\s*([\d.]+\s*-?\s*(?:qt\.?|quarts?|l|liters?|litres?|cups?))\b", ctx.text, re.I)
    return normalize_capacity(match.group(1)) if match else None


_OPTION_PLACEHOLDER_RE = re.compile(r"^(?:select|choose|--|please)", re.IGNORECASE)
_SIZE_SELECT_RE = re.compile(r"(?:size|capacity)", re.IGNORECASE)


def _leading_number(value: str) -> tuple[int, float]:
    match = re.match(r"\s*(\d+(?:\.\d+)?)", value)
    return (0, float(match.group(1))) if match else (1, 0.0)


def extract_size_options(html: str, soup: BeautifulSoup | None = None) -> list[str]:
    """Every real option of a native size/capacity dropdown, deduplicated and sorted numerically."""
    soup = soup if soup is not None else BeautifulSoup(html, "lxml")
    options: list[str] = []
    for select in soup.find_all("select"):
        ident = " ".join(str(select.get(a, "")) for a in ("name", "id", "aria-label"))
        if not _SIZE_SELECT_RE.search(ident):
            continue
        for option in select.find_all("option"):
            text = clean_value(option.get_text(" ", strip=True))
            value = option.get("value", "")
            if not text or _OPTION_PLACEHOLDER_RE.match(text) or is_placeholder(text) or value in ("-1", ""):
                continue
            if text not in options:
                options.append(text)
    # non-numeric options keep page order, after the numeric ones
    return sorted(options, key=_leading_number)


_MULTI_CAPACITY_RE = re.compile(
    r"((?:\d+(?:\.\d+)?\s*-?\s*(?:Quarts?|Qt)\b\s*(?:,|/|or|and)\s*){1,5}\d+(?:\.\d+)?\s*-?\s*(?:Quarts?|Qt)\b)",
    re.IGNORECASE,
)


def _capacity_options_from_text(text: str) -> list[str]:
    match = _MULTI_CAPACITY_RE.search(text)
    if not match:
        return []
    values = [normalize_capacity(m.group(0)) for m in _QUART_RE.finditer(match.group(1))]
    return sorted(dict.fromkeys(v for v in values if v), key=_leading_number)


# ---------------------------------------------------------------------------
# Category-specific rule blocks
# ---------------------------------------------------------------------------

_DIMENSIONS_RE = (
    r"(\d+(?:\.\d+)?\s*\"?\s*(?:[WLDH]\b)?\s*x\s*\d+(?:\.\d+)?\s*\"?\s*(?:[WLDH]\b)?\s*x\s*\d+(?:\.\d+)?"
    r"\s*\"?\s*(?:[WLDH]\b)?(?:\s*(?:inches|inch|in\b|cm|centimeters))?)"
)

FURNITURE_RULES: dict[str, list[Strategy]] = {
    "dimensions": [
        from_table("product dimensions", "dimensions", "overall dimensions", "item dimensions", "assembled product dimensions"),
        from_text(_DIMENSIONS_RE),
    ],
    "weight": [
        from_table("item weight", "weight", "product weight"),
        from_text(r"\bWeight\s*:?\s*(\d+(?:\.\d+)?\s*(?:lbs?|pounds|kg|kilograms))\b"),
    ],
    "assembly": [
        from_table("assembly required", "assembly"),
        from_text(r"\b(No assembly required|Assembly required|Requires assembly|Fully assembled)\b"),
    ],
    "seatDepth": [
        from_table("seat depth"),
        from_text(r"\bSeat Depth\s*:?\s*(\d+(?:\.\d+)?\s*(?:\"|inches|inch|in\b|cm))"),
    ],
    "seatHeight": [
        from_table("seat height"),
        from_text(r"\bSeat Height\s*:?\s*(\d+(?:\.\d+)?\s*(?:\"|inches|inch|in\b|cm))"),
    ],
    "seatingCapacity": [
        from_table("seating capacity", "maximum seating capacity"),
        from_text(r"\bSeats?\s+(\d{1,2})\s+(?:people|persons|adults)\b", fmt=lambda m: m.group(1)),
    ],
    "style": [from_table("style", "furniture style")],
}

_STORAGE_RE = r"\b(\d+(?:\.\d+)?\s?(?:GB|TB))\b"
_CONNECTIVITY_TERMS = r"(Wi-?Fi\s*\+\s*Cellular|Wi-?Fi|Bluetooth(?:\s*\d(?:\.\d)?)?|5G|LTE|GPS\s*\+\s*Cellular|GPS|USB-C|NFC)"


def _connectivity(html: str, ctx: AttributeContext) -> str | None:
    table = from_table("connectivity technology", "connectivity", "wireless communication technology")(html, ctx)
    if table:
        return table
    found = re.findall(_CONNECTIVITY_TERMS, ctx.product_name, re.IGNORECASE)
    return ", ".join(dict.fromkeys(f.strip() for f in found)) or None


def _specifications(html: str, ctx: AttributeContext) -> list[str] | None:
    labels = ("processor", "cpu model", "ram", "memory storage capacity", "graphics coprocessor", "operating system",
              "display resolution", "resolution", "refresh rate", "chip")
    specs = [f"{label.title()}: {clean_value(ctx.table[label])}" for label in labels if clean_value(ctx.table.get(label))]
    return specs or None


ELECTRONICS_RULES: dict[str, list[Strategy]] = {
    "model": [
        from_table("model name", "model", "item model number", "model number"),
        from_text(r"\bModel(?:\s+(?:Number|No\.?))?\s*:\s*([A-Z0-9][A-Z0-9-]{2,30})\b", flags=0),
    ],
    "specifications": [_specifications],
    "storageSize": [
        from_name(_STORAGE_RE),
        from_table("memory storage capacity", "hard disk size", "storage capacity", "digital storage capacity"),
    ],
    "capacity": [
        from_name(_STORAGE_RE),
        from_table("memory storage capacity", "storage capacity"),
    ],
    "screenSize": [
        from_table("screen size", "display size", "standing screen display size"),
        from_name(r"\b(\d{1,2}(?:\.\d)?)\s*(?:-|\s)?(?:inch|in\b|\"|”)", fmt=lambda m: f"{m.group(1)} Inches"),
    ],
    "connectivity": [_connectivity],
    "batteryLife": [
        from_table("battery life", "battery average life"),
        from_text(r"\b(up to \d+(?:\.\d+)?\s*hours?)\b"),
    ],
}


def _wattage(html: str, ctx: AttributeContext) -> str | None:
    for source in (ctx.product_name, ctx.table.get("wattage", ""), ctx.text[:20000]):
        match = re.search(r"\b(\d{2,4})\s*-?\s*(?:W|watts?)\b", source or "")
        if match:
            return f"{match.group(1)} Watts"
    return None


KITCHEN_RULES: dict[str, list[Strategy]] = {
    "capacity": [_capacity_from_table, _capacity_from_name, _capacity_from_text],
    "wattage": [_wattage],
    "material": [from_table("material", "inner material", "exterior finish")],
}

HOME_APPLIANCE_RULES: dict[str, list[Strategy]] = {
    "capacity": [_capacity_from_table, _capacity_from_name, _capacity_from_text],
    "wattage": [_wattage],
    "energyRating": [
        from_table("energy efficiency class", "energy rating", "energy star"),
        from_text(r"\b(Energy Star(?:\s+Certified)?)\b"),
    ],
}

SHOE_RULES: dict[str, list[Strategy]] = {
    "width": [
        from_table("shoe width", "width"),
        from_inline_json("width", "selectedWidth"),
        from_text(r"\bWidth\s*:?\s*(Extra Wide|X-Wide|Wide|Medium|Narrow|W|M|N|XW)\b", flags=0),
    ],
    "heelHeight": [
        from_table("heel height"),
        from_text(r"\bHeel(?:\s+Height)?\s*:?\s*(\d+(?:\.\d+)?\s*(?:\"|inches|inch|in\b|cm))"),
    ],
}


def _isbn(html: str, ctx: AttributeContext) -> str | None:
    for label in ("isbn-13", "isbn-10", "isbn"):
        value = clean_value(ctx.table.get(label))
        if value:
            return value
    match = re.search(r"\bISBN(?:-1[03])?\s*:?\s*((?:97[89][- ]?)?\d{1,5}[- ]?\d{1,7}[- ]?\d{1,7}[- ]?[\dX])\b", ctx.text)
    return match.group(1) if match else None


BOOK_RULES: dict[str, list[Strategy]] = {
    "author": [
        from_html(r"class=\"author[^\"]*\"[^>]*>\s*(?:<[^>]+>\s*)*([^<]{2,80}?)\s*<"),
        from_table("author", "authors"),
        from_inline_json("author"),
        from_name(r"\bby\s+([A-Z][\w.'-]+(?:\s+[A-Z][\w.'-]+){0,3})", flags=0),
    ],
    "publisher": [from_table("publisher"), from_inline_json("publisher")],
    "pageCount": [
        from_table("print length", "paperback", "hardcover", "pages", "number of pages"),
        from_text(r"\b(\d{2,5})\s+pages\b", fmt=lambda m: f"{m.group(1)} pages"),
    ],
    "isbn": [_isbn],
    "format": [
        from_text(r"\b(Hardcover|Paperback|Kindle Edition|Audiobook|Board book|Mass Market Paperback|Spiral-bound)\b", flags=0),
    ],
}

GEMSTONES = (
    "diamond", "sapphire", "ruby", "emerald", "pearl", "opal", "amethyst", "topaz", "garnet", "aquamarine",
    "moissanite", "tanzanite", "peridot", "citrine", "morganite", "cubic zirconia", "onyx", "turquoise",
)
_GEMSTONE_RE = re.compile(r"\b(" + "|".join(GEMSTONES) + r")s?\b", re.IGNORECASE)
_CARAT_RE = re.compile(r"\b(\d+(?:\.\d+)?|\d+/\d+)\s*(?:ct\.?|carats?|cttw)\b(?:\s*t\.?w\.?)?", re.IGNORECASE)
_METAL_RE = (
    r"\b((?:\d{1,2}K\s+)?(?:White\s+|Yellow\s+|Rose\s+)?Gold|Sterling Silver|Silver|Platinum|Tungsten(?:\s+Carbide)?|"
    r"Titanium|Stainless Steel|Palladium|Cobalt)\b"
)


def _gemstone(html: str, ctx: AttributeContext) -> str | None:
    for source in (ctx.product_name, ctx.table.get("gem type", ""), ctx.table.get("stone", "")):
        match = _GEMSTONE_RE.search(source or "")
        if match:
            return match.group(1).title()
    return None


def _carat_weight(html: str, ctx: AttributeContext) -> str | None:
    # Metal-only jewelry has no stone; stray decimals on the page are not carat weights
    if not _GEMSTONE_RE.search(ctx.product_name):
        return None
    for source in (ctx.product_name, ctx.table.get("total carat weight", ""), ctx.text[:20000]):
        match = _CARAT_RE.search(source or "")
        if match:
            return f"{match.group(1)} ct"
    return None


JEWELRY_RULES: dict[str, list[Strategy]] = {
    "gemstone": [_gemstone],
    "caratWeight": [_carat_weight],
    "metalType": [from_table("metal type", "metal"), from_name(_METAL_RE)],
    "ringSize": [
        from_table("ring size"),
        from_text(r"\bRing Size\s*:?\s*(\d{1,2}(?:\.5)?)\b"),
    ],
}

TOY_RULES: dict[str, list[Strategy]] = {
    "ageRange": [
        from_table("manufacturer recommended age", "age range (description)", "recommended age", "reading age"),
        from_text(r"\b(Ages?\s*\d{1,2}\s*(?:\+|and up|-\s*\d{1,2}(?:\s*years)?))", flags=re.IGNORECASE),
        from_text(r"\b(\d{1,2}\s*(?:years?|months?)\s*(?:and up|\+))"),
    ],
    "safetyInfo": [
        from_text(r"\b((?:WARNING:?\s*)?CHOKING HAZARD[^.]{0,120}\.?)"),
        from_table("safety warning"),
    ],
    "pieceCount": [
        from_table("number of pieces", "piece count"),
        from_name(r"\b(\d{2,5})\s*(?:pieces|pcs|piece|pc)\b", fmt=lambda m: m.group(1)),
    ],
}

CLOTHING_RULES: dict[str, list[Strategy]] = {
    "fitType": [
        from_table("fit type", "fit"),
        from_text(r"\b(Regular Fit|Slim Fit|Relaxed Fit|Classic Fit|Loose Fit|Athletic Fit|Oversized Fit|Skinny Fit|Straight Fit)\b"),
    ],
}

BEAUTY_RULES: dict[str, list[Strategy]] = {
    "size": [from_name(r"\b(\d+(?:\.\d+)?\s*(?:fl\.?\s*oz|oz|ml|mL))\b")],
    "type": [from_table("skin type", "hair type", "item form")],
}

SPORTS_RULES: dict[str, list[Strategy]] = {
    "weight": [from_table("item weight", "weight")],
}

HOME_KITCHEN_RULES: dict[str, list[Strategy]] = {
    "dimensions": [from_table("product dimensions", "dimensions", "item dimensions")],
    "capacity": [_capacity_from_table, _capacity_from_name],
}

CATEGORY_RULES: dict[str, dict[str, list[Strategy]]] = {
    "Furniture": FURNITURE_RULES,
    "Electronics": ELECTRONICS_RULES,
    "Kitchen Appliances": KITCHEN_RULES,
    "Home Appliances": HOME_APPLIANCE_RULES,
    "Shoes": SHOE_RULES,
    "Books": BOOK_RULES,
    "Jewelry": JEWELRY_RULES,
    "Toys": TOY_RULES,
    "Clothing": CLOTHING_RULES,
    "Beauty": BEAUTY_RULES,
    "Sports": SPORTS_RULES,
    "Home & Kitchen": HOME_KITCHEN_RULES,
}

GENERIC_RULES: dict[str, list[Strategy]] = {
    "brand": BRAND_STRATEGIES,
    "color": COLOR_STRATEGIES,
    "size": SIZE_STRATEGIES,
    "material": MATERIAL_STRATEGIES,
    "type": TYPE_STRATEGIES,
    "features": [_features],
    "warranty": WARRANTY_STRATEGIES,
    "offerType": [_offer_type],
    "kindleUnlimited": [_kindle_unlimited],
}

_DRINKWARE_RE = re.compile(r"\b(tumbler|mug|cup|water bottle|bottle|flask|thermos|travel mug|glass(?:es)?)\b", re.I)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def extract_attributes(
    html: str,
    host: str,
    product_name: str | None,
    category: str,
    structured: StructuredData | None = None,
    page_url: str = "",
    ctx: AttributeContext | None = None,
) -> AttributeResult:
    """Populate the attributes map for a page.

    Returns the deduplicated map and the diagnostic trail of which special
    cases fired.
    """
    ctx = ctx or build_context(html, host, product_name or "", category, structured, page_url)
    notes: list[str] = []
    pairs: list[tuple[str, Any]] = []

    for key, strategies in GENERIC_RULES.items():
        value = first_some(strategies, html, ctx)
        if value is not None:
            pairs.append((key, value))

    category_rules = CATEGORY_RULES.get(category, {})
    for key, strategies in category_rules.items():
        value = first_some(strategies, html, ctx)
        if value is not None:
            pairs.append((key, value))
    if category_rules:
        notes.append(f"category rules: {category}")

    attributes = dedupe_attributes(pairs)

    # Native size dropdowns list every option, not only the selected one
    if "amazon." in host:
        options = extract_size_options(html, ctx.soup)
        if len(options) > 1:
            attributes = {**attributes, "size": options}
            notes.append(f"size options: {len(options)}")

    if category == "Kitchen Appliances" and not isinstance(attributes.get("size"), list):
        options = _capacity_options_from_text(ctx.text)
        if len(options) > 1:
            attributes = {**attributes, "size": options}
            notes.append("capacity options from text")

    # The title's capacity describes the product; a table value may describe a part of it
    title_capacity = _capacity_from_name(html, ctx)
    if title_capacity and attributes.get("capacity") and attributes["capacity"] != title_capacity:
        notes.append(f"capacity {attributes['capacity']} replaced by title capacity {title_capacity}")
        attributes = {**attributes, "capacity": title_capacity}

    # Drinkware is sized in fluid ounces, not garment sizes
    if _DRINKWARE_RE.search(ctx.product_name):
        oz = _FL_OZ_RE.search(ctx.product_name)
        if oz:
            attributes = {k: v for k, v in attributes.items() if k != "size"}
            attributes["capacity"] = f"{_fmt_number(oz.group(1))} oz"
            notes.append("drinkware capacity supersedes size")

    return AttributeResult(attributes=dedupe_attributes(attributes), notes=tuple(notes))
