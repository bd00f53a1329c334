"""
Amazon variant resolver.

Finds the *selected* value of each twister dimension (color_name, style_name,
configuration_name, size_name) rather than any value that merely appears on
the page. Sources are tried from most to least authoritative, then passed
through product-family gates so one dimension cannot leak into another.
"""

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from models import dedupe_attributes
from parser import brace_match
from textutil import strip_tags

DIMENSIONS = ("color_name", "style_name", "configuration_name", "size_name")

# Maps twister dimensions onto attribute keys
DIMENSION_KEYS = {
    "color_name": "color",
    "style_name": "style",
    "configuration_name": "configuration",
    "size_name": "size",
}

DEFAULT_APPLECARE = "Without AppleCare+"


@dataclass(frozen=True)
class VariantSelection:
    color: str | None = None
    style: str | None = None
    configuration: str | None = None
    size: str | None = None
    size_from_title: bool = False
    notes: tuple[str, ...] = ()

    def as_attributes(self) -> dict[str, str]:
        values = {"color": self.color, "style": self.style, "configuration": self.configuration, "size": self.size}
        return {k: v for k, v in values.items() if v}


# ---------------------------------------------------------------------------
# Selection sources, most authoritative first
# ---------------------------------------------------------------------------

_SELECTED_VARIATIONS_RE = re.compile(r"[\"']?selectedVariations[\"']?\s*:\s*")
_VARIATION_VALUES_RE = re.compile(r"[\"']?variationValues[\"']?\s*:\s*")


def _json_object_after(html: str, pattern: re.Pattern) -> dict | None:
    match = pattern.search(html)
    if not match:
        return None
    blob = brace_match(html, match.end())
    if not blob:
        return None
    try:
        data = json.loads(blob)
    except (json.JSONDecodeError, TypeError):
        return None
    return data if isinstance(data, dict) else None


def _from_selected_variations(html: str, dimension: str) -> str | None:
    selected = _json_object_after(html, _SELECTED_VARIATIONS_RE)
    if not selected or dimension not in selected:
        return None
    value = selected[dimension]
    if isinstance(value, (int, str)) and str(value).isdigit():
        # Index into variationValues
        values = (_json_object_after(html, _VARIATION_VALUES_RE) or {}).get(dimension)
        if isinstance(values, list) and int(value) < len(values):
            return str(values[int(value)])
        return None
    return str(value) if isinstance(value, str) else None


def _from_selection_span(html: str, dimension: str) -> str | None:
    start = html.find(f'id="variation_{dimension}"')
    if start < 0:
        return None
    end = html.find('id="variation_', start + 10)
    block = html[start : end if end > 0 else start + 3000][:3000]
    match = re.search(r"class=\"selection\"[^>]*>\s*([^<]+?)\s*<", block)
    return match.group(1) if match else None


_CSA_TAG_RE = re.compile(r"<[^>]*data-csa-c-dimension-name=\"([^\"]+)\"[^>]*>")
_CSA_VALUE_RE = re.compile(r"data-csa-c-dimension-value=\"([^\"]*)\"")
_SELECTED_MARKER_RE = re.compile(
    r"(?:swatchSelect|a-button-selected|\bselected\b|\bactive\b|aria-selected=\"true\"|aria-checked=\"true\")"
)


def _from_csa_attributes(html: str, dimension: str) -> str | None:
    values: list[str] = []
    for match in _CSA_TAG_RE.finditer(html):
        if match.group(1) != dimension:
            continue
        value = _CSA_VALUE_RE.search(match.group(0))
        if not value or not value.group(1).strip():
            continue
        if _SELECTED_MARKER_RE.search(match.group(0)):
            return value.group(1)
        values.append(value.group(1))
    distinct = list(dict.fromkeys(values))
    return distinct[0] if len(distinct) == 1 else None


_SWATCH_TAG_RE_TEMPLATE = r"<li[^>]*id=\"{dim}_\d+\"[^>]*>"


def _from_selected_swatch(html: str, dimension: str) -> str | None:
    for match in re.finditer(_SWATCH_TAG_RE_TEMPLATE.format(dim=re.escape(dimension)), html):
        tag = match.group(0)
        if not _SELECTED_MARKER_RE.search(tag):
            continue
        title = re.search(r"title=\"(?:Click to select )?([^\"]+)\"", tag)
        if title:
            return title.group(1)
        inner = html[match.end() : match.end() + 800]
        alt = re.search(r"alt=\"([^\"]+)\"", inner)
        if alt:
            return alt.group(1)
        text = re.search(r"class=\"[^\"]*(?:twisterTextDiv|swatch-title-text)[^\"]*\"[^>]*>\s*(?:<[^>]+>\s*)*([^<]+)", inner)
        if text:
            return text.group(1)
    return None


def _from_script_key(html: str, dimension: str) -> str | None:
    match = re.search(rf"\"{re.escape(dimension)}\"\s*:\s*\"([^\"]+)\"", html)
    return match.group(1) if match else None


SELECTION_SOURCES: list[Callable[[str, str], str | None]] = [
    _from_selected_variations,
    _from_selection_span,
    _from_csa_attributes,
    _from_selected_swatch,
    _from_script_key,
]


def _clean(value: str | None) -> str | None:
    if not value:
        return None
    value = re.sub(r"\s+", " ", strip_tags(value)).strip()
    if not value or value.lower() in ("select", "n/a", "none", "default") or len(value) > 150:
        return None
    return value


# ---------------------------------------------------------------------------
# Product-family gates
# ---------------------------------------------------------------------------

_APPLE_WATCH_RE = re.compile(r"\bapple\s+watch\b", re.IGNORECASE)
_EARBUDS_RE = re.compile(r"\b(airpods|earbuds|earphones|headphones|beats)\b", re.IGNORECASE)
_TABLET_RE = re.compile(r"\b(ipad|tablet|galaxy tab)\b", re.IGNORECASE)
_APPLE_FAMILY_RE = re.compile(r"\b(apple|iphone|ipad|airpods|macbook|imac|homepod|apple watch)\b", re.IGNORECASE)

_CONNECTOR_RE = re.compile(r"\b(Lightning|USB[- ]?C|USB Type-C|3\.5\s?mm|Wireless)\b", re.IGNORECASE)
_TABLET_CONNECTIVITY_RE = re.compile(r"\b(Wi-?Fi\s*\+\s*Cellular|Wi-?Fi|Cellular)\b", re.IGNORECASE)
_APPLECARE_RE = re.compile(r"(applecare|protection plan|protection)", re.IGNORECASE)


def gate_style(style: str | None, product_name: str) -> str | None:
    """Accept a style value only when it fits the product family's style axis."""
    if not style:
        return None
    if _APPLE_WATCH_RE.search(product_name):
        lowered = style.lower()
        if "cellular" in lowered:
            return "GPS + Cellular"
        if "gps" in lowered:
            return "GPS"
        return None
    if _EARBUDS_RE.search(product_name):
        return style if _CONNECTOR_RE.search(style) else None
    if _TABLET_RE.search(product_name):
        match = _TABLET_CONNECTIVITY_RE.search(style)
        return match.group(1) if match else None
    return style


def gate_configuration(configuration: str | None) -> str | None:
    """Configuration is the protection-plan axis; bundles like "iPad + Pencil" are not."""
    if configuration and _APPLECARE_RE.search(configuration):
        return configuration
    return None


# ---------------------------------------------------------------------------
# Apple Watch title phrase
# ---------------------------------------------------------------------------

_WATCH_CASE_BAND_RE = re.compile(
    r"((?:(?!with\b)[A-Z][a-z]+\s+){1,3}(?:Aluminum|Titanium|Stainless Steel|Ceramic)\s+Case\s+with\s+"
    r"(?:[A-Za-z]+\s+){0,4}?(?:Sport Band|Sport Loop|Solo Loop|Loop|Band|Bracelet))"
)
_BAND_SIZE_RE = re.compile(r"-\s*(S/M|M/L|L/XL|XS|S|M|L|XL)\.?\s*$")
BAND_SIZES = {
    "XS": "Extra Small",
    "S": "Small",
    "M": "Medium",
    "L": "Large",
    "XL": "Extra Large",
    "S/M": "Small/Medium",
    "M/L": "Medium/Large",
    "L/XL": "Large/Extra Large",
}


def watch_title_phrase(product_name: str) -> tuple[str | None, str | None]:
    """The "<case> Case with <band>" phrase and the band size from a watch title."""
    if not _APPLE_WATCH_RE.search(product_name):
        return None, None
    phrase = _WATCH_CASE_BAND_RE.search(product_name)
    size = _BAND_SIZE_RE.search(product_name.strip())
    return (phrase.group(1).strip() if phrase else None, BAND_SIZES.get(size.group(1)) if size else None)


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def _resolve_dimension(html: str, dimension: str) -> tuple[str | None, str]:
    for source in SELECTION_SOURCES:
        value = _clean(source(html, dimension))
        if value:
            return value, source.__name__.lstrip("_")
    return None, ""


def resolve_variants(html: str, product_name: str | None) -> VariantSelection:
    """Selected color/style/configuration/size for an Amazon product page."""
    name = product_name or ""
    notes: list[str] = []
    resolved: dict[str, Any] = {}

    for dimension in DIMENSIONS:
        value, source = _resolve_dimension(html, dimension)
        if value:
            notes.append(f"{dimension}={value!r} via {source}")
        resolved[DIMENSION_KEYS[dimension]] = value

    style = gate_style(resolved["style"], name)
    if resolved["style"] and style is None:
        notes.append(f"style {resolved['style']!r} rejected for product family")
    configuration = gate_configuration(resolved["configuration"])
    if resolved["configuration"] and configuration is None:
        notes.append(f"configuration {resolved['configuration']!r} is not a protection plan")

    # Best-effort default: most shoppers do not add AppleCare+
    has_configuration_axis = "variation_configuration_name" in html or "configuration_name" in html
    if configuration is None and has_configuration_axis and _APPLE_FAMILY_RE.search(name):
        configuration = DEFAULT_APPLECARE
        notes.append("configuration defaulted")

    color, size = resolved["color"], resolved["size"]
    phrase, band_size = watch_title_phrase(name)
    if phrase:
        if color and color != phrase:
            notes.append(f"watch title phrase overrides color {color!r}")
        color = phrase
    if band_size:
        size = band_size

    return VariantSelection(
        color=color,
        style=style,
        configuration=configuration,
        size=size,
        size_from_title=bool(band_size),
        notes=tuple(notes),
    )


def apply_variants(attributes: dict[str, Any], selection: VariantSelection) -> dict[str, Any]:
    """Selected variant values override whatever generic extraction found."""
    lowered = {k.lower(): k for k in attributes}
    merged = dict(attributes)
    for key, value in selection.as_attributes().items():
        existing = lowered.get(key)
        # a full option list beats one selected twister size
        if key == "size" and existing and isinstance(attributes[existing], list) and not selection.size_from_title:
            continue
        if existing and existing != key:
            merged.pop(existing)
        merged[key] = value
    return dedupe_attributes(merged)
