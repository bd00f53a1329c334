"""
Generic HTML parser for product pages.

Collects the raw material the extractors work from: JSON-LD blocks, Open Graph
and Twitter meta tags, embedded JSON state objects, breadcrumbs, every
candidate image URL and the visible page text.

No pricing or attribute logic lives here.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Page text handed to the semantic collaborator is capped at this many characters
BODY_TEXT_LIMIT = 8000


@dataclass
class ParsedPage:
    """All structured data extracted from an HTML page."""

    json_ld: list[dict] = field(default_factory=list)
    og_tags: dict[str, str] = field(default_factory=dict)
    twitter_tags: dict[str, str] = field(default_factory=dict)
    meta_tags: dict[str, str] = field(default_factory=dict)
    embedded_json: dict[str, Any] = field(default_factory=dict)
    title: str = ""
    body_text: str = ""
    image_urls: list[str] = field(default_factory=list)  # discovery order, structured sources first
    breadcrumbs: list[str] = field(default_factory=list)  # ordered breadcrumb trail
    notes: list[str] = field(default_factory=list)


def parse_html(html: str, page_url: str = "") -> ParsedPage:
    """Parse an HTML page and extract all structured data sources."""
    soup = BeautifulSoup(html, "lxml")
    notes: list[str] = []

    json_ld = _extract_json_ld(soup, notes)
    og_tags, twitter_tags = _extract_social_tags(soup)
    embedded_json = _extract_embedded_json(soup, notes)
    title_tag = soup.find("title")

    image_urls = _collect_image_candidates(soup, html, json_ld, og_tags, twitter_tags, embedded_json, page_url)

    return ParsedPage(
        json_ld=json_ld,
        og_tags=og_tags,
        twitter_tags=twitter_tags,
        meta_tags=_extract_meta_tags(soup),
        embedded_json=embedded_json,
        title=title_tag.get_text(strip=True) if title_tag else "",
        body_text=_extract_body_text(soup),
        image_urls=image_urls,
        breadcrumbs=_extract_breadcrumbs(json_ld, soup),
        notes=notes,
    )


# ---------------------------------------------------------------------------
# JSON-LD
# ---------------------------------------------------------------------------


def _extract_json_ld(soup: BeautifulSoup, notes: list[str]) -> list[dict]:
    """Extract all JSON-LD blocks from <script type="application/ld+json"> tags."""
    results: list[dict] = []
    for tag in soup.find_all("script", attrs={"type": "application/ld+json"}):
        text = tag.string
        if not text:
            continue
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError):
            notes.append("skipped malformed JSON-LD block")
            continue
        # Some sites wrap JSON-LD in [...] or an @graph
        if isinstance(data, list):
            results.extend(d for d in data if isinstance(d, dict))
        elif isinstance(data, dict):
            graph = data.get("@graph")
            if isinstance(graph, list):
                results.extend(d for d in graph if isinstance(d, dict))
            else:
                results.append(data)
    return results


def find_product_block(json_ld: list[dict]) -> dict | None:
    """First JSON-LD block describing a Product, directly or as the first list item."""
    for block in json_ld:
        if _is_type(block.get("@type"), "Product"):
            return block
        items = block.get("itemListElement")
        if isinstance(items, list) and items and isinstance(items[0], dict):
            first = items[0]
            if isinstance(first.get("item"), dict):
                first = first["item"]
            if _is_type(first.get("@type"), "Product"):
                return first
    return None


def _is_type(value: Any, name: str) -> bool:
    if isinstance(value, list):
        return name in value
    return value == name


# ---------------------------------------------------------------------------
# Open Graph / Twitter / standard meta tags
# ---------------------------------------------------------------------------


def _extract_social_tags(soup: BeautifulSoup) -> tuple[dict[str, str], dict[str, str]]:
    """Extract Open Graph, product: and twitter: meta tags.

    Handles both property= and name= attributes. Keys are stored without prefix.
    """
    og: dict[str, str] = {}
    twitter: dict[str, str] = {}
    for meta in soup.find_all("meta"):
        prop = meta.get("property", "") or meta.get("name", "")
        if not isinstance(prop, str):
            continue
        content = meta.get("content", "")
        if not content:
            continue
        if prop.startswith("og:"):
            og.setdefault(prop[3:], content)
        elif prop.startswith("product:"):
            # Facebook product tags (product:price:amount -> price:amount)
            og.setdefault(prop[8:], content)
        elif prop.startswith("twitter:"):
            twitter.setdefault(prop[8:], content)
    return og, twitter


def _extract_meta_tags(soup: BeautifulSoup) -> dict[str, str]:
    """Extract standard meta tags (description, keywords, image, ...)."""
    tags: dict[str, str] = {}
    for name in ("description", "keywords", "title", "image"):
        meta = soup.find("meta", attrs={"name": name})
        if meta and meta.get("content"):
            tags[name] = meta["content"]
    return tags


# ---------------------------------------------------------------------------
# Embedded JSON state objects
# ---------------------------------------------------------------------------

_WINDOW_GLOBAL_RE = re.compile(r"window\.(__[A-Z][A-Z0-9_]*__)\s*=\s*")


def _extract_embedded_json(soup: BeautifulSoup, notes: list[str]) -> dict[str, Any]:
    """Extract embedded JSON from script tags and window global assignments."""
    results: dict[str, Any] = {}

    # <script type="application/json" id="...">
    for tag in soup.find_all("script"):
        tag_type = (tag.get("type") or "").lower()
        tag_id = tag.get("id")
        if tag_type in ("application/json", "text/json") and tag_id:
            text = tag.string
            if not text:
                continue
            try:
                results[tag_id] = json.loads(text)
            except (json.JSONDecodeError, TypeError):
                notes.append(f"skipped malformed JSON in script#{tag_id}")

    # window.__VARIABLE__ = {...} assignments
    for tag in soup.find_all("script"):
        if tag.get("src") or tag.get("type") in ("application/json", "text/json", "application/ld+json"):
            continue
        text = tag.string
        if not text:
            continue
        for match in _WINDOW_GLOBAL_RE.finditer(text):
            start = match.end()
            while start < len(text) and text[start] in " \t\n\r":
                start += 1
            json_str = brace_match(text, start)
            if not json_str:
                continue
            try:
                results[match.group(1)] = json.loads(json_str)
            except (json.JSONDecodeError, TypeError):
                notes.append(f"skipped malformed JSON for {match.group(1)}")

    return results


def brace_match(text: str, start: int) -> str | None:
    """Extract a balanced JSON object/array from text starting at position start.

    Handles nested braces/brackets and string literals with escaped quotes.
    """
    if start >= len(text) or text[start] not in ("{", "["):
        return None

    depth = 0
    in_string = False
    escape_next = False

    for i in range(start, len(text)):
        c = text[i]
        if escape_next:
            escape_next = False
            continue
        if c == "\\" and in_string:
            escape_next = True
            continue
        if c == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if c in ("{", "["):
            depth += 1
        elif c in ("}", "]"):
            depth -= 1
            if depth == 0:
                return text[start : i + 1]

    return None


# ---------------------------------------------------------------------------
# Body text extraction
# ---------------------------------------------------------------------------


def _extract_body_text(soup: BeautifulSoup) -> str:
    """Extract visible text from the page body, stripping noise elements."""
    body = soup.find("body") or soup

    # Work on a copy so we don't mutate the original
    body_copy = BeautifulSoup(str(body), "lxml")
    for tag_name in ("script", "style", "noscript", "svg", "nav", "header", "footer", "iframe"):
        for el in body_copy.find_all(tag_name):
            el.decompose()

    text = body_copy.get_text(separator=" ", strip=True)
    text = re.sub(r"\s+", " ", text).strip()
    return text[:BODY_TEXT_LIMIT]


# ---------------------------------------------------------------------------
# Image candidates
# ---------------------------------------------------------------------------

_IMAGE_EXT_RE = re.compile(r"\.(?:jpe?g|png|webp|avif|tif)(?:[?#]|$)", re.IGNORECASE)
_IMAGE_HOST_HINT_RE = re.compile(r"(/is/image/|/images/I/|scene7|cloudinary|imgix|/image/)", re.IGNORECASE)

# Amazon: "hiRes":"https://...jpg" in the image block script
_AMAZON_HIRES_RE = re.compile(r'"hiRes"\s*:\s*"(https://[^"]+)"')
_AMAZON_LARGE_RE = re.compile(r'"large"\s*:\s*"(https://[^"]+)"')

# Image-looking URLs anywhere inside inline script state
_SCRIPT_IMAGE_URL_RE = re.compile(
    r"(?:https?:)?//[^\s\"'<>()\\]+?\.(?:jpe?g|png|webp|tif)(?:\?[^\s\"'<>()\\]*)?",
    re.IGNORECASE,
)

_DATA_IMAGE_ATTRS = ("data-old-hires", "data-zoom-image", "data-large-image", "data-zoom", "data-image", "data-main-image")


def _collect_image_candidates(
    soup: BeautifulSoup,
    html: str,
    json_ld: list[dict],
    og_tags: dict[str, str],
    twitter_tags: dict[str, str],
    embedded_json: dict[str, Any],
    page_url: str,
) -> list[str]:
    """Every candidate image URL on the page, highest-confidence sources first."""
    urls: list[str] = []

    def add(raw: Any) -> None:
        if not isinstance(raw, str) or not raw.strip():
            return
        url = _normalize_url(raw, page_url)
        if url.startswith("http"):
            urls.append(url)

    # 1. JSON-LD Product image
    product = find_product_block(json_ld)
    if product:
        for url in _image_values(product.get("image")):
            add(url)

    # 2. Social meta tags
    for key in ("image", "image:secure_url", "image:url"):
        add(og_tags.get(key))
    for key in ("image", "image:src"):
        add(twitter_tags.get(key))
    meta_image = soup.find("meta", attrs={"name": "image"})
    if meta_image:
        add(meta_image.get("content"))

    # 3. Amazon high-resolution hints
    for match in _AMAZON_HIRES_RE.finditer(html):
        add(match.group(1))
    for el in soup.select("[data-old-hires]"):
        add(el.get("data-old-hires"))
    for el in soup.select("[data-a-dynamic-image]"):
        try:
            dynamic = json.loads(el.get("data-a-dynamic-image") or "{}")
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(dynamic, dict):
            # keys are URLs, values [width, height]; largest first
            ranked = sorted(dynamic.items(), key=lambda kv: -max(kv[1]) if isinstance(kv[1], list) and kv[1] else 0)
            for url, _dims in ranked:
                add(url)
    for match in _AMAZON_LARGE_RE.finditer(html):
        add(match.group(1))

    # 4. <img> tags: srcset, then src/data-src
    for img in soup.find_all("img"):
        best = _best_from_srcset(img.get("srcset") or img.get("data-srcset"))
        if best:
            add(best)
        for attr in ("src", "data-src", "data-lazy-src"):
            add(img.get(attr))

    # 5. Other data-* attributes on any element
    for attr in _DATA_IMAGE_ATTRS:
        for el in soup.find_all(attrs={attr: True}):
            add(el.get(attr))

    # 6. Embedded JSON state blobs
    for value in embedded_json.values():
        for url in _urls_in_object(value):
            add(url)

    # 7. Image URLs anywhere in inline scripts
    for tag in soup.find_all("script"):
        if tag.get("src") or not tag.string:
            continue
        for match in _SCRIPT_IMAGE_URL_RE.finditer(tag.string):
            add(match.group(0))

    return [u for u in dict.fromkeys(urls) if _IMAGE_EXT_RE.search(u) or _IMAGE_HOST_HINT_RE.search(u)]


def _image_values(value: Any) -> list[str]:
    """Flatten JSON-LD image values (string, list, ImageObject)."""
    if isinstance(value, str):
        return [value]
    if isinstance(value, dict):
        url = value.get("url") or value.get("contentUrl")
        return [url] if isinstance(url, str) else []
    if isinstance(value, list):
        out: list[str] = []
        for item in value:
            out.extend(_image_values(item))
        return out
    return []


def _urls_in_object(data: Any, depth: int = 0) -> list[str]:
    """Image-looking string values anywhere in a JSON structure."""
    if depth > 10:
        return []
    if isinstance(data, str):
        return [data] if _IMAGE_EXT_RE.search(data) and data.startswith(("http", "//")) else []
    found: list[str] = []
    if isinstance(data, dict):
        for value in data.values():
            found.extend(_urls_in_object(value, depth + 1))
    elif isinstance(data, list):
        for value in data:
            found.extend(_urls_in_object(value, depth + 1))
    return found


def _best_from_srcset(srcset: str | None) -> str | None:
    """Parse an srcset attribute and return the highest-resolution URL.

    Handles both width descriptors (e.g. '800w') and pixel-density
    descriptors (e.g. '2x'). Falls back to the last entry when no
    descriptor is present.
    """
    if not srcset or not isinstance(srcset, str):
        return None

    best_url: str | None = None
    best_value: float = 0

    for entry in srcset.split(","):
        parts = entry.strip().split()
        if not parts or not parts[0]:
            continue
        value: float = 1
        if len(parts) >= 2:
            descriptor = parts[-1].strip().lower()
            try:
                value = float(descriptor[:-1]) if descriptor.endswith(("w", "x")) else 0
            except ValueError:
                value = 0
        if value >= best_value:
            best_url = parts[0]
            best_value = value

    return best_url


def _normalize_url(url: str, page_url: str = "") -> str:
    """Protocol-relative and relative URLs become absolute https URLs."""
    url = url.strip().replace("\\u002F", "/").replace("\\/", "/")
    if url.startswith("//"):
        return "https:" + url
    if page_url and not url.startswith(("http://", "https://", "data:")):
        return urljoin(page_url, url)
    return url


# ---------------------------------------------------------------------------
# Breadcrumb extraction
# ---------------------------------------------------------------------------


def _extract_breadcrumbs(json_ld: list[dict], soup: BeautifulSoup) -> list[str]:
    """Extract breadcrumb trail from JSON-LD, microdata or Amazon's wayfinding bar.

    Returns ordered list of breadcrumb names.
    """
    for block in json_ld:
        if block.get("@type") == "BreadcrumbList":
            items = block.get("itemListElement", [])
            if isinstance(items, list):
                sorted_items = sorted(
                    (i for i in items if isinstance(i, dict)), key=lambda x: x.get("position", 0) or 0
                )
                names = []
                for item in sorted_items:
                    name = item.get("name")
                    if not name and isinstance(item.get("item"), dict):
                        name = item["item"].get("name")
                    if name:
                        names.append(str(name))
                if names:
                    return names

    bc_list = soup.find(itemtype=re.compile(r"schema\.org/BreadcrumbList"))
    if bc_list:
        positioned = []
        for item in bc_list.find_all(itemtype=re.compile(r"schema\.org/ListItem")):
            pos_tag = item.find("meta", attrs={"itemprop": "position"})
            try:
                pos = int(pos_tag["content"]) if pos_tag and pos_tag.get("content") else 999
            except ValueError:
                pos = 999
            name_tag = item.find(attrs={"itemprop": "name"})
            name = name_tag.get_text(strip=True) if name_tag else ""
            if name:
                positioned.append((pos, name))
        if positioned:
            positioned.sort(key=lambda x: x[0])
            return [name for _, name in positioned]

    # Amazon wayfinding breadcrumbs
    wayfinding = soup.select("#wayfinding-breadcrumbs_feature_div a.a-link-normal, #wayfinding-breadcrumbs_container a")
    names = [a.get_text(" ", strip=True) for a in wayfinding]
    return [n for n in names if n]
