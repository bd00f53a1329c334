"""
Product extraction pipeline: fetch cascade + heuristic pass + semantic fallback.

Stages:
  A) Fetch the page: rendering proxy, then a direct request, else URL only
  B) Heuristic pass over the HTML (structured data, prices, image, category,
     attributes, variants, reviews), or a guess from the URL when blocked
  C) Semantic fallback for required fields the heuristics left empty
  D) Final assembly: entity decoding, attribute dedup, last image check

Each stage takes and returns a frozen ProductRecord. Component diagnostics are
gathered on an ExtractionTrace and logged here, at the boundary.
"""

import logging
import re
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import unquote, urlparse

import httpx

import ai
from attributes import AttributeResult, extract_attributes
from config import Settings
from entities import decode_entities
from errors import InvalidInputError, RateLimitedError, UpstreamMalformedError, UpstreamUnavailableError
from fetcher import fetch_page
from images import ImageChoice, is_marketing_image, is_usable_candidate
from models import DEFAULT_CATEGORY, ProductRecord, SemanticProduct, dedupe_attributes
from parser import ParsedPage, parse_html
from prices import PriceResolution
from reviews import detect_badges, extract_rating, extract_review_count, extract_stock_status
from sites import SiteAdapter, adapter_for, hostname, store_name
from structured import StructuredData, extract_structured_data
from taxonomy import classify
from textutil import visible_text
from variants import VariantSelection, apply_variants, resolve_variants

logger = logging.getLogger(__name__)

BLOCKED_NOTICE = (
    "This site blocked automated access, so details were guessed from the link. "
    "Please verify them and fill in anything missing."
)
IMAGE_NOTICE = "We couldn't determine the product image automatically. Please add an image manually."
HEURISTIC_ONLY_NOTICE = "Product details were extracted without AI assistance and may be incomplete."
GIFT_IDEA_NOTICE = "Product details generated from your gift idea. You can refine by pasting a specific product URL."

# Empty required fields trigger the semantic fallback
REQUIRED_FIELDS = ("product_name", "price", "image_url")

PRODUCT_FIELDS = [
    "product_name",
    "price",
    "original_price",
    "sale_price",
    "description",
    "image_url",
    "category",
    "stock_status",
    "rating",
    "review_count",
    "attributes",
]

DESCRIPTION_LIMIT = 2000
PROMPT_TEXT_LIMIT = 6000


# ===== Trace =====


@dataclass
class ExtractionTrace:
    """Per-request diagnostics collected during extraction."""

    url: str = ""
    site: str = ""
    fetch_strategy: str = "none"
    # Stage timing (seconds)
    fetch_time: float = 0.0
    heuristic_time: float = 0.0
    semantic_time: float = 0.0
    total_time: float = 0.0
    # Field provenance
    fields_from_heuristics: list[str] = field(default_factory=list)
    fields_from_semantic: list[str] = field(default_factory=list)
    fields_missing_after_all: list[str] = field(default_factory=list)
    # Semantic usage
    semantic_calls: int = 0
    semantic_skipped: str = ""  # why the fallback did not run, if it did not
    semantic_error: str | None = None
    # Which rule produced the headline values
    price_source: str = ""
    image_rule: str = ""
    category: str = ""
    events: list[str] = field(default_factory=list)

    def record(self, stage: str, notes: Iterable[str]) -> None:
        self.events.extend(f"{stage}: {note}" for note in notes)

    def log(self) -> None:
        for event in self.events:
            logger.debug(f"  {event}")
        missing = ", ".join(self.fields_missing_after_all) or "none"
        logger.info(
            f"{self.url} [{self.site}] via {self.fetch_strategy}: "
            f"{len(self.fields_from_heuristics)} heuristic, {len(self.fields_from_semantic)} semantic, "
            f"missing {missing} ({self.total_time:.2f}s)"
        )


@dataclass
class ExtractionOutcome:
    product: ProductRecord
    trace: ExtractionTrace


def filled_fields(record: ProductRecord) -> list[str]:
    filled = []
    for f in PRODUCT_FIELDS:
        value = getattr(record, f)
        if value is None or value == "" or value == {} or (f == "category" and value == DEFAULT_CATEGORY):
            continue
        if f == "stock_status" and value == "Unknown":
            continue
        filled.append(f)
    return filled


def _with(draft: ProductRecord, **update: Any) -> ProductRecord:
    """Copy of a draft with updates applied; validators run on the result."""
    return ProductRecord.model_validate({**draft.model_dump(), **update})


# =====================================================================
# Name and description fallbacks
# =====================================================================

_WS_RE = re.compile(r"\s+")
_AMAZON_TITLE_RE = re.compile(r"id=\"productTitle\"[^>]*>\s*([^<]+?)\s*<")
_AMAZON_TITLE_PREFIX_RE = re.compile(r"^\s*Amazon(?:\.com)?\s*:\s*", re.IGNORECASE)
_AMAZON_TITLE_SUFFIX_RE = re.compile(r"\s+:\s+[^:]+$")
_TITLE_SEPARATOR_RE = re.compile(r"\s+(?:\||-|\u2013|\u2014)\s+")


def _collapse(text: str | None) -> str | None:
    if not text:
        return None
    text = _WS_RE.sub(" ", text).strip()
    return text or None


def clean_page_title(title: str, store: str = "") -> str | None:
    """Drop store decorations from a <title>.

    Segments after "|" are always decoration; segments after a dash only when
    they name the store.
    """
    title = _collapse(title) or ""
    if _AMAZON_TITLE_PREFIX_RE.match(title):
        title = _AMAZON_TITLE_SUFFIX_RE.sub("", _AMAZON_TITLE_PREFIX_RE.sub("", title))
    store_word = store.lower().split(" ")[0] if store else ""
    while True:
        separators = list(_TITLE_SEPARATOR_RE.finditer(title))
        if not separators:
            break
        last = separators[-1]
        tail = title[last.end() :].lower()
        if last.group(0).strip() == "|" or ".com" in tail or (store_word and store_word in tail):
            title = title[: last.start()]
        else:
            break
    return title.strip() or None


def product_name_from_page(structured: StructuredData, parsed: ParsedPage, html: str, store: str = "") -> str | None:
    for candidate in (structured.name, parsed.og_tags.get("title")):
        if _collapse(candidate):
            return _collapse(candidate)
    match = _AMAZON_TITLE_RE.search(html)
    if match and _collapse(match.group(1)):
        return _collapse(match.group(1))
    return clean_page_title(parsed.title, store) if parsed.title else None


def description_from_page(structured: StructuredData, parsed: ParsedPage) -> str | None:
    for candidate in (structured.description, parsed.og_tags.get("description"), parsed.meta_tags.get("description")):
        text = _collapse(candidate)
        if text:
            return text[:DESCRIPTION_LIMIT]
    return None


_ID_SEGMENT_RE = re.compile(r"^(?:dp|gp|product|products|p|ip|shop|item|s)$|^[A-Z0-9]{8,}$|^\d+$", re.IGNORECASE)


def product_name_from_url(url: str) -> str | None:
    """Best-effort name from the URL slug, e.g. ``vince-camuto-womens-cozy-sweater``."""
    try:
        path = urlparse(url).path
    except ValueError:
        return None
    best = ""
    for segment in path.split("/"):
        segment = re.sub(r"\.(?:html?|aspx|php)$", "", unquote(segment))
        if not segment or _ID_SEGMENT_RE.match(segment) or not re.search(r"[A-Za-z]", segment):
            continue
        if ("-" in segment or "_" in segment) and len(segment) > len(best):
            best = segment
    if not best:
        return None
    words = [w for w in re.split(r"[-_+]+", best) if w]
    return " ".join(w if w.isupper() else w.capitalize() for w in words) or None


# =====================================================================
# Enrich steps
# =====================================================================


def enrich_with_structured_data(
    draft: ProductRecord, structured: StructuredData, parsed: ParsedPage, html: str
) -> ProductRecord:
    return _with(
        draft,
        product_name=draft.product_name or product_name_from_page(structured, parsed, html, draft.store_name),
        description=draft.description or description_from_page(structured, parsed),
    )


def enrich_with_price_resolution(draft: ProductRecord, res: PriceResolution) -> ProductRecord:
    return _with(
        draft,
        price=res.price,
        original_price=res.original_price,
        sale_price=res.sale_price,
        discount_percent=res.discount_percent,
    )


def enrich_with_image(draft: ProductRecord, choice: ImageChoice) -> ProductRecord:
    return _with(draft, image_url=choice.url)


def enrich_with_category(draft: ProductRecord, url: str, breadcrumbs: list[str] | None = None) -> ProductRecord:
    return _with(draft, category=classify(draft.product_name, url, breadcrumbs))


def enrich_with_attributes(draft: ProductRecord, result: AttributeResult, adapter: SiteAdapter) -> ProductRecord:
    attributes = dedupe_attributes([*draft.attributes.items(), *result.attributes.items()])
    if not attributes.get("brand"):
        brand = adapter.resolve_brand_default(draft.product_name)
        if brand:
            attributes["brand"] = brand
    return _with(draft, attributes=attributes)


def enrich_with_variants(draft: ProductRecord, selection: VariantSelection) -> ProductRecord:
    return _with(draft, attributes=apply_variants(draft.attributes, selection))


def enrich_with_reviews(draft: ProductRecord, html: str, structured: StructuredData) -> ProductRecord:
    amazon_choice, best_seller = detect_badges(html)
    return _with(
        draft,
        rating=extract_rating(html, structured),
        review_count=extract_review_count(html, structured),
        amazon_choice=amazon_choice,
        best_seller=best_seller,
        stock_status=extract_stock_status(html, structured, draft.price),
    )


def enrich_with_semantic(draft: ProductRecord, guess: SemanticProduct, url_only: bool = False) -> ProductRecord:
    """Fill gaps from a semantic guess; heuristic values always win.

    A URL-only guess never supplies a price or an image: with no page there is
    nothing to read them from.
    """
    update: dict[str, Any] = {}
    if not draft.product_name and guess.product_name:
        update["product_name"] = guess.product_name
    if not draft.description and guess.description:
        update["description"] = guess.description[:DESCRIPTION_LIMIT]
    if draft.category == DEFAULT_CATEGORY and guess.category:
        update["category"] = guess.category
    if draft.stock_status == "Unknown" and guess.stock_status:
        update["stock_status"] = guess.stock_status
    if not url_only:
        if draft.price is None and guess.price is not None:
            update["price"] = guess.price
            update["sale_price"] = guess.price
        if not draft.image_url and guess.image_url and is_usable_candidate(guess.image_url):
            update["image_url"] = guess.image_url
    update["attributes"] = dedupe_attributes([*draft.attributes.items(), *guess.attributes.items()])
    return _with(draft, **update)


def _decode(value: Any) -> Any:
    if isinstance(value, str):
        return decode_entities(value).strip()
    if isinstance(value, list):
        return [decode_entities(v).strip() for v in value if isinstance(v, str)]
    return value


def finalize(draft: ProductRecord, notices: Iterable[str] = ()) -> ProductRecord:
    """Decode entities once, dedupe attributes and re-check the image."""
    notices = [n for n in (draft.notice, *notices) if n]

    image = draft.image_url
    if image and is_marketing_image(image):
        image = None
        notices.append(IMAGE_NOTICE)

    attributes = dedupe_attributes((k, _decode(v)) for k, v in draft.attributes.items())
    mirrors = {key: attributes.get(key) if isinstance(attributes.get(key), str) else None for key in ("color", "style", "configuration")}

    return _with(
        draft,
        product_name=_decode(draft.product_name) or None,
        description=_decode(draft.description) or None,
        store_name=_decode(draft.store_name) or "",
        image_url=image,
        attributes=attributes,
        set_=attributes.get("set") if isinstance(attributes.get("set"), str) else None,
        product_url_for_image_extraction=draft.product_link if image is None and draft.product_link else None,
        notice=" ".join(dict.fromkeys(notices)) or None,
        **mirrors,
    )


# =====================================================================
# Stage B: heuristic pass
# =====================================================================


def heuristic_pass(html: str, url: str, adapter: SiteAdapter, trace: ExtractionTrace) -> ProductRecord:
    """Run every heuristic component against fetched HTML."""
    draft = ProductRecord(product_link=url, store_name=store_name(url))

    parsed = parse_html(html, url)
    structured = extract_structured_data(html, parsed)
    trace.record("structured", structured.notes)
    draft = enrich_with_structured_data(draft, structured, parsed, html)

    res = adapter.resolve_price(html, structured.price)
    trace.record("price", res.notes)
    trace.price_source = res.source
    draft = enrich_with_price_resolution(draft, res)

    candidates = [structured.image, *parsed.image_urls] if structured.image else parsed.image_urls
    choice = adapter.resolve_image(candidates, html)
    trace.record("image", choice.notes)
    trace.image_rule = choice.rule
    if not choice.url:
        url_image = adapter.image_from_url(url)
        if url_image:
            choice = ImageChoice(url=url_image, rule="from-url")
            trace.image_rule = choice.rule
    draft = enrich_with_image(draft, choice)

    # Breadcrumb trails are only a reliable category signal on Amazon
    draft = enrich_with_category(draft, url, parsed.breadcrumbs if adapter.name == "amazon" else None)
    trace.category = draft.category

    result = extract_attributes(html, hostname(url), draft.product_name, draft.category, structured, url)
    trace.record("attributes", result.notes)
    draft = enrich_with_attributes(draft, result, adapter)

    if adapter.name == "amazon":
        selection = resolve_variants(html, draft.product_name)
        trace.record("variants", selection.notes)
        draft = enrich_with_variants(draft, selection)

    return enrich_with_reviews(draft, html, structured)


def guess_from_url(url: str, adapter: SiteAdapter, trace: ExtractionTrace) -> ProductRecord:
    """No HTML: only what the URL itself says."""
    name = product_name_from_url(url)
    draft = ProductRecord(
        product_name=name,
        product_link=url,
        store_name=store_name(url),
        image_url=adapter.image_from_url(url),
        notice=BLOCKED_NOTICE,
    )
    draft = enrich_with_category(draft, url)
    trace.category = draft.category
    result = extract_attributes("", hostname(url), name, draft.category, page_url=url)
    trace.record("attributes", result.notes)
    return enrich_with_attributes(draft, result, adapter)


def extract_from_html(html: str, url: str) -> ExtractionOutcome:
    """Heuristic-only extraction of an already fetched page. No network."""
    adapter = adapter_for(url)
    trace = ExtractionTrace(url=url, site=adapter.name, fetch_strategy="none", semantic_skipped="offline")
    t0 = time.monotonic()
    draft = heuristic_pass(html, url, adapter, trace)
    trace.fields_from_heuristics = filled_fields(draft)
    product = finalize(draft, [] if draft.image_url else [IMAGE_NOTICE])
    trace.heuristic_time = trace.total_time = time.monotonic() - t0
    trace.fields_missing_after_all = [f for f in PRODUCT_FIELDS if f not in filled_fields(product)]
    return ExtractionOutcome(product=product, trace=trace)


# =====================================================================
# Stage C: semantic fallback
# =====================================================================

SEMANTIC_SYSTEM_PROMPT = (
    "You extract product details for a wishlist. Reply with one JSON object only, no prose, using the keys "
    "productName, price (number, no currency symbol), description, storeName, category, imageUrl, stockStatus "
    "and attributes (an object with keys such as brand, color, size, material). Use null for anything you "
    "cannot determine. Never invent prices or image URLs."
)


def build_page_prompt(url: str, page_text: str, image_url: str | None) -> str:
    parts = [f"Product URL: {url}"]
    if image_url:
        parts.append(f"Best product image found so far: {image_url}")
    parts.append(f"\nPage text:\n{page_text[:PROMPT_TEXT_LIMIT]}")
    return "\n".join(parts)


def build_url_prompt(url: str) -> str:
    return (
        f"The page at this URL could not be loaded: {url}\n"
        "Infer the product name, brand, category and color from the URL path only. "
        "Set price and imageUrl to null."
    )


def build_gift_prompt(idea: str) -> str:
    return (
        f"A shopper described a gift idea: {idea!r}\n"
        "Suggest one concrete, currently popular best-selling product that matches it, with a typical "
        "retail price in USD, the store that usually sells it, a short description and its key attributes. "
        "Set imageUrl to null."
    )


def _missing_required(draft: ProductRecord) -> list[str]:
    return [f for f in REQUIRED_FIELDS if getattr(draft, f) in (None, "")]


async def semantic_fallback(
    draft: ProductRecord, prompt: str, trace: ExtractionTrace, url_only: bool = False
) -> tuple[ProductRecord, str | None]:
    """Ask the semantic collaborator to fill gaps.

    Returns the draft and an optional notice. Rate limits, outages and
    malformed replies leave the heuristic draft in place; an authentication
    failure propagates.
    """
    t0 = time.monotonic()
    trace.semantic_calls += 1
    try:
        guess = await ai.responses(
            model=None,
            input=[
                {"role": "system", "content": SEMANTIC_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            text_format=SemanticProduct,
        )
    except RateLimitedError as e:
        logger.warning(f"  Semantic fallback rate limited: {e.message}")
        trace.semantic_error = "rate_limited"
        return draft, HEURISTIC_ONLY_NOTICE
    except (UpstreamMalformedError, UpstreamUnavailableError) as e:
        logger.warning(f"  Semantic fallback failed ({e.status_code}): {e.message}")
        trace.semantic_error = type(e).__name__
        return draft, HEURISTIC_ONLY_NOTICE
    finally:
        trace.semantic_time = time.monotonic() - t0

    before = set(filled_fields(draft))
    enriched = enrich_with_semantic(draft, guess, url_only=url_only)
    trace.fields_from_semantic = [f for f in filled_fields(enriched) if f not in before]
    return enriched, None


# =====================================================================
# Entry points
# =====================================================================


def is_product_url(value: str) -> bool:
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and "." in (parsed.hostname or "")


async def extract_product(
    url: str, client: httpx.AsyncClient | None = None, settings: Settings | None = None
) -> ExtractionOutcome:
    """Full pipeline for one product URL. Always returns a record for a valid URL."""
    if not is_product_url(url):
        raise InvalidInputError(f"Not a product URL: {url!r}")
    settings = settings or ai.settings()
    adapter = adapter_for(url)
    trace = ExtractionTrace(url=url, site=adapter.name)
    t_start = time.monotonic()

    # Stage A: fetch
    t0 = time.monotonic()
    if client is None:
        async with httpx.AsyncClient() as own_client:
            fetched = await fetch_page(url, own_client, settings)
    else:
        fetched = await fetch_page(url, client, settings)
    trace.fetch_time = time.monotonic() - t0
    trace.fetch_strategy = fetched.strategy
    trace.record("fetch", fetched.notes)
    if not fetched.ok:
        logger.warning(f"  No HTML for {url}; guessing from the URL")

    # Stage B: heuristics
    t0 = time.monotonic()
    if fetched.html:
        draft = heuristic_pass(fetched.html, url, adapter, trace)
    else:
        draft = guess_from_url(url, adapter, trace)
    draft = _with(draft, fetch_strategy=fetched.strategy)
    trace.heuristic_time = time.monotonic() - t0
    trace.fields_from_heuristics = filled_fields(draft)

    # Stage C: semantic fallback
    notices: list[str] = []
    missing = _missing_required(draft)
    if not missing:
        trace.semantic_skipped = "complete"
    elif not ai.is_configured():
        trace.semantic_skipped = "not_configured"
    else:
        logger.info(f"  Semantic fallback for {', '.join(missing)}")
        if fetched.html:
            page_text = visible_text(fetched.html, PROMPT_TEXT_LIMIT)
            image = draft.image_url if draft.image_url and not is_marketing_image(draft.image_url) else None
            prompt = build_page_prompt(url, page_text, image)
        else:
            prompt = build_url_prompt(url)
        draft, notice = await semantic_fallback(draft, prompt, trace, url_only=not fetched.html)
        if notice:
            notices.append(notice)

    # Stage D: assembly
    if fetched.html and not draft.image_url:
        notices.append(IMAGE_NOTICE)
    product = finalize(draft, notices)

    trace.total_time = time.monotonic() - t_start
    trace.fields_missing_after_all = [f for f in PRODUCT_FIELDS if f not in filled_fields(product)]
    trace.log()
    return ExtractionOutcome(product=product, trace=trace)


async def extract_gift_idea(idea: str) -> ExtractionOutcome:
    """Turn a free-text gift idea into a product suggestion."""
    idea = idea.strip()
    if not idea:
        raise InvalidInputError("Missing url or productUrl")
    if not ai.is_configured():
        raise InvalidInputError(
            f"Not a product URL: {idea[:80]!r}",
            suggestion="Paste a full product URL; gift ideas need AI extraction, which is not configured.",
        )
    trace = ExtractionTrace(url=idea[:80], site="gift_idea", fetch_strategy="gift_idea")
    t0 = time.monotonic()
    trace.semantic_calls = 1
    guess = await ai.responses(
        model=None,
        input=[
            {"role": "system", "content": SEMANTIC_SYSTEM_PROMPT},
            {"role": "user", "content": build_gift_prompt(idea)},
        ],
        text_format=SemanticProduct,
    )
    draft = ProductRecord(
        product_name=guess.product_name,
        price=guess.price,
        sale_price=guess.price,
        description=(guess.description or "")[:DESCRIPTION_LIMIT] or None,
        store_name=guess.store_name or "",
        category=guess.category or DEFAULT_CATEGORY,
        stock_status=guess.stock_status or "Unknown",
        attributes=guess.attributes,
        notice=GIFT_IDEA_NOTICE,
        fetch_strategy="gift_idea",
        is_from_gift_idea=True,
    )
    product = finalize(draft)
    trace.fields_from_semantic = filled_fields(product)
    trace.semantic_time = trace.total_time = time.monotonic() - t0
    trace.fields_missing_after_all = [f for f in PRODUCT_FIELDS if f not in trace.fields_from_semantic]
    trace.log()
    return ExtractionOutcome(product=product, trace=trace)
