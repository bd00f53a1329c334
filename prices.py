"""
Price resolver: current, original and sale price plus discount percentage.

Tiers run from most to least trustworthy. Each tier only fills fields that are
still empty, except that a validated Macy's/Tommy discount pair replaces a
current price taken from the loose document regexes. ``reconcile`` then
enforces the cross-field invariants (original strictly above sale, equal prices
mean no discount, 2-decimal rounding). Nothing here logs; every decision is
recorded in ``notes``.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from textutil import discount_percent, first_some, has_cents, parse_amount, visible_text


@dataclass(frozen=True)
class PriceResolution:
    price: float | None = None
    original_price: float | None = None
    sale_price: float | None = None
    discount_percent: float | None = None
    source: str = ""
    notes: tuple[str, ...] = field(default_factory=tuple)

    def fill(self, source: str, note: str = "", **values: float | None) -> "PriceResolution":
        """Set only the fields that are still empty."""
        updates = {k: v for k, v in values.items() if v is not None and getattr(self, k) is None}
        if not updates:
            return self
        notes = self.notes + ((note or f"{source}: {sorted(updates)}"),)
        return replace(self, source=self.source or source, notes=notes, **updates)

    def override(self, source: str, note: str, **values: float | None) -> "PriceResolution":
        """Replace fields outright, including ones an earlier tier set."""
        return replace(self, source=source, notes=self.notes + (note,), **values)

    def note(self, message: str) -> "PriceResolution":
        return replace(self, notes=self.notes + (message,))


@dataclass(frozen=True)
class CandidatePrice:
    value: float
    source_offset: int
    has_decimal_precision: bool


# Sanity range for any single parsed price
PRICE_MIN, PRICE_MAX = 0.0, 100_000.0
# Individual Macy's/Tommy price patterns are bounded tighter
INDIVIDUAL_MIN, INDIVIDUAL_MAX = 1.0, 10_000.0

_AMOUNT = r"(\d[\d,]*(?:\.\d{1,2})?)"
_DECIMAL = r"(\d[\d,]*\.\d{2})"
_TAGS = r"(?:\s*<[^>]+>)*\s*"


def _in_discount_range(original: float, sale: float, low: float, high: float) -> bool:
    if original <= 0 or sale >= original:
        return False
    return low <= discount_percent(original, sale) <= high


# ---------------------------------------------------------------------------
# Generic tier
# ---------------------------------------------------------------------------

_OG_PRICE_RE = re.compile(
    r"<meta[^>]+(?:property|name)=[\"'](?:og|product):price:amount[\"'][^>]*content=[\"']\$?" + _AMOUNT,
    re.IGNORECASE,
)
_OG_PRICE_REVERSED_RE = re.compile(
    r"<meta[^>]+content=[\"']\$?" + _AMOUNT + r"[\"'][^>]*(?:property|name)=[\"'](?:og|product):price:amount[\"']",
    re.IGNORECASE,
)
_JSON_PRICE_RE = re.compile(r"\"price\"\s*:\s*\"?\$?" + _AMOUNT + r"\"?")
_DATA_PRICE_RE = re.compile(r"data-price=[\"']\$?" + _AMOUNT + r"[\"']", re.IGNORECASE)
_CLASS_PRICE_RE = re.compile(
    r"<(?:span|div)[^>]*class=[\"'][^\"']*price[^\"']*[\"'][^>]*>\s*\$\s*" + _AMOUNT,
    re.IGNORECASE,
)


def _og_price(html: str, json_ld_price: float | None) -> float | None:
    for pattern in (_OG_PRICE_RE, _OG_PRICE_REVERSED_RE):
        match = pattern.search(html)
        if match:
            value = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
            if value is not None:
                return value
    return None


def _json_ld_price(html: str, json_ld_price: float | None) -> float | None:
    return parse_amount(json_ld_price, PRICE_MIN, PRICE_MAX)


def _regex_price(pattern: re.Pattern) -> Callable[[str, float | None], float | None]:
    def strategy(html: str, json_ld_price: float | None) -> float | None:
        for match in pattern.finditer(html):
            value = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
            if value is not None:
                return value
        return None

    return strategy


GENERIC_REGEX_SOURCE = "generic-regex"

GENERIC_STRUCTURED_STRATEGIES = [_og_price, _json_ld_price]
GENERIC_FALLBACK_STRATEGIES = [
    _regex_price(_JSON_PRICE_RE),
    _regex_price(_DATA_PRICE_RE),
    _regex_price(_CLASS_PRICE_RE),
]


def resolve_generic(
    html: str,
    json_ld_price: float | None = None,
    base: PriceResolution | None = None,
    include_fallbacks: bool = True,
) -> PriceResolution:
    """Meta price, then JSON-LD offers price, then bounded document regexes."""
    res = base or PriceResolution()
    if res.price is not None:
        return res
    value = first_some(GENERIC_STRUCTURED_STRATEGIES, html, json_ld_price)
    if value is not None:
        return res.fill("generic", f"generic price {value}", price=value, sale_price=value)
    if not include_fallbacks:
        return res
    value = first_some(GENERIC_FALLBACK_STRATEGIES, html, json_ld_price)
    if value is None:
        return res
    return res.fill(GENERIC_REGEX_SOURCE, f"generic regex price {value}", price=value, sale_price=value)


# ---------------------------------------------------------------------------
# Amazon tier
# ---------------------------------------------------------------------------

_AMAZON_WHOLE_RE = re.compile(r"<span[^>]*class=\"[^\"]*\ba-price-whole\b[^\"]*\"[^>]*>\s*([\d,]+)")
_AMAZON_FRACTION_RE = re.compile(r"<span[^>]*class=\"[^\"]*\ba-price-fraction\b[^\"]*\"[^>]*>\s*(\d{1,2})")
# class attribute whose token is exactly a-price (not a-price-whole etc.)
_AMAZON_CONTAINER_RE = re.compile(r"class=\"(?:[^\"]*\s)?a-price(?:\s[^\"]*)?\"")
_AMAZON_SCOPE_RE = re.compile(
    r"id=\"(?:corePriceDisplay_desktop_feature_div|corePrice_feature_div|corePrice_desktop|apex_desktop)\""
)
_AMAZON_SCOPE_LENGTH = 6000
_CONTAINER_SPAN = 500
_FRACTION_PAIR_DISTANCE = 200

# "66% off" or "-66%", but not CSS like translate(-50%,-50%)
_STATED_PERCENT_RE = re.compile(
    r"(?<![\d.])(\d{1,2})\s*%\s*off\b|(?<![\w,(])-\s?(\d{1,2})\s*%(?!\s*[,)\d])",
    re.IGNORECASE,
)
_LIST_PRICE_RE = re.compile(
    r"(?:List Price|Was|Typical price)\s*:?" + _TAGS + r"\$\s*" + _DECIMAL,
    re.IGNORECASE,
)
_TEXT_PRICE_RE = re.compile(
    r"class=\"[^\"]*\ba-text-price\b[^\"]*\"[^>]*>\s*<span class=\"a-offscreen\">\s*\$" + _DECIMAL
)


def _amazon_scope(html: str) -> str:
    match = _AMAZON_SCOPE_RE.search(html)
    if not match:
        return html
    return html[match.start() : match.start() + _AMAZON_SCOPE_LENGTH]


def _fragment_value(whole: str, fraction: str | None) -> float | None:
    whole = whole.replace(",", "")
    if fraction is None:
        return parse_amount(whole, PRICE_MIN, PRICE_MAX)
    return parse_amount(f"{whole}.{fraction.ljust(2, '0')}", PRICE_MIN, PRICE_MAX)


def fragment_candidates(html: str) -> list[CandidatePrice]:
    """Reassemble a-price-whole / a-price-fraction fragments into candidate prices.

    Co-located fragments inside one a-price container are paired first; any
    remaining whole is paired with its nearest unused fraction, else kept as
    an integer-only candidate.
    """
    containers = [m.start() for m in _AMAZON_CONTAINER_RE.finditer(html)]
    wholes = [(m.start(), m.group(1)) for m in _AMAZON_WHOLE_RE.finditer(html)]
    fractions = [(m.start(), m.group(1)) for m in _AMAZON_FRACTION_RE.finditer(html)]
    used_wholes: set[int] = set()
    used_fractions: set[int] = set()
    candidates: list[CandidatePrice] = []

    for idx, start in enumerate(containers):
        next_start = containers[idx + 1] if idx + 1 < len(containers) else len(html)
        end = min(next_start, start + _CONTAINER_SPAN)
        w = next((i for i, (pos, _) in enumerate(wholes) if start < pos < end and i not in used_wholes), None)
        if w is None:
            continue
        f = next(
            (j for j, (pos, _) in enumerate(fractions) if wholes[w][0] < pos < end and j not in used_fractions),
            None,
        )
        if f is None:
            continue
        value = _fragment_value(wholes[w][1], fractions[f][1])
        if value is None:
            continue
        used_wholes.add(w)
        used_fractions.add(f)
        candidates.append(CandidatePrice(value, wholes[w][0], True))

    for i, (pos, whole) in enumerate(wholes):
        if i in used_wholes:
            continue
        nearby = [
            j
            for j, (fpos, _) in enumerate(fractions)
            if j not in used_fractions and abs(fpos - pos) <= _FRACTION_PAIR_DISTANCE
        ]
        if nearby:
            j = min(nearby, key=lambda j: abs(fractions[j][0] - pos))
            value = _fragment_value(whole, fractions[j][1])
            if value is not None:
                used_fractions.add(j)
                candidates.append(CandidatePrice(value, pos, True))
                continue
        value = _fragment_value(whole, None)
        if value is not None:
            candidates.append(CandidatePrice(value, pos, False))

    return candidates


def dedupe_candidates(candidates: list[CandidatePrice]) -> list[CandidatePrice]:
    """One candidate per value; integer-only matches lose to decimal ones with the same dollars."""
    decimal_dollars = {int(c.value) for c in candidates if c.has_decimal_precision}
    unique: dict[float, CandidatePrice] = {}
    for cand in sorted(candidates, key=lambda c: (not c.has_decimal_precision, c.source_offset)):
        if not cand.has_decimal_precision and int(cand.value) in decimal_dollars:
            continue
        unique.setdefault(cand.value, cand)
    return sorted(unique.values(), key=lambda c: c.source_offset)


def _stated_percent(text: str) -> float | None:
    for match in _STATED_PERCENT_RE.finditer(text):
        value = match.group(1) or match.group(2)
        if value and 0 < int(value) < 100:
            return float(value)
    return None


def _pick_discount(original: float, sale: float, stated: float | None) -> float:
    computed = discount_percent(original, sale)
    if stated is not None and abs(stated - computed) <= 1:
        return stated
    return computed


def _higher_list_price(html: str, current: float) -> float | None:
    for pattern in (_TEXT_PRICE_RE, _LIST_PRICE_RE):
        for match in pattern.finditer(html):
            value = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
            if value is not None and value > current and _in_discount_range(value, current, 0.1, 95):
                return value
    return None


def _amazon_fragments(html: str, res: PriceResolution) -> PriceResolution:
    scope = _amazon_scope(html)
    unique = dedupe_candidates(fragment_candidates(scope))
    if not unique:
        return res

    if len(unique) >= 2:
        high = max(c.value for c in unique)
        low = min(c.value for c in unique)
        if _in_discount_range(high, low, 0.1, 95):
            pct = _pick_discount(high, low, _stated_percent(visible_text(scope)))
            return res.fill(
                "amazon-fragments",
                f"fragment pair {high} -> {low} ({pct}%)",
                price=low,
                sale_price=low,
                original_price=high,
                discount_percent=pct,
            )
        res = res.note(f"fragment pair {high}/{low} outside discount range")

    first = unique[0]
    res = res.fill("amazon-fragments", f"fragment price {first.value}", price=first.value, sale_price=first.value)
    if res.original_price is None and res.price is not None:
        original = _higher_list_price(scope, res.price) or _higher_list_price(html, res.price)
        if original is not None:
            res = res.fill("amazon-list-price", f"list price {original}", original_price=original)
    return res


_DISCOUNT_TEXT_RE = re.compile(
    r"(?<![\w,(])-\s?(\d{1,2})\s*%(?!\s*[,)])" + _TAGS + r"(?:[^$<]{0,40}?)?\$?\s*" + _DECIMAL
)


def _amazon_discount_text(html: str, res: PriceResolution) -> PriceResolution:
    if res.original_price is not None:
        return res
    for match in _DISCOUNT_TEXT_RE.finditer(html):
        stated = float(match.group(1))
        sale = parse_amount(match.group(2), PRICE_MIN, PRICE_MAX)
        if sale is None:
            continue
        window = html[match.end() : match.end() + 2000]
        list_match = _LIST_PRICE_RE.search(window)
        if not list_match:
            continue
        original = parse_amount(list_match.group(1), PRICE_MIN, PRICE_MAX)
        if original is None or original <= sale:
            continue
        if abs(discount_percent(original, sale) - stated) <= 5:
            return res.fill(
                "amazon-discount-text",
                f"stated -{stated:g}% with list price {original}",
                price=sale,
                sale_price=sale,
                original_price=original,
                discount_percent=_pick_discount(original, sale, stated),
            )
    return res


_LIST_ANCHOR_RE = re.compile(r"List Price\s*:?" + _TAGS + r"\$\s*" + _DECIMAL, re.IGNORECASE)
_CURRENT_PRICE_PATTERNS = (
    re.compile(r"Your Price\s*:?" + _TAGS + r"\$\s*" + _DECIMAL, re.IGNORECASE),
    re.compile(r"(?<!List )Price\s*:?" + _TAGS + r"\$\s*" + _DECIMAL, re.IGNORECASE),
    re.compile(r"Deal Price\s*:?" + _TAGS + r"\$\s*" + _DECIMAL, re.IGNORECASE),
)


def _price_after_list(window: str, original: float) -> float | None:
    for pattern in _CURRENT_PRICE_PATTERNS:
        for match in pattern.finditer(window):
            value = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
            if value is not None and original - value >= 0.01:
                return value
    # Nested a-price fragments inside the window
    for cand in dedupe_candidates(fragment_candidates(window)):
        if cand.has_decimal_precision and original - cand.value >= 0.01:
            return cand.value
    return None


def _list_then_price(window_size: int) -> Callable[[str, PriceResolution], PriceResolution]:
    def tier(html: str, res: PriceResolution) -> PriceResolution:
        if res.original_price is not None:
            return res
        for match in _LIST_ANCHOR_RE.finditer(html):
            original = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
            if original is None:
                continue
            current = _price_after_list(html[match.end() : match.end() + window_size], original)
            if current is not None and _in_discount_range(original, current, 0.1, 95):
                return res.fill(
                    f"amazon-list-proximity-{window_size}",
                    f"list price {original} then price {current}",
                    price=current,
                    sale_price=current,
                    original_price=original,
                )
        return res

    return tier


_JSON_ORIGINAL_RE = re.compile(r"\"(?:listPrice|originalPrice|wasPrice)\"\s*:\s*\"?\$?" + _AMOUNT)
_JSON_CURRENT_RE = re.compile(r"\"(?:price|currentPrice|salePrice)\"\s*:\s*\"?\$?" + _AMOUNT)


def _json_variable_pair(
    html: str,
    original_re: re.Pattern,
    current_re: re.Pattern,
    window: int,
    accept: Callable[[float, float], bool],
) -> tuple[float, float] | None:
    for match in original_re.finditer(html):
        original = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
        if original is None:
            continue
        lo, hi = max(0, match.start() - window), match.end() + window
        for near in current_re.finditer(html, lo, hi):
            current = parse_amount(near.group(1), PRICE_MIN, PRICE_MAX)
            if current is not None and accept(original, current):
                return original, current
    return None


def _amazon_json_pairs(html: str, res: PriceResolution) -> PriceResolution:
    if res.original_price is not None:
        return res
    pair = _json_variable_pair(
        html, _JSON_ORIGINAL_RE, _JSON_CURRENT_RE, 2000, lambda o, c: _in_discount_range(o, c, 5, 95)
    )
    if pair is None:
        return res
    original, current = pair
    return res.fill("amazon-json-pair", price=current, sale_price=current, original_price=original)


_PENNY_JSON_RE = re.compile(r"\"price\"\s*:\s*(\d+\.\d{2})\b")
_DATA_A_PRICE_RE = re.compile(r"data-a-price=[\"'][^\"']*?(\d+\.\d{2})")
_INTEGER_CENTS_RE = re.compile(r"\"(?:priceInCents|priceCents|amountInCents|centAmount|priceAmountCents)\"\s*:\s*(\d{4,8})\b")


def _penny_json(html: str, ctx: object) -> float | None:
    match = _PENNY_JSON_RE.search(html)
    return parse_amount(match.group(1), PRICE_MIN, PRICE_MAX) if match else None


def _data_a_price(html: str, ctx: object) -> float | None:
    match = _DATA_A_PRICE_RE.search(html)
    return parse_amount(match.group(1), PRICE_MIN, PRICE_MAX) if match else None


def _integer_cents(html: str, ctx: object) -> float | None:
    for match in _INTEGER_CENTS_RE.finditer(html):
        cents = int(match.group(1))
        if cents >= 1000:
            return parse_amount(cents / 100, PRICE_MIN, PRICE_MAX)
    return None


def _amazon_penny_fallbacks(html: str, res: PriceResolution) -> PriceResolution:
    if res.price is not None:
        return res
    value = first_some([_penny_json, _data_a_price, _integer_cents], html)
    if value is None:
        return res
    return res.fill("amazon-penny", f"structured display price {value}", price=value, sale_price=value)


_WAS_RE = re.compile(r"\bWas\s*:?" + _TAGS + r"\$\s*" + _DECIMAL, re.IGNORECASE)


def _amazon_narrowing(html: str, res: PriceResolution) -> PriceResolution:
    """Late passes for an original price when a current price is known."""
    if res.original_price is not None or res.price is None:
        return res
    res = _list_then_price(500)(html, res)
    if res.original_price is not None:
        return res
    for match in _WAS_RE.finditer(html):
        original = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
        if original is not None and _in_discount_range(original, res.price, 0.1, 95):
            return res.fill("amazon-was", f"was {original}", original_price=original)
    return res


_KEYWORD_PRICE_RE = re.compile(
    r"(?:price|sale|now|our price|deal|buy)[^$]{0,100}?\$\s*" + _DECIMAL,
    re.IGNORECASE,
)


def _amazon_any_price(html: str, res: PriceResolution) -> PriceResolution:
    if res.price is not None:
        return res
    for match in _KEYWORD_PRICE_RE.finditer(visible_text(html)):
        value = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
        if value is not None:
            return res.fill("amazon-any-price", f"keyword price {value}", price=value, sale_price=value)
    return res


AMAZON_TIERS: list[Callable[[str, PriceResolution], PriceResolution]] = [
    _amazon_fragments,
    _amazon_discount_text,
    _list_then_price(2000),
    _amazon_json_pairs,
    _amazon_penny_fallbacks,
    _amazon_narrowing,
    _amazon_any_price,
]


def resolve_amazon(html: str, base: PriceResolution | None = None) -> PriceResolution:
    res = base or PriceResolution()
    for tier in AMAZON_TIERS:
        res = tier(html, res)
    return res


# ---------------------------------------------------------------------------
# Macy's / Tommy Hilfiger tier
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PairPattern:
    name: str
    regex: re.Pattern
    # group indexes of the original and sale amounts, and of a stated percent if any
    original_group: int
    sale_group: int
    percent_group: int | None
    min_percent: float
    min_amount: float


STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT = 10.0, 5.0
RELAXED_MIN_PERCENT, RELAXED_MIN_AMOUNT = 5.0, 1.0

PAIR_PATTERNS = (
    # Macy's: $27.80 (60% off)$69.50
    PairPattern(
        "macys-sale-percent-orig",
        re.compile(r"\$\s*" + _DECIMAL + r"\s*\(\s*(\d{1,2})\s*%\s*off\s*\)\s*(?:Orig\.?\s*|Reg\.?\s*)?\$\s*" + _DECIMAL, re.I),
        3, 1, 2, RELAXED_MIN_PERCENT, RELAXED_MIN_AMOUNT,
    ),
    # Macy's: Sale $27.80 ... Orig. $69.50
    PairPattern(
        "macys-sale-orig-labels",
        re.compile(r"(?:Sale|Now)\s*\$\s*" + _DECIMAL + r".{0,80}?(?:Orig\.?|Reg\.?|Was)\s*\$\s*" + _DECIMAL, re.I),
        2, 1, None, STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT,
    ),
    # Tommy: $89.50 $29.99 66% off
    PairPattern(
        "tommy-orig-sale-percent",
        re.compile(r"\$\s*" + _DECIMAL + r"\s*\$\s*" + _DECIMAL + r"\s*\(?\s*(\d{1,2})\s*%\s*off", re.I),
        1, 2, 3, STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT,
    ),
    # Orig./Reg. first, then sale
    PairPattern(
        "orig-then-sale-labels",
        re.compile(r"(?:Orig\.?|Reg\.?|Was|Original)\s*\$\s*" + _DECIMAL + r".{0,80}?(?:Sale|Now)\s*\$\s*" + _DECIMAL, re.I),
        1, 2, None, STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT,
    ),
    # Two bare prices next to each other
    PairPattern(
        "plain-pair",
        re.compile(r"\$\s*" + _DECIMAL + r"\s*(?:-|/|\|)?\s*\$\s*" + _DECIMAL),
        0, 0, None, STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT,
    ),
)


def passes_pair_thresholds(original: float, sale: float, min_percent: float, min_amount: float) -> bool:
    """Both the relative and the absolute difference must clear their minimums."""
    if sale <= 0 or original <= sale:
        return False
    return discount_percent(original, sale) >= min_percent and original - sale >= min_amount


def _match_pair(pattern: PairPattern, match: re.Match) -> tuple[float, float, float | None] | None:
    if pattern.original_group == 0:
        a = parse_amount(match.group(1), PRICE_MIN, PRICE_MAX)
        b = parse_amount(match.group(2), PRICE_MIN, PRICE_MAX)
        if a is None or b is None:
            return None
        original, sale = max(a, b), min(a, b)
    else:
        original = parse_amount(match.group(pattern.original_group), PRICE_MIN, PRICE_MAX)
        sale = parse_amount(match.group(pattern.sale_group), PRICE_MIN, PRICE_MAX)
        if original is None or sale is None:
            return None
    stated = float(match.group(pattern.percent_group)) if pattern.percent_group else None
    return original, sale, stated


def _accept_pair(
    res: PriceResolution, source: str, note: str, original: float, sale: float, pct: float | None = None
) -> PriceResolution:
    """Record a validated discount pair.

    The pair replaces a current price that only came from the loose document
    regexes, or one that is really the pair's original price.
    """
    values = {"price": sale, "sale_price": sale, "original_price": original, "discount_percent": pct}
    if res.price is not None and (res.source == GENERIC_REGEX_SOURCE or abs(res.price - original) < 0.01):
        return res.override(source, f"{note} (replaces {res.price})", **values)
    return res.fill(source, note, **values)


def _text_pairs(text: str, res: PriceResolution) -> PriceResolution:
    for pattern in PAIR_PATTERNS:
        for match in pattern.regex.finditer(text):
            pair = _match_pair(pattern, match)
            if pair is None:
                continue
            original, sale, stated = pair
            if not passes_pair_thresholds(original, sale, pattern.min_percent, pattern.min_amount):
                res = res.note(f"{pattern.name}: rejected {original}/{sale}")
                continue
            return _accept_pair(
                res,
                pattern.name,
                f"{pattern.name}: {original} -> {sale}",
                original,
                sale,
                _pick_discount(original, sale, stated),
            )
    return res


_JS_ORIGINAL_RE = re.compile(
    r"[\"']?(?:originalPrice|wasPrice|regularPrice|listPrice|origPrice)[\"']?\s*[:=]\s*[\"']?\$?" + _AMOUNT
)
_JS_CURRENT_RE = re.compile(
    r"[\"']?(?:salePrice|currentPrice|nowPrice|price)[\"']?\s*[:=]\s*[\"']?\$?" + _AMOUNT
)


def _js_pairs(html: str, res: PriceResolution) -> PriceResolution:
    if res.original_price is not None:
        return res

    def accept(original: float, current: float) -> bool:
        return passes_pair_thresholds(original, current, STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT)

    for window in (2000, 5000):
        pair = _json_variable_pair(html, _JS_ORIGINAL_RE, _JS_CURRENT_RE, window, accept)
        if pair:
            original, current = pair
            return _accept_pair(res, f"js-pair-{window}", f"script variables {original} -> {current}", original, current)
    return res


_ORIGINAL_PATTERNS = (
    re.compile(r"(?:Orig\.?|Original|Reg\.?|Regular|Was)\s*(?:Price)?\s*:?\s*\$\s*" + _AMOUNT, re.I),
    re.compile(r"class=[\"'][^\"']*(?:original|regular|strike|was)[^\"']*[\"'][^>]*>" + _TAGS + r"\$\s*" + _AMOUNT, re.I),
)
_SALE_PATTERNS = (
    re.compile(r"(?:Sale|Now|Current)\s*(?:Price)?\s*:?\s*\$\s*" + _AMOUNT, re.I),
    re.compile(r"class=[\"'][^\"']*(?:sale|current|final)[^\"']*price[^\"']*[\"'][^>]*>" + _TAGS + r"\$\s*" + _AMOUNT, re.I),
)


def _first_bounded(patterns: tuple[re.Pattern, ...], text: str) -> float | None:
    for pattern in patterns:
        for match in pattern.finditer(text):
            value = parse_amount(match.group(1), INDIVIDUAL_MIN, INDIVIDUAL_MAX)
            if value is not None:
                return value
    return None


def _individual_patterns(html: str, res: PriceResolution) -> PriceResolution:
    text = visible_text(html)
    if res.price is None:
        sale = _first_bounded(_SALE_PATTERNS, text) or _first_bounded(_SALE_PATTERNS, html)
        if sale is not None:
            res = res.fill("sale-pattern", f"sale pattern {sale}", price=sale, sale_price=sale)
    if res.original_price is None and res.price is not None:
        original = _first_bounded(_ORIGINAL_PATTERNS, text) or _first_bounded(_ORIGINAL_PATTERNS, html)
        if original is not None:
            if passes_pair_thresholds(original, res.price, STRICT_MIN_PERCENT, STRICT_MIN_AMOUNT):
                res = res.fill("original-pattern", f"original pattern {original}", original_price=original)
            else:
                res = res.note(f"original pattern {original} too close to {res.price}")
    return res


def resolve_macys_tommy(html: str, base: PriceResolution | None = None) -> PriceResolution:
    """Discount-pair text patterns, script variables, then individual labels."""
    res = base or PriceResolution()
    if res.price is not None and res.original_price is not None:
        return res
    if res.original_price is None:
        res = _text_pairs(visible_text(html), res)
    res = _js_pairs(html, res)
    return _individual_patterns(html, res)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------


def reconcile(res: PriceResolution) -> PriceResolution:
    """Enforce cross-field price invariants on a resolved set of prices."""
    price, sale, original, pct = res.price, res.sale_price, res.original_price, res.discount_percent
    notes = list(res.notes)

    if price is None and sale is not None:
        price = sale
    if sale is None and price is not None:
        sale = price

    if price and sale and sale != price:
        if abs(sale - price) / price > 0.20:
            notes.append(f"sale {sale} far from price {price}; using price")
            sale = price
        elif has_cents(sale) and not has_cents(price) and abs(sale - price) / price <= 0.05:
            notes.append(f"sale {sale} more precise than price {price}")
            price = sale

    if original is not None and sale is not None:
        if abs(original - sale) < 0.01:
            notes.append("original equals sale; no discount")
            original, pct = None, None
        elif original < sale:
            notes.append(f"original {original} below sale {sale}; dropped")
            original, pct = None, None
        else:
            computed = discount_percent(original, sale)
            if pct is None or abs(pct - computed) > 1:
                pct = computed
    else:
        original, pct = None, None

    if pct is not None and not (0 < pct < 100):
        pct = None

    return replace(
        res,
        price=round(price, 2) if price is not None else None,
        sale_price=round(sale, 2) if sale is not None else None,
        original_price=round(original, 2) if original is not None else None,
        discount_percent=pct,
        notes=tuple(notes),
    )


def resolve_prices(html: str, site: str = "generic", json_ld_price: float | None = None) -> PriceResolution:
    """Run the tiers for a site and reconcile the outcome."""
    if site == "amazon":
        res = resolve_generic(html, json_ld_price, include_fallbacks=False)
        res = resolve_amazon(html, res)
        res = resolve_generic(html, json_ld_price, base=res)
    elif site in ("macys", "tommy"):
        res = resolve_generic(html, json_ld_price)
        res = resolve_macys_tommy(html, res)
    else:
        res = resolve_generic(html, json_ld_price)
    return reconcile(res)
