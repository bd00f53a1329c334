"""
Product image classification and selection.

``is_marketing_image`` is the single gate every image passes before it can be
used anywhere in the pipeline. ``select_image`` picks one product photo out of
all candidate URLs collected from a page, applying per-site priorities.
"""

import re
from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Image classifier
# ---------------------------------------------------------------------------

# Trusted product-image CDNs used by the Tommy Hilfiger storefront
_TRUSTED_CDNS = ("scene7.com", "demandware.static")

_MARKETING_KEYWORDS = (
    "scheduled_marketing",
    "flyoutnav",
    "flyout",
    "yoda",
    "omaha",
    "marketing",
    "banner",
    "/nav/",
    "promo",
    "campaign",
    "advertisement",
    "ad-",
    "site_ads",
    "dyn_img/site_ads",
    "sprites",
    "nav-sprite",
    "gno/sprites",
)

_LEGACY_AMAZON_HOST = "images-na.ssl-images-amazon.com"
_AMAZON_PRODUCT_PATH = "media-amazon.com/images/i/"


def is_marketing_image(url: str | None) -> bool:
    """Return True for banners, sprites, ads and navigation graphics."""
    if not url:
        return False
    lower = url.lower()
    if any(host in lower for host in _TRUSTED_CDNS):
        return False
    if any(keyword in lower for keyword in _MARKETING_KEYWORDS):
        return True
    if _LEGACY_AMAZON_HOST in lower:
        return True
    if "amazon.com" in lower and _AMAZON_PRODUCT_PATH not in lower:
        return True
    return False


# ---------------------------------------------------------------------------
# Universal exclusions
# ---------------------------------------------------------------------------

# Site chrome that is never the product photo
_NON_PRODUCT_RE = re.compile(
    r"(logo|favicon|[-_/.]icons?[-_/.]|sprite|placeholder|blank\.gif|pixel\.gif|spacer|"
    r"transparent\.(?:gif|png)|1x1|loading|spinner|thumbnail-placeholder)",
    re.IGNORECASE,
)
_NON_PHOTO_EXTENSIONS = re.compile(r"\.(svg|gif|ico|bmp)(\?|$)", re.IGNORECASE)
_MIN_URL_LENGTH = 25


def is_usable_candidate(url: str) -> bool:
    """Cheap checks shared by every site before any priority rules run."""
    if not url or len(url) < _MIN_URL_LENGTH or not url.startswith(("http://", "https://")):
        return False
    if is_marketing_image(url):
        return False
    path = url.split("?")[0]
    if _NON_PHOTO_EXTENSIONS.search(path):
        return False
    return not _NON_PRODUCT_RE.search(path)


@dataclass
class ImageChoice:
    """Selected image plus the diagnostic trail of how it was chosen."""

    url: str | None = None
    rule: str = ""
    notes: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Amazon
# ---------------------------------------------------------------------------

_AMAZON_IMAGE_PATH = "media-amazon.com/images/I/"
# ._SX300_SY300_ style dimension codes
_AMAZON_DIMS_RE = re.compile(r"_(?:AC_)?(?:S[XYSL]|U[XYSL]|SR|AC_U[LSXY])(\d+)(?:,(\d+))?_")
_AMAZON_SX_SY_RE = re.compile(r"\.?_?SX(\d+)_SY(\d+)_")
_AMAZON_OVERLAY_RE = re.compile(r"(?i)(play-button|play_button|overlay|_PKplay|PKmb-play)")
_AMAZON_SIZE_CODE_RE = re.compile(r"\._[A-Za-z0-9,_-]+_\.")
_AMAZON_AC_INFIX_RE = re.compile(r"\._AC_[A-Z]{2}\d+_\.")
_AMAZON_SIZE_INFIX_RE = re.compile(r"\._[A-Z]{2}\d+_\.")


def clean_amazon_image_url(url: str) -> str:
    """Strip Amazon's in-URL sizing infixes and query string to get the full-size asset."""
    url = url.split("?")[0]
    url = _AMAZON_AC_INFIX_RE.sub(".", url)
    url = _AMAZON_SIZE_INFIX_RE.sub(".", url)
    return _AMAZON_SIZE_CODE_RE.sub(".", url)


def _amazon_dimension(url: str) -> int | None:
    """Largest pixel dimension encoded in an Amazon image URL, if any."""
    sizes = [int(n) for m in _AMAZON_DIMS_RE.finditer(url) for n in m.groups() if n]
    sizes += [int(n) for m in _AMAZON_SX_SY_RE.finditer(url) for n in m.groups() if n]
    return max(sizes) if sizes else None


def _is_amazon_thumbnail(url: str) -> bool:
    match = _AMAZON_SX_SY_RE.search(url)
    if match and (int(match.group(1)) < 200 or int(match.group(2)) < 200):
        return True
    dim = _amazon_dimension(url)
    return dim is not None and dim < 200


def _select_amazon(candidates: list[str], html: str) -> ImageChoice:
    choice = ImageChoice()
    product_images = []
    for url in candidates:
        if _AMAZON_IMAGE_PATH not in url:
            continue
        if _AMAZON_OVERLAY_RE.search(url):
            choice.notes.append(f"skipped overlay image {url[:80]}")
            continue
        if _is_amazon_thumbnail(url):
            continue
        product_images.append(url)

    if not product_images:
        return _select_generic(candidates, html)

    # No explicit size code means Amazon serves the original upload
    unsized = [u for u in product_images if _amazon_dimension(u) is None and not _AMAZON_SIZE_CODE_RE.search(u)]
    if unsized:
        best = unsized[0]
        choice.rule = "amazon-unsized"
    else:
        best = max(product_images, key=lambda u: _amazon_dimension(u) or 0)
        choice.rule = "amazon-largest"

    choice.url = clean_amazon_image_url(best)
    return choice


# ---------------------------------------------------------------------------
# Tommy Hilfiger
# ---------------------------------------------------------------------------


def _tommy_priority(url: str) -> int:
    lower = url.lower()
    if "scene7.com" in lower:
        return 0
    if "demandware.static" in lower:
        return 1
    if "media.tommy.com" in lower and "static/images" not in lower:
        return 2
    return 3


def _select_tommy(candidates: list[str], html: str) -> ImageChoice:
    if not candidates:
        return ImageChoice(notes=["no tommy candidates"])
    best = min(candidates, key=_tommy_priority)
    return ImageChoice(url=best, rule=f"tommy-priority-{_tommy_priority(best)}")


# ---------------------------------------------------------------------------
# Macy's
# ---------------------------------------------------------------------------

_MACYS_CDN = "slimages.macysassets.com"
_MACYS_REJECT = ("site_ads", "dyn_img", "advertisement")

# Terminators, from strict to permissive: quote, whitespace/tag, parenthesis/newline
_MACYS_TERMINATOR_PATTERNS = (
    re.compile(r"https?://slimages\.macysassets\.com[^\"']*(?=[\"'])"),
    re.compile(r"https?://slimages\.macysassets\.com[^\s<>\"']*"),
    re.compile(r"https?://slimages\.macysassets\.com[^()\n\"']*"),
)
_MACYS_JS_IMAGE_RE = re.compile(
    r"(?:imageUrl|imageURL|primaryImage|mainImage|image|img)\w*\s*[:=]\s*[\"']"
    r"((?:https?:)?//slimages\.macysassets\.com[^\"']+)[\"']",
    re.IGNORECASE,
)


def _is_truncated_macys(url: str) -> bool:
    stripped = url.rstrip("/")
    return (
        len(url) < 60
        or stripped.endswith(("/i", "/is", "/image"))
        or url.endswith("/")
        or url.endswith(("-", "_", "."))
    )


def convert_macys_image_url(url: str) -> str:
    """Browsers cannot display Macy's TIF masters; request a JPEG rendition."""
    if _MACYS_CDN.split(".", 1)[1] not in url and "macysassets.com" not in url:
        return url
    if url.endswith("_fpx.tif"):
        return url[: -len("_fpx.tif")] + "_fpx.jpg?wid=500&hei=500&fmt=jpeg&qlt=90"
    if re.search(r"\.tif$", url, re.IGNORECASE):
        return re.sub(r"\.tif$", ".jpg", url, flags=re.IGNORECASE) + "?fmt=jpeg&qlt=90"
    return url


def _repair_macys_url(html: str) -> tuple[str | None, list[str]]:
    """Re-scan the raw HTML at every CDN occurrence for a complete URL."""
    notes: list[str] = []
    positions = [m.start() for m in re.finditer(r"https?://slimages\.macysassets\.com", html)]
    for pattern in _MACYS_TERMINATOR_PATTERNS:
        for pos in positions:
            match = pattern.match(html, pos)
            if not match:
                continue
            url = match.group(0).strip()
            if not _is_truncated_macys(url) and not is_marketing_image(url):
                notes.append(f"repaired macys url with terminator {pattern.pattern[-12:]}")
                return url, notes

    for match in _MACYS_JS_IMAGE_RE.finditer(html):
        url = match.group(1)
        if url.startswith("//"):
            url = "https:" + url
        if not _is_truncated_macys(url) and not is_marketing_image(url):
            notes.append("macys url from script image variable")
            return url, notes

    notes.append("macys image url still truncated; leaving image empty")
    return None, notes


def _select_macys(candidates: list[str], html: str) -> ImageChoice:
    choice = ImageChoice()
    usable = [u for u in candidates if not any(k in u.lower() for k in _MACYS_REJECT)]
    cdn = [u for u in usable if _MACYS_CDN in u]

    if cdn:
        complete = [u for u in cdn if not _is_truncated_macys(u)]
        if complete:
            choice.url = convert_macys_image_url(complete[0])
            choice.rule = "macys-cdn"
            return choice
        repaired, notes = _repair_macys_url(html)
        choice.notes.extend(notes)
        if repaired:
            choice.url = convert_macys_image_url(repaired)
            choice.rule = "macys-repaired"
        # URLs built from the product id do not resolve; surface null instead
        return choice

    if usable:
        choice.url = convert_macys_image_url(usable[0])
        choice.rule = "macys-other"
    return choice


# ---------------------------------------------------------------------------
# Generic
# ---------------------------------------------------------------------------

_PRODUCT_HINT_RE = re.compile(
    r"(product|item|catalog|merchandise|goods|cloudfront|cdn|assets|/is/image/|/images/[^/]+\.(?:jpg|jpeg|png|webp))",
    re.IGNORECASE,
)


def _select_generic(candidates: list[str], html: str) -> ImageChoice:
    if not candidates:
        return ImageChoice()
    hinted = [u for u in candidates if _PRODUCT_HINT_RE.search(u)]
    if hinted:
        return ImageChoice(url=hinted[0], rule="generic-hinted")
    return ImageChoice(url=candidates[0], rule="generic-first")


_SELECTORS = {
    "amazon": _select_amazon,
    "tommy": _select_tommy,
    "macys": _select_macys,
}


def select_image(candidates: list[str], html: str, site: str = "generic") -> ImageChoice:
    """Pick the single best product image for a page.

    Candidates are expected in discovery order (structured data first). The
    chosen URL is re-checked against ``is_marketing_image`` before returning.
    """
    usable = [u for u in dict.fromkeys(candidates) if is_usable_candidate(u)]
    choice = _SELECTORS.get(site, _select_generic)(usable, html)

    if choice.url and is_marketing_image(choice.url):
        choice.notes.append(f"final check rejected {choice.url[:80]}")
        choice.url = None
        choice.rule = "rejected"
    return choice
