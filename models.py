from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from textutil import parse_amount

# Coarse categories that gate the category-specific attribute rules
CATEGORIES = (
    "Clothing",
    "Shoes",
    "Electronics",
    "Kitchen Appliances",
    "Home Appliances",
    "Home & Kitchen",
    "Furniture",
    "Jewelry",
    "Toys",
    "Books",
    "Beauty",
    "Sports",
    "General",
)
DEFAULT_CATEGORY = "General"

# Every attribute key the extractor can populate, in output order
ATTRIBUTE_KEYS = (
    "brand",
    "color",
    "size",
    "material",
    "type",
    "width",
    "capacity",
    "features",
    "warranty",
    "fitType",
    "heelHeight",
    "model",
    "specifications",
    "storageSize",
    "screenSize",
    "connectivity",
    "batteryLife",
    "wattage",
    "energyRating",
    "ageRange",
    "safetyInfo",
    "pieceCount",
    "author",
    "publisher",
    "pageCount",
    "isbn",
    "format",
    "gemstone",
    "caratWeight",
    "metalType",
    "ringSize",
    "dimensions",
    "weight",
    "assembly",
    "seatDepth",
    "seatHeight",
    "seatingCapacity",
    "style",
    "set",
    "configuration",
    "offerType",
    "kindleUnlimited",
)

# Canonical names for attribute keys coming from semantic output or page data.
# Maps raw key (lowercased) -> canonical key.
_ATTR_KEY_ALIASES = {
    "colour": "color",
    "color_name": "color",
    "colorname": "color",
    "swatch": "color",
    "size_name": "size",
    "sizing": "size",
    "fabric": "material",
    "composition": "material",
    "style_name": "style",
    "configuration_name": "configuration",
    "fit": "fitType",
    "fit_type": "fitType",
    "heel_height": "heelHeight",
    "age_range": "ageRange",
    "page_count": "pageCount",
    "pages": "pageCount",
    "carat": "caratWeight",
    "carat_weight": "caratWeight",
    "stone": "gemstone",
    "manufacturer": "brand",
}

_CANONICAL_BY_LOWER = {k.lower(): k for k in ATTRIBUTE_KEYS}

# Strings that mean "no value" when they come back from text or a model
_NULLISH = {"", "null", "none", "undefined", "n/a"}


def canonical_attribute_key(key: str) -> str:
    """Map an arbitrary attribute key onto the canonical spelling when known."""
    raw = key.strip()
    lower = raw.lower()
    if lower in _ATTR_KEY_ALIASES:
        return _ATTR_KEY_ALIASES[lower]
    return _CANONICAL_BY_LOWER.get(lower, raw)


def sanitize_value(value: Any) -> Any:
    """Treat "null"/"undefined"/empty strings as missing."""
    if isinstance(value, str) and value.strip().lower() in _NULLISH:
        return None
    return value


def dedupe_attributes(pairs: Mapping[str, Any] | Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Fold attribute entries into a map with one entry per case-insensitive key.

    The first-seen casing and value win; later case variants are dropped, not merged.
    """
    items = pairs.items() if isinstance(pairs, Mapping) else pairs
    result: dict[str, Any] = {}
    seen: set[str] = set()
    for key, value in items:
        lower = key.lower()
        if lower in seen:
            continue
        seen.add(lower)
        result[key] = value
    return result


class ProductRecord(BaseModel):
    """The normalized product record returned to the wishlist UI.

    Serialized with camelCase keys (``model_dump(by_alias=True)``). Frozen: the
    pipeline rebuilds and revalidates it at every enrich step.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    product_name: str | None = None
    price: float | None = None
    original_price: float | None = None
    sale_price: float | None = None
    discount_percent: float | None = None
    description: str | None = None
    store_name: str = ""
    category: str = DEFAULT_CATEGORY
    image_url: str | None = None
    product_link: str | None = None
    stock_status: str = "Unknown"
    rating: float | None = None
    review_count: int | None = None
    amazon_choice: bool = False
    best_seller: bool = False
    attributes: dict[str, Any] = Field(default_factory=dict)

    # Top-level mirrors of selected variant attributes
    color: str | None = None
    style: str | None = None
    set_: str | None = Field(default=None, alias="set")
    configuration: str | None = None

    notice: str | None = None
    fetch_strategy: str = "none"
    product_url_for_image_extraction: str | None = None
    is_from_gift_idea: bool = False

    @field_validator("category", mode="before")
    @classmethod
    def coerce_category(cls, v: Any) -> str:
        if isinstance(v, str):
            for name in CATEGORIES:
                if name.lower() == v.strip().lower():
                    return name
        return DEFAULT_CATEGORY

    @field_validator("price", "original_price", "sale_price", mode="after")
    @classmethod
    def two_decimals(cls, v: float | None) -> float | None:
        return round(v, 2) if v is not None else None

    @field_validator("discount_percent", mode="after")
    @classmethod
    def percent_range(cls, v: float | None) -> float | None:
        if v is None or not (0 < v < 100):
            return None
        return v

    @field_validator("rating", mode="after")
    @classmethod
    def rating_range(cls, v: float | None) -> float | None:
        if v is None or not (1.0 <= v <= 5.0):
            return None
        return v

    @field_validator("review_count", mode="after")
    @classmethod
    def review_count_positive(cls, v: int | None) -> int | None:
        return v if v is not None and v >= 1 else None

    @field_validator("attributes", mode="after")
    @classmethod
    def unique_attribute_keys(cls, v: dict[str, Any]) -> dict[str, Any]:
        return dedupe_attributes(v)

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ExtractRequest(BaseModel):
    """Inbound body: either key is accepted, ``productUrl`` wins when both are present."""

    model_config = ConfigDict(populate_by_name=True)

    url: str | None = None
    product_url: str | None = Field(default=None, alias="productUrl")

    @property
    def target(self) -> str | None:
        for value in (self.product_url, self.url):
            if isinstance(value, str) and value.strip():
                return value.strip()
        return None


class ErrorPayload(BaseModel):
    error: str
    message: str
    suggestion: str


# ===== Semantic collaborator output =====


class SemanticProduct(BaseModel):
    """Loose shape of a JSON guess from the semantic collaborator.

    Untrusted: every field is optional and coerced; unknown keys are ignored.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    product_name: str | None = None
    price: float | None = None
    description: str | None = None
    store_name: str | None = None
    category: str | None = None
    image_url: str | None = None
    product_link: str | None = None
    stock_status: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "product_name", "description", "store_name", "category", "image_url", "product_link", "stock_status", mode="before"
    )
    @classmethod
    def nullish_strings(cls, v: Any) -> Any:
        v = sanitize_value(v)
        if v is not None and not isinstance(v, str):
            return str(v)
        return v

    @field_validator("price", mode="before")
    @classmethod
    def loose_price(cls, v: Any) -> float | None:
        v = sanitize_value(v)
        if v is None:
            return None
        if isinstance(v, str):
            v = v.replace("$", "").replace("USD", "").strip()
        return parse_amount(v)

    @field_validator("attributes", mode="before")
    @classmethod
    def clean_attributes(cls, v: Any) -> dict[str, Any]:
        if not isinstance(v, dict):
            return {}
        cleaned: list[tuple[str, Any]] = []
        for key, value in v.items():
            if not isinstance(key, str):
                continue
            value = sanitize_value(value)
            if value is None:
                continue
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            if isinstance(value, list):
                value = [str(x) for x in value if sanitize_value(x) is not None]
            if not isinstance(value, (str, list)):
                continue
            cleaned.append((canonical_attribute_key(key), value))
        return dedupe_attributes(cleaned)
