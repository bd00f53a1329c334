"""Coarse product category classifier.

Maps a product to one of the fixed categories in ``models.CATEGORIES`` from
keywords in its name and URL path, falling back to breadcrumb phrases. The
category only gates which attribute rules run, so it errs towards "General".

  - classify(): name/URL keywords, then breadcrumbs, then host hints
"""

import re
from urllib.parse import urlparse

from models import DEFAULT_CATEGORY

# =====================================================================
# Tokenizing
# =====================================================================


def _stem(word: str) -> str:
    """Simple English suffix stripping so "rings" matches "ring"."""
    w = word.lower()
    if len(w) < 4:
        return w
    if w.endswith("ies") and len(w) > 4:
        return w[:-3] + "y"  # "accessories" → "accessory"
    if w.endswith("es") and len(w) > 4:
        pre = w[:-2]
        # -es is a proper suffix only after sibilants (ch, sh, x, ss, zz)
        if pre.endswith(("ch", "sh", "x", "ss", "zz")):
            return pre  # "watches" → "watch", "dresses" → "dress"
        return w[:-1]  # "shoes" → "shoe", "sandales" → "sandale"
    if w.endswith("s") and not w.endswith("ss") and len(w) > 3:
        return w[:-1]  # "sneakers" → "sneaker"
    return w


def _signal_text(product_name: str | None, url: str | None) -> str:
    """Lowercased name plus the URL path with separators turned into spaces."""
    path = ""
    if url:
        try:
            path = urlparse(url).path
        except ValueError:
            path = ""
    path = re.sub(r"[-_/+.]+", " ", path)
    return f" {(product_name or '').lower()} {path.lower()} "


def _tokens(text: str) -> set[str]:
    return {_stem(t) for t in re.findall(r"[a-z0-9']+", text)}


def _matches(text: str, tokens: set[str], keywords: tuple[str, ...]) -> bool:
    for keyword in keywords:
        if " " in keyword or "-" in keyword:
            if re.search(rf"\b{re.escape(keyword)}\b", text):
                return True
        elif _stem(keyword) in tokens:
            return True
    return False


# =====================================================================
# Keyword lists
# =====================================================================

CLOTHING_KEYWORDS = (
    "sweater", "cardigan", "dress", "jacket", "coat", "shirt", "t-shirt", "tee", "blouse", "jeans", "pants",
    "trousers", "shorts", "skirt", "hoodie", "sweatshirt", "polo", "leggings", "vest", "blazer", "pajamas",
    "socks", "underwear", "bra", "swimsuit", "jumpsuit", "romper", "parka", "chinos", "joggers", "tank top",
)

# Checked in order after clothing; the first match replaces the clothing guess
CATEGORY_OVERRIDES: tuple[tuple[str, tuple[str, ...]], ...] = (
    (
        "Electronics",
        (
            "iphone", "ipad", "macbook", "laptop", "tablet", "smartphone", "headphones", "earbuds", "airpods",
            "speaker", "television", "tv", "monitor", "camera", "apple watch", "smartwatch", "smart watch",
            "fitness tracker", "console", "playstation", "xbox", "nintendo switch", "router", "keyboard",
            "charger", "ssd", "hard drive", "projector", "kindle paperwhite", "echo dot", "usb-c",
        ),
    ),
    (
        "Kitchen Appliances",
        (
            "air fryer", "coffee maker", "espresso machine", "espresso", "blender", "toaster", "microwave",
            "instant pot", "pressure cooker", "slow cooker", "stand mixer", "hand mixer", "electric kettle",
            "food processor", "juicer", "rice cooker", "waffle maker", "multicooker", "multi-cooker",
        ),
    ),
    (
        "Home Appliances",
        (
            "vacuum", "washer", "dryer", "dishwasher", "refrigerator", "fridge", "air purifier", "humidifier",
            "dehumidifier", "space heater", "air conditioner", "steam iron", "garment steamer", "tower fan",
        ),
    ),
    (
        "Furniture",
        (
            "sofa", "couch", "sectional", "chair", "recliner", "table", "desk", "dresser", "bed frame",
            "bookshelf", "bookcase", "nightstand", "ottoman", "cabinet", "bench", "stool", "loveseat", "futon",
        ),
    ),
    (
        "Shoes",
        (
            "shoes", "sneakers", "boots", "sandals", "heels", "loafers", "pumps", "slippers", "clogs", "mules",
            "oxfords", "stiletto", "espadrilles", "flats", "booties", "running shoe",
        ),
    ),
    (
        # "band" is deliberately absent: watch bands and wedding bands are ambiguous
        "Jewelry",
        ("ring", "necklace", "bracelet", "earrings", "pendant", "engagement ring", "anklet", "brooch", "charm"),
    ),
    (
        "Toys",
        ("toy", "lego", "puzzle", "doll", "action figure", "board game", "plush", "stuffed animal", "playset"),
    ),
    ("Books", ("book", "hardcover", "paperback", "novel", "kindle edition", "audiobook")),
    (
        "Beauty",
        (
            "lipstick", "mascara", "foundation", "serum", "moisturizer", "shampoo", "conditioner", "perfume",
            "fragrance", "cologne", "skincare", "cleanser", "eyeshadow", "nail polish", "lotion", "sunscreen",
        ),
    ),
    (
        "Sports",
        (
            "yoga", "dumbbell", "dumbbells", "treadmill", "bicycle", "tennis", "golf", "basketball", "football",
            "soccer", "kettlebell", "camping", "tent",
        ),
    ),
    (
        "Home & Kitchen",
        (
            "cookware", "skillet", "frying pan", "knife set", "mug", "tumbler", "water bottle", "bedding",
            "sheet set", "comforter", "pillow", "towel", "curtains", "rug", "lamp", "candle", "vase",
            "dinnerware", "dutch oven", "cutting board",
        ),
    ),
)

# Breadcrumb phrases, matched against each crumb from deepest to shallowest
BREADCRUMB_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("small appliances", "Kitchen Appliances"),
    ("kitchen small appliances", "Kitchen Appliances"),
    ("coffee, tea & espresso", "Kitchen Appliances"),
    ("kitchen & dining", "Home & Kitchen"),
    ("home & kitchen", "Home & Kitchen"),
    ("appliances", "Home Appliances"),
    ("furniture", "Furniture"),
    ("cell phones", "Electronics"),
    ("computers", "Electronics"),
    ("electronics", "Electronics"),
    ("shoes", "Shoes"),
    ("jewelry", "Jewelry"),
    ("clothing", "Clothing"),
    ("toys & games", "Toys"),
    ("books", "Books"),
    ("kindle store", "Books"),
    ("beauty & personal care", "Beauty"),
    ("beauty", "Beauty"),
    ("sports & outdoors", "Sports"),
)

# Stores that sell one kind of thing
HOST_CATEGORIES = {"dsw.com": "Shoes", "zappos.com": "Shoes"}


# =====================================================================
# Classification
# =====================================================================


def category_from_breadcrumbs(breadcrumbs: list[str] | None) -> str | None:
    for crumb in reversed(breadcrumbs or []):
        lowered = crumb.lower().strip()
        for phrase, category in BREADCRUMB_CATEGORIES:
            if phrase in lowered:
                return category
    return None


def classify(product_name: str | None, url: str | None = None, breadcrumbs: list[str] | None = None) -> str:
    """Coarse category for a product; "General" when nothing matches. Never raises."""
    text = _signal_text(product_name, url)
    tokens = _tokens(text)

    category = DEFAULT_CATEGORY
    if _matches(text, tokens, CLOTHING_KEYWORDS):
        category = "Clothing"
    for name, keywords in CATEGORY_OVERRIDES:
        if _matches(text, tokens, keywords):
            category = name
            break

    if category == DEFAULT_CATEGORY:
        category = category_from_breadcrumbs(breadcrumbs) or DEFAULT_CATEGORY

    if category == DEFAULT_CATEGORY and url:
        host = (urlparse(url).hostname or "").removeprefix("www.")
        category = HOST_CATEGORIES.get(host, DEFAULT_CATEGORY)

    return category
