"""Tests for the coarse category classifier."""

import pytest

from models import CATEGORIES
from taxonomy import (
    BREADCRUMB_CATEGORIES,
    CATEGORY_OVERRIDES,
    HOST_CATEGORIES,
    _stem,
    category_from_breadcrumbs,
    classify,
)


class TestStem:
    @pytest.mark.parametrize(
        "word, stem",
        [("rings", "ring"), ("watches", "watch"), ("dresses", "dress"), ("shoes", "shoe"), ("accessories", "accessory"), ("tee", "tee")],
    )
    def test_suffixes(self, word, stem):
        assert _stem(word) == stem


class TestClassify:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Vince Camuto Women's Cozy Sweater", "Clothing"),
            ("Acme Trail Running Shoes", "Shoes"),
            ("Apple Watch Series 9 GPS 45mm", "Electronics"),
            ("Ninja 6-Quart Air Fryer", "Kitchen Appliances"),
            ("Dyson V15 Detect Cordless Vacuum", "Home Appliances"),
            ("Mid-Century Accent Chair", "Furniture"),
            ("Mens Tungsten Carbide Ring", "Jewelry"),
            ("LEGO Icons Orchid Building Set", "Toys"),
            ("The Lincoln Highway: A Novel", "Books"),
            ("CeraVe Hydrating Facial Cleanser", "Beauty"),
            ("Manduka PRO Yoga Mat", "Sports"),
            ("Le Creuset Dutch Oven", "Home & Kitchen"),
        ],
    )
    def test_keywords(self, name, expected):
        assert classify(name) == expected

    def test_band_alone_is_not_jewelry(self):
        assert classify("Stainless Band 42mm") == "General"

    def test_url_path_is_a_signal(self):
        assert classify(None, "https://www.example.com/p/womens-wool-sweater/12345") == "Clothing"

    def test_breadcrumbs_deepest_first(self):
        crumbs = ["Home & Kitchen", "Kitchen & Dining", "Small Appliances"]
        assert category_from_breadcrumbs(crumbs) == "Kitchen Appliances"
        assert classify("Mystery Gadget", "https://www.amazon.com/dp/B0XYZ", crumbs) == "Kitchen Appliances"

    def test_name_beats_breadcrumbs(self):
        assert classify("Cotton Hoodie", breadcrumbs=["Electronics"]) == "Clothing"

    def test_single_category_stores(self):
        assert classify("Nice Pair", "https://www.dsw.com/product/nice-pair/123") == "Shoes"

    def test_unknown_falls_back_to_general(self):
        assert classify(None) == "General"
        assert classify("Mystery Gadget", "not a url") == "General"

    def test_every_result_is_a_known_category(self):
        for name in ("Sofa", "Serum", "Charger", "Tent", "Mug", "Puzzle"):
            assert classify(name) in CATEGORIES


class TestTables:
    def test_tables_only_name_known_categories(self):
        assert all(name in CATEGORIES for name, _ in CATEGORY_OVERRIDES)
        assert all(category in CATEGORIES for _, category in BREADCRUMB_CATEGORIES)
        assert set(HOST_CATEGORIES.values()) <= set(CATEGORIES)
