"""Tests for rating, review count, badges and stock status."""

import pytest

from reviews import (
    detect_badges,
    extract_rating,
    extract_review_count,
    extract_stock_status,
    parse_count,
    parse_rating,
)
from structured import StructuredData


class TestParseRating:
    @pytest.mark.parametrize("raw, expected", [("4.6", 4.6), ("4.0", 4.0), (4.6, 4.6), ("4.7 out of 5 stars", 4.7)])
    def test_accepted(self, raw, expected):
        assert parse_rating(raw) == expected

    @pytest.mark.parametrize("raw", [4, "5", True, None, 6.2, 0.5, "12.5", "great"])
    def test_rejected(self, raw):
        assert parse_rating(raw) is None


class TestParseCount:
    def test_counts(self):
        assert parse_count("1,234 ratings") == 1234
        assert parse_count(87) == 87
        assert parse_count(0) is None
        assert parse_count("no reviews yet") is None
        assert parse_count(False) is None


class TestRatingStrategies:
    def test_structured_rating_wins(self):
        html = '<span id="acrPopover" title="3.9 out of 5 stars"></span>'
        assert extract_rating(html, StructuredData(rating="4.4")) == 4.4

    def test_amazon_popover(self):
        html = '<span id="acrPopover" class="reviewCountTextLinkedHistogram" title="4.7 out of 5 stars"></span>'
        assert extract_rating(html) == 4.7

    def test_integer_structured_rating_falls_through(self):
        html = "<span>4.2 out of 5</span>"
        assert extract_rating(html, StructuredData(rating=5)) == 4.2

    def test_data_attribute(self):
        assert extract_rating('<div data-rating="3.5"></div>') == 3.5

    def test_no_rating(self):
        assert extract_rating("<p>Rated 5 stars by our editors</p>") is None


class TestReviewCount:
    def test_amazon_widget(self):
        html = '<span id="acrCustomerReviewText" class="a-size-base">12,345 ratings</span>'
        assert extract_review_count(html) == 12345

    def test_structured_count(self):
        assert extract_review_count("", StructuredData(review_count="210")) == 210

    def test_text_count(self):
        assert extract_review_count("<a>Read all 87 customer reviews</a>") == 87


class TestBadges:
    def test_amazon_choice(self):
        assert detect_badges('<div id="acBadge_feature_div"></div>') == (True, False)

    def test_best_seller(self):
        assert detect_badges('<i class="a-icon">#1 Best Seller</i> in Air Fryers') == (False, True)

    def test_no_badges(self):
        assert detect_badges("<p>plain</p>") == (False, False)


class TestStockStatus:
    def test_schema_availability(self):
        data = StructuredData(availability="https://schema.org/OutOfStock")
        assert extract_stock_status("", data) == "Out of Stock"

    def test_schema_short_form(self):
        assert extract_stock_status("", StructuredData(availability="PreOrder")) == "Pre-Order"

    def test_amazon_low_stock(self):
        html = '<div id="availability"><span>Only 3 left in stock - order soon.</span></div>'
        assert extract_stock_status(html) == "Limited Availability"

    def test_amazon_unavailable(self):
        html = '<div id="availability"><span>Currently unavailable.</span></div>'
        assert extract_stock_status(html) == "Out of Stock"

    def test_amazon_in_stock(self):
        html = '<div id="availability"><span class="a-color-success">In Stock</span></div>'
        assert extract_stock_status(html) == "In Stock"

    def test_price_implies_in_stock(self):
        assert extract_stock_status("<p>hi</p>", price=19.99) == "In Stock"

    def test_unknown(self):
        assert extract_stock_status("<p>hi</p>") == "Unknown"
