"""Tests for the marketing-image gate and per-site image selection."""

import pytest

from images import (
    clean_amazon_image_url,
    convert_macys_image_url,
    is_marketing_image,
    is_usable_candidate,
    select_image,
)


class TestMarketingClassifier:
    """``is_marketing_image`` is the one gate every image URL passes."""

    @pytest.mark.parametrize(
        "url",
        [
            "https://m.media-amazon.com/images/G/01/marketing/prime/banner.jpg",
            "https://images-na.ssl-images-amazon.com/images/I/81abc.jpg",
            "https://www.amazon.com/images/nav-sprite-global.png",
            "https://slimages.macysassets.com/is/image/MCY/dyn_img/site_ads/holiday.jpg",
            "https://www.example.com/flyout/menu-women.jpg",
            "https://cdn.example.com/promo/summer.jpg",
        ],
    )
    def test_marketing_urls(self, url):
        assert is_marketing_image(url)

    @pytest.mark.parametrize(
        "url",
        [
            "https://m.media-amazon.com/images/I/71abcDEF12L._AC_SX679_.jpg",
            "https://shoptommy.scene7.com/is/image/ShopTommy/promo_polo_main",
            "https://cdn.example.com/images/products/trail-shoe.jpg",
        ],
    )
    def test_product_urls(self, url):
        assert not is_marketing_image(url)

    def test_empty_url_is_not_marketing(self):
        assert not is_marketing_image(None)
        assert not is_marketing_image("")

    def test_usable_candidate_rejects_chrome(self):
        assert not is_usable_candidate("https://www.example.com/static/logo.png")
        assert not is_usable_candidate("https://www.example.com/img/spinner.gif")
        assert not is_usable_candidate("/relative/product.jpg")
        assert is_usable_candidate("https://cdn.example.com/images/products/trail-shoe.jpg")


class TestAmazonSelection:
    def test_largest_non_thumbnail_is_cleaned(self):
        candidates = [
            "https://m.media-amazon.com/images/I/71abcDEF12L._AC_US40_.jpg",
            "https://m.media-amazon.com/images/I/71abcDEF12L._AC_SX679_.jpg",
            "https://m.media-amazon.com/images/I/71abcDEF12L._AC_SX300_.jpg",
        ]
        choice = select_image(candidates, "", "amazon")
        assert choice.url == "https://m.media-amazon.com/images/I/71abcDEF12L.jpg"
        assert choice.rule == "amazon-largest"

    def test_unsized_image_is_preferred(self):
        candidates = [
            "https://m.media-amazon.com/images/I/71abcDEF12L._AC_SX679_.jpg",
            "https://m.media-amazon.com/images/I/61zzzYYY34L.jpg",
        ]
        choice = select_image(candidates, "", "amazon")
        assert choice.url == "https://m.media-amazon.com/images/I/61zzzYYY34L.jpg"
        assert choice.rule == "amazon-unsized"

    def test_play_button_overlay_is_skipped(self):
        candidates = [
            "https://m.media-amazon.com/images/I/81videoXX.SX800_PKplay-button-mb-image-overlay.jpg",
            "https://m.media-amazon.com/images/I/71abcDEF12L._AC_SX500_.jpg",
        ]
        choice = select_image(candidates, "", "amazon")
        assert choice.url == "https://m.media-amazon.com/images/I/71abcDEF12L.jpg"
        assert any("overlay" in note for note in choice.notes)

    def test_sx_sy_thumbnail_is_skipped(self):
        assert clean_amazon_image_url(
            "https://m.media-amazon.com/images/I/71abc._AC_SX679_.jpg?x=1"
        ) == "https://m.media-amazon.com/images/I/71abc.jpg"
        choice = select_image(["https://m.media-amazon.com/images/I/71abc._SX38_SY50_.jpg"], "", "amazon")
        assert choice.rule != "amazon-largest"


class TestTommySelection:
    def test_scene7_beats_other_hosts(self):
        candidates = [
            "https://media.tommy.com/images/products/polo-front.jpg",
            "https://shoptommy.scene7.com/is/image/ShopTommy/78J8750_100_main",
        ]
        choice = select_image(candidates, "", "tommy")
        assert choice.url == "https://shoptommy.scene7.com/is/image/ShopTommy/78J8750_100_main"
        assert choice.rule == "tommy-priority-0"


class TestMacysSelection:
    def test_tif_master_becomes_jpeg(self):
        url = "https://slimages.macysassets.com/is/image/MCY/products/1/optimized/24681357_fpx.tif"
        choice = select_image([url], "", "macys")
        assert choice.url == (
            "https://slimages.macysassets.com/is/image/MCY/products/1/optimized/24681357_fpx.jpg"
            "?wid=500&hei=500&fmt=jpeg&qlt=90"
        )

    def test_truncated_url_is_repaired_from_html(self):
        full = "https://slimages.macysassets.com/is/image/MCY/products/3/optimized/11223344_fpx.tif"
        html = f'<script>var img = "{full}";</script>'
        choice = select_image(["https://slimages.macysassets.com/is/image/MCY/"], html, "macys")
        assert choice.rule == "macys-repaired"
        assert choice.url == convert_macys_image_url(full)

    def test_unrepairable_url_is_left_empty(self):
        """No URL is ever constructed from the product id."""
        choice = select_image(["https://slimages.macysassets.com/is/image/MCY/"], "", "macys")
        assert choice.url is None
        assert any("still truncated" in note for note in choice.notes)


class TestGenericSelection:
    def test_marketing_candidates_never_win(self):
        candidates = [
            "https://www.example.com/marketing/spring-campaign.jpg",
            "https://cdn.example.com/promo/holiday-sale.jpg",
        ]
        assert select_image(candidates, "").url is None

    def test_product_hint_beats_first(self):
        candidates = [
            "https://www.example.com/media/hero-photo.jpg",
            "https://www.example.com/media/product/widget-front.jpg",
        ]
        choice = select_image(candidates, "")
        assert choice.url == "https://www.example.com/media/product/widget-front.jpg"
        assert choice.rule == "generic-hinted"
