"""Tests for the Amazon variant resolver."""

from variants import (
    DEFAULT_APPLECARE,
    VariantSelection,
    apply_variants,
    gate_configuration,
    gate_style,
    resolve_variants,
    watch_title_phrase,
)

WATCH_TITLE = (
    "Apple Watch Series 9 [GPS 45mm] Smartwatch with Midnight Aluminum Case "
    "with Starlight Sport Band - L."
)


class TestSelectionSources:
    def test_selected_variation_index(self):
        html = (
            '<script>var data = {"selectedVariations": {"color_name": 1}, '
            '"variationValues": {"color_name": ["Black", "Blue"]}};</script>'
        )
        assert resolve_variants(html, "Bluetooth Speaker").color == "Blue"

    def test_selection_span(self):
        html = (
            '<div id="variation_color_name"><label>Color:</label>'
            '<span class="selection"> Sage Green </span></div>'
        )
        assert resolve_variants(html, "Stand Mixer").color == "Sage Green"

    def test_selected_swatch_title(self):
        html = (
            '<ul><li id="color_name_0" class="swatchAvailable" title="Click to select Black"></li>'
            '<li id="color_name_1" class="swatchSelect" title="Click to select Rose Gold"></li></ul>'
        )
        assert resolve_variants(html, "Hair Dryer").color == "Rose Gold"

    def test_csa_attribute_with_selected_marker(self):
        html = (
            '<li data-csa-c-dimension-name="size_name" data-csa-c-dimension-value="Small"></li>'
            '<li class="a-button-selected" data-csa-c-dimension-name="size_name" '
            'data-csa-c-dimension-value="Medium"></li>'
        )
        assert resolve_variants(html, "Dog Bed").size == "Medium"

    def test_ambiguous_csa_values_resolve_nothing(self):
        html = (
            '<li data-csa-c-dimension-name="size_name" data-csa-c-dimension-value="Small"></li>'
            '<li data-csa-c-dimension-name="size_name" data-csa-c-dimension-value="Large"></li>'
        )
        assert resolve_variants(html, "Dog Bed").size is None


class TestAppleWatch:
    def test_title_phrase_overrides_simple_color(self):
        html = '<script>var twister = {"color_name":"Titanium"};</script>'
        selection = resolve_variants(html, WATCH_TITLE)
        assert selection.color == "Midnight Aluminum Case with Starlight Sport Band"
        assert selection.size == "Large"
        attrs = apply_variants({"color": "Titanium"}, selection)
        assert attrs["color"] == "Midnight Aluminum Case with Starlight Sport Band"
        assert attrs["size"] == "Large"

    def test_watch_title_phrase_parts(self):
        assert watch_title_phrase("Apple Watch SE - S/M") == (None, "Small/Medium")
        assert watch_title_phrase("Fitbit Charge 6 with Black Band") == (None, None)

    def test_title_band_size_beats_option_list(self):
        selection = VariantSelection(size="Large", size_from_title=True)
        assert apply_variants({"size": ["S/M", "M/L"]}, selection)["size"] == "Large"


class TestGates:
    def test_watch_style_is_connectivity(self):
        assert gate_style("GPS + Cellular 45mm", "Apple Watch Series 9") == "GPS + Cellular"
        assert gate_style("GPS", "Apple Watch Series 9") == "GPS"
        assert gate_style("Titanium Case", "Apple Watch Ultra 2") is None

    def test_earbuds_style_is_connector(self):
        assert gate_style("USB-C", "Apple AirPods Pro 2") == "USB-C"
        assert gate_style("Without AppleCare+", "Apple AirPods Pro 2") is None

    def test_tablet_style_is_wifi_or_cellular(self):
        assert gate_style("Wi-Fi + Cellular 256GB", "Apple iPad Pro") == "Wi-Fi + Cellular"

    def test_other_products_pass_through(self):
        assert gate_style("Modern", "Floor Lamp") == "Modern"

    def test_configuration_must_be_a_protection_plan(self):
        assert gate_configuration("iPad + Apple Pencil") is None
        assert gate_configuration("AppleCare+ (2 Years)") == "AppleCare+ (2 Years)"
        assert gate_configuration(None) is None


class TestDefaults:
    def test_applecare_default_for_apple_products(self):
        html = '<div id="variation_configuration_name"><span>Choose a plan</span></div>'
        selection = resolve_variants(html, "Apple iPad Air 11-inch (M2)")
        assert selection.configuration == DEFAULT_APPLECARE

    def test_no_default_for_other_brands(self):
        html = '<div id="variation_configuration_name"><span>Choose a plan</span></div>'
        assert resolve_variants(html, "Samsung Galaxy Tab S9").configuration is None

    def test_list_of_sizes_survives_twister_size(self):
        selection = VariantSelection(size="9")
        assert apply_variants({"Size": ["8", "9", "10"]}, selection) == {"Size": ["8", "9", "10"]}

    def test_selected_value_replaces_other_casing(self):
        attrs = apply_variants({"Color": "Blue"}, VariantSelection(color="Navy"))
        assert attrs == {"color": "Navy"}
