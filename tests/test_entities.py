"""Tests for HTML entity decoding."""

import pytest

from entities import decode_entities

FIXTURE_STRINGS = [
    "Tommy &amp; Hilfiger",
    "&#39;Sale&#39;",
    "Caf&eacute; &nbsp;Mug",
    "Size&lrm; : 10",
    "Men&#x27;s Polo",
    "AT&T Phone",
    "plain text",
    "",
]


class TestDecodeEntities:
    def test_named_entity(self):
        assert decode_entities("Tommy &amp; Hilfiger") == "Tommy & Hilfiger"

    def test_decimal_entity(self):
        assert decode_entities("&#39;Sale&#39;") == "'Sale'"

    def test_hex_entity(self):
        assert decode_entities("Men&#x27;s Polo") == "Men's Polo"

    def test_nbsp_becomes_plain_space(self):
        assert decode_entities("Caf&eacute; &nbsp;Mug") == "Café  Mug"

    def test_directional_marks_are_removed(self):
        assert decode_entities("Size&lrm; : 10") == "Size : 10"
        assert decode_entities("Brand\u200e : Acme\u200f") == "Brand : Acme"

    def test_malformed_entities_are_left_alone(self):
        assert decode_entities("AT&T Phone") == "AT&T Phone"
        assert decode_entities("&notarealentity;") == "&notarealentity;"
        assert decode_entities("&#99999999;") == "&#99999999;"

    def test_none_is_empty(self):
        assert decode_entities(None) == ""

    @pytest.mark.parametrize("text", FIXTURE_STRINGS)
    def test_idempotent(self, text):
        once = decode_entities(text)
        assert decode_entities(once) == once
