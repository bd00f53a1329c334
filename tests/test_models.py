"""Tests for the product record, request and semantic output models, plus config and errors."""

import logging

import httpx
import pytest

from config import Settings
from errors import (
    ExtractionError,
    InvalidInputError,
    RateLimitedError,
    SemanticAuthError,
    UpstreamUnavailableError,
    classify_exception,
)
from log import BestEffortFileHandler
from models import ExtractRequest, ProductRecord, SemanticProduct, canonical_attribute_key


class TestProductRecord:
    def test_camel_case_response(self):
        record = ProductRecord(product_name="Mug", price=12.5, set_="Set of 4", is_from_gift_idea=False)
        data = record.to_response()
        assert data["productName"] == "Mug"
        assert data["set"] == "Set of 4"
        assert data["imageUrl"] is None
        assert data["productUrlForImageExtraction"] is None
        assert data["isFromGiftIdea"] is False
        assert data["stockStatus"] == "Unknown"

    def test_category_is_coerced(self):
        assert ProductRecord(category="electronics").category == "Electronics"
        assert ProductRecord(category="Gadgets").category == "General"
        assert ProductRecord(category=None).category == "General"

    def test_numeric_invariants(self):
        record = ProductRecord(price=19.999, discount_percent=150, rating=0.5, review_count=0)
        assert record.price == 20.0
        assert record.discount_percent is None
        assert record.rating is None
        assert record.review_count is None

    def test_attribute_keys_are_unique(self):
        record = ProductRecord(attributes={"Brand": "Acme", "brand": "Other"})
        assert record.attributes == {"Brand": "Acme"}

    def test_frozen(self):
        record = ProductRecord(product_name="Mug")
        with pytest.raises(Exception):
            record.product_name = "Cup"


class TestExtractRequest:
    def test_product_url_wins(self):
        req = ExtractRequest.model_validate({"url": "https://a.com/x", "productUrl": "https://b.com/y"})
        assert req.target == "https://b.com/y"

    def test_blank_values_are_missing(self):
        assert ExtractRequest.model_validate({"url": "   "}).target is None
        assert ExtractRequest.model_validate({}).target is None


class TestSemanticProduct:
    def test_untrusted_output_is_cleaned(self):
        guess = SemanticProduct.model_validate(
            {
                "productName": "null",
                "price": "$1,299.00",
                "imageUrl": "undefined",
                "attributes": {"Colour": "Red", "size": "undefined", "count": 3, "tags": ["a", None, "b"]},
                "somethingElse": 1,
            }
        )
        assert guess.product_name is None
        assert guess.price == 1299.0
        assert guess.image_url is None
        assert guess.attributes == {"color": "Red", "count": "3", "tags": ["a", "b"]}

    def test_unparseable_price(self):
        assert SemanticProduct.model_validate({"price": "call for price"}).price is None

    def test_canonical_keys(self):
        assert canonical_attribute_key("Fit_Type") == "fitType"
        assert canonical_attribute_key("HEELHEIGHT") == "heelHeight"
        assert canonical_attribute_key("Waterproof") == "Waterproof"


class TestSettings:
    def test_defaults_disable_collaborators(self):
        settings = Settings()
        assert not settings.render_proxy_enabled
        assert not settings.semantic_enabled

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("RENDER_PROXY_API_KEY", "proxy-key")
        monkeypatch.setenv("SEMANTIC_API_KEY", "sem-key")
        monkeypatch.setenv("DIRECT_FETCH_TIMEOUT", "not-a-number")
        monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example")
        settings = Settings.from_env()
        assert settings.render_proxy_enabled
        assert settings.semantic_enabled
        assert settings.direct_fetch_timeout == 8.0
        assert settings.cors_origins == ("http://a.example", "http://b.example")

    def test_missing_keys(self, monkeypatch):
        for name in ("RENDER_PROXY_API_KEY", "SEMANTIC_API_KEY", "OPENAI_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert not settings.render_proxy_enabled
        assert not settings.semantic_enabled


class TestErrors:
    def test_payload_shape(self):
        err = InvalidInputError("Missing url or productUrl")
        assert err.status_code == 400
        assert err.payload() == {
            "error": "Invalid request",
            "message": "Missing url or productUrl",
            "suggestion": InvalidInputError.suggestion,
        }

    def test_custom_suggestion(self):
        assert RateLimitedError(suggestion="Later.").payload()["suggestion"] == "Later."

    def test_classify_known_and_network_errors(self):
        known = SemanticAuthError()
        assert classify_exception(known) is known
        assert isinstance(classify_exception(httpx.ConnectError("refused")), UpstreamUnavailableError)

    def test_classify_by_message(self):
        assert isinstance(classify_exception(RuntimeError("429 Too Many Requests")), RateLimitedError)
        assert isinstance(classify_exception(RuntimeError("Invalid API key provided")), SemanticAuthError)
        assert isinstance(classify_exception(RuntimeError("connection reset")), UpstreamUnavailableError)
        generic = classify_exception(ValueError("boom"))
        assert type(generic) is ExtractionError
        assert generic.status_code == 500


class TestLogging:
    def test_file_handler_never_raises(self, tmp_path):
        handler = BestEffortFileHandler(str(tmp_path / "missing-dir" / "extract.log"))
        handler.emit(logging.LogRecord("test", logging.INFO, __file__, 1, "hello", None, None))
        handler.close()
