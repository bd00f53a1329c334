"""Tests for the HTTP endpoint: request validation, routing and error mapping."""

import pytest
from fastapi.testclient import TestClient

import extractor
import server
from errors import RateLimitedError, SemanticAuthError
from extractor import ExtractionOutcome, ExtractionTrace
from models import ProductRecord

ENDPOINT = "/api/extract-product"


def outcome(**fields):
    return ExtractionOutcome(product=ProductRecord(**fields), trace=ExtractionTrace())


@pytest.fixture
def client():
    return TestClient(server.app)


@pytest.fixture
def calls(monkeypatch):
    """Record which pipeline entry point each request reached."""
    seen = []

    async def fake_product(url, client=None, settings=None):
        seen.append(("url", url))
        return outcome(product_name="Mug", price=12.5, product_link=url, set_="Set of 2")

    async def fake_gift(idea):
        seen.append(("gift", idea))
        return outcome(product_name="Blanket", is_from_gift_idea=True)

    monkeypatch.setattr(extractor, "extract_product", fake_product)
    monkeypatch.setattr(extractor, "extract_gift_idea", fake_gift)
    return seen


class TestRequestValidation:
    @pytest.mark.parametrize(
        "body",
        [b"{not json", b'["https://example.com/p/1"]', b"{}", b'{"url": 5}', b'{"url": "   "}'],
    )
    def test_bad_bodies(self, client, calls, body):
        response = client.post(ENDPOINT, content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert set(response.json()) == {"error", "message", "suggestion"}
        assert calls == []


class TestRouting:
    def test_url_is_extracted(self, client, calls):
        response = client.post(ENDPOINT, json={"url": "https://shop.example.com/p/mug"})
        assert response.status_code == 200
        data = response.json()
        assert data["productName"] == "Mug"
        assert data["price"] == 12.5
        assert data["set"] == "Set of 2"
        assert data["productLink"] == "https://shop.example.com/p/mug"
        assert calls == [("url", "https://shop.example.com/p/mug")]

    def test_product_url_wins(self, client, calls):
        client.post(ENDPOINT, json={"url": "https://a.example.com/x", "productUrl": "https://b.example.com/y"})
        assert calls == [("url", "https://b.example.com/y")]

    def test_gift_idea(self, client, calls):
        response = client.post(ENDPOINT, json={"url": "a cozy blanket for grandma"})
        assert response.status_code == 200
        assert response.json()["isFromGiftIdea"] is True
        assert calls == [("gift", "a cozy blanket for grandma")]


class TestErrorMapping:
    def _failing(self, monkeypatch, error):
        async def fail(url, client=None, settings=None):
            raise error

        monkeypatch.setattr(extractor, "extract_product", fail)

    def test_auth_error(self, client, monkeypatch):
        self._failing(monkeypatch, SemanticAuthError())
        response = client.post(ENDPOINT, json={"url": "https://shop.example.com/p/mug"})
        assert response.status_code == 401
        assert response.json()["error"] == SemanticAuthError.error

    def test_rate_limit(self, client, monkeypatch):
        self._failing(monkeypatch, RateLimitedError())
        response = client.post(ENDPOINT, json={"url": "https://shop.example.com/p/mug"})
        assert response.status_code == 429
        assert response.json()["suggestion"] == RateLimitedError.suggestion

    def test_unexpected_error_is_classified(self, monkeypatch):
        self._failing(monkeypatch, RuntimeError("connection reset by peer"))
        client = TestClient(server.app, raise_server_exceptions=False)
        response = client.post(ENDPOINT, json={"url": "https://shop.example.com/p/mug"})
        assert response.status_code == 503
        assert response.json()["error"] == "Service unavailable"
