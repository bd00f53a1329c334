"""Tests for the semantic collaborator wrapper."""

import asyncio
from types import SimpleNamespace

import httpx
import openai
import pytest

import ai
from config import Settings
from errors import RateLimitedError, SemanticAuthError, UpstreamMalformedError, UpstreamUnavailableError
from models import SemanticProduct


class FakeResponses:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(output_text=self.reply)


@pytest.fixture
def fake_client(monkeypatch):
    """Configure the module with a key and swap in a fake client."""

    def install(reply=None, error=None):
        responses = FakeResponses(reply, error)
        monkeypatch.setattr(ai, "_settings", Settings(semantic_api_key="sk-test", semantic_model="test-model"))
        monkeypatch.setattr(ai, "_client", SimpleNamespace(responses=responses))
        return responses

    return install


def _request():
    return httpx.Request("POST", "https://semantic.example/v1/responses")


class TestStripJsonFences:
    def test_fenced_block(self):
        assert ai.strip_json_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_prose_around_object(self):
        assert ai.strip_json_fences('Sure! Here it is: {"a": {"b": 2}} Hope that helps.') == '{"a": {"b": 2}}'

    def test_no_object(self):
        assert ai.strip_json_fences("nothing here") == "nothing here"


class TestParseReply:
    def test_parses_into_model(self):
        guess = ai.parse_reply('Result:\n```json\n{"productName": "Mug", "price": "$12.50"}\n```', SemanticProduct)
        assert guess.product_name == "Mug"
        assert guess.price == 12.5

    def test_not_json(self):
        with pytest.raises(UpstreamMalformedError):
            ai.parse_reply("I could not find a product.", SemanticProduct)

    def test_not_an_object(self):
        with pytest.raises(UpstreamMalformedError):
            ai.parse_reply('["Mug"]', SemanticProduct)


class TestResponses:
    def test_unconfigured(self, monkeypatch):
        monkeypatch.setattr(ai, "_settings", Settings())
        monkeypatch.setattr(ai, "_client", None)
        with pytest.raises(SemanticAuthError):
            asyncio.run(ai.responses(model=None, input=[{"role": "user", "content": "hi"}]))

    def test_success(self, fake_client):
        responses = fake_client(reply='{"productName": "Mug"}')
        guess = asyncio.run(ai.responses(model=None, input=[{"role": "user", "content": "hi"}], text_format=SemanticProduct))
        assert guess.product_name == "Mug"
        assert responses.calls[0]["model"] == "test-model"

    def test_raw_text_without_format(self, fake_client):
        fake_client(reply="plain words")
        assert asyncio.run(ai.responses(model="other", input=[])) == "plain words"

    def test_rate_limit(self, fake_client):
        error = openai.RateLimitError("slow down", response=httpx.Response(429, request=_request()), body=None)
        fake_client(error=error)
        with pytest.raises(RateLimitedError):
            asyncio.run(ai.responses(model=None, input=[]))

    def test_rejected_credentials(self, fake_client):
        error = openai.AuthenticationError("bad key", response=httpx.Response(401, request=_request()), body=None)
        fake_client(error=error)
        with pytest.raises(SemanticAuthError):
            asyncio.run(ai.responses(model=None, input=[]))

    def test_connection_error(self, fake_client):
        fake_client(error=openai.APIConnectionError(request=_request()))
        with pytest.raises(UpstreamUnavailableError):
            asyncio.run(ai.responses(model=None, input=[]))

    def test_server_error_is_malformed(self, fake_client):
        error = openai.InternalServerError("boom", response=httpx.Response(500, request=_request()), body=None)
        fake_client(error=error)
        with pytest.raises(UpstreamMalformedError):
            asyncio.run(ai.responses(model=None, input=[]))
