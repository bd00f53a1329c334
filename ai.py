"""
Semantic extraction collaborator: an OpenAI-compatible text model.

``responses()`` sends a list of chat messages and returns either the raw text or,
when ``text_format`` is a pydantic model, the reply parsed into that model. The
reply is untrusted: markdown fences are stripped and the JSON is validated.
Provider failures are translated into the error taxonomy in ``errors``.
"""

import json
import re
from typing import Any, TypeVar

import openai
from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from config import Settings
from errors import RateLimitedError, SemanticAuthError, UpstreamMalformedError, UpstreamUnavailableError

M = TypeVar("M", bound=BaseModel)

_settings: Settings | None = None
_client: AsyncOpenAI | None = None


def configure(settings: Settings) -> None:
    """Point the module at a settings object; the client is rebuilt lazily."""
    global _settings, _client
    _settings = settings
    _client = None


def settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def is_configured() -> bool:
    return settings().semantic_enabled


def _get_client() -> AsyncOpenAI:
    global _client
    if _client is None:
        s = settings()
        _client = AsyncOpenAI(api_key=s.semantic_api_key, base_url=s.semantic_base_url, timeout=s.semantic_timeout)
    return _client


_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*|\s*```\s*$", re.IGNORECASE)


def strip_json_fences(text: str) -> str:
    """Drop markdown code fences and any prose around the outermost JSON object."""
    text = _FENCE_RE.sub("", text.strip())
    start, end = text.find("{"), text.rfind("}")
    if start >= 0 and end > start:
        return text[start : end + 1]
    return text


def parse_reply(text: str, text_format: type[M]) -> M:
    try:
        data = json.loads(strip_json_fences(text))
    except json.JSONDecodeError as e:
        raise UpstreamMalformedError(f"Semantic reply was not JSON: {e}") from e
    if not isinstance(data, dict):
        raise UpstreamMalformedError("Semantic reply was not a JSON object")
    try:
        return text_format.model_validate(data)
    except ValidationError as e:
        raise UpstreamMalformedError(f"Semantic reply failed validation: {e.error_count()} errors") from e


async def responses(model: str | None, input: list[dict[str, Any]], text_format: type[M] | None = None) -> M | str:
    """One request to the semantic collaborator. No retries."""
    if not is_configured():
        raise SemanticAuthError("Semantic extraction is not configured")
    try:
        response = await _get_client().responses.create(model=model or settings().semantic_model, input=input)
    except openai.RateLimitError as e:
        raise RateLimitedError(f"Semantic service rate limited: {e}") from e
    except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
        raise SemanticAuthError(f"Semantic service rejected credentials: {e}") from e
    except (openai.APIConnectionError, openai.APITimeoutError) as e:
        raise UpstreamUnavailableError(f"Semantic service unreachable: {e}") from e
    except openai.APIStatusError as e:
        raise UpstreamMalformedError(f"Semantic service error {e.status_code}") from e

    text = response.output_text or ""
    if text_format is None:
        return text
    return parse_reply(text, text_format)
