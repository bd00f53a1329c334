"""
Error taxonomy for the extraction endpoint.

Every failure that reaches the HTTP boundary is an ``ExtractionError`` carrying
the status code and the ``{error, message, suggestion}`` payload shown to the
wishlist UI. ``classify_exception`` maps anything else onto one of these.
"""

import json

import httpx
from pydantic import ValidationError


class ExtractionError(Exception):
    status_code = 500
    error = "Extraction failed"
    suggestion = "Try again, or add the product details manually."

    def __init__(self, message: str | None = None, suggestion: str | None = None):
        self.message = message or self.error
        if suggestion:
            self.suggestion = suggestion
        super().__init__(self.message)

    def payload(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message, "suggestion": self.suggestion}


class InvalidInputError(ExtractionError):
    status_code = 400
    error = "Invalid request"
    suggestion = "Paste a full product URL starting with http:// or https://."


class SemanticAuthError(ExtractionError):
    status_code = 401
    error = "Extraction service not authorized"
    suggestion = "Check the semantic extraction API key configuration."


class RateLimitedError(ExtractionError):
    status_code = 429
    error = "Too many requests"
    suggestion = "Wait a minute and try again."


class UpstreamMalformedError(ExtractionError):
    status_code = 502
    error = "Unexpected upstream response"
    suggestion = "Try again, or add the product details manually."


class UpstreamUnavailableError(ExtractionError):
    status_code = 503
    error = "Service unavailable"
    suggestion = "Check your connection and try again in a moment."


# Message fragments used to classify exceptions from libraries we do not wrap
_RATE_LIMIT_WORDS = ("rate limit", "429", "too many requests", "quota")
_AUTH_WORDS = ("401", "unauthorized", "api key", "invalid_api_key", "authentication")
_NETWORK_WORDS = ("timeout", "timed out", "connection", "network", "unreachable", "econnrefused", "dns")


def classify_exception(exc: BaseException) -> ExtractionError:
    """Map an arbitrary exception onto the error taxonomy."""
    if isinstance(exc, ExtractionError):
        return exc
    if isinstance(exc, (httpx.TimeoutException, httpx.TransportError)):
        return UpstreamUnavailableError(f"Network error: {exc}")
    if isinstance(exc, (json.JSONDecodeError, ValidationError)):
        return UpstreamMalformedError(f"Malformed response: {exc}")

    text = str(exc).lower()
    if any(word in text for word in _RATE_LIMIT_WORDS):
        return RateLimitedError(str(exc))
    if any(word in text for word in _AUTH_WORDS):
        return SemanticAuthError(str(exc))
    if any(word in text for word in _NETWORK_WORDS):
        return UpstreamUnavailableError(str(exc))
    return ExtractionError(str(exc) or type(exc).__name__)
