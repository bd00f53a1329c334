"""
FastAPI server for the wishlist product extractor.

One endpoint:
- POST /api/extract-product  {url | productUrl} → ProductRecord JSON

A URL runs the extraction pipeline; any other text is treated as a gift idea.
Failures come back as {error, message, suggestion} with a status code from
the error taxonomy in ``errors``.

    uvicorn server:app --port 8000
"""

import logging

import httpx
import orjson
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import ORJSONResponse
from pydantic import ValidationError

import ai
import extractor
from config import Settings
from errors import ExtractionError, InvalidInputError, classify_exception
from log import setup_logging
from models import ErrorPayload, ExtractRequest

logger = logging.getLogger("server")

settings = Settings.from_env()

# Shared outbound client, opened at startup
_client: httpx.AsyncClient | None = None


# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Product Extraction API",
    default_response_class=ORJSONResponse,
)

app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_origins),
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)


@app.on_event("startup")
async def startup() -> None:
    global _client
    setup_logging(log_file=settings.log_file)
    ai.configure(settings)
    _client = httpx.AsyncClient()
    logger.info(
        f"Extractor ready (render proxy: {'on' if settings.render_proxy_enabled else 'off'}, "
        f"semantic: {'on' if settings.semantic_enabled else 'off'})"
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------


def _error_response(exc: ExtractionError) -> ORJSONResponse:
    payload = ErrorPayload(**exc.payload())
    return ORJSONResponse(payload.model_dump(), status_code=exc.status_code)


@app.exception_handler(ExtractionError)
async def extraction_error_handler(request: Request, exc: ExtractionError) -> ORJSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.url.path}: {exc.error}: {exc.message}")
    else:
        logger.info(f"{request.url.path}: {exc.status_code} {exc.message}")
    return _error_response(exc)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    logger.exception(f"{request.url.path}: unhandled error")
    return _error_response(classify_exception(exc))


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


async def _read_request(request: Request) -> str:
    body = await request.body()
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as e:
        raise InvalidInputError("Request body is not valid JSON") from e
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object")
    try:
        parsed = ExtractRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError("url and productUrl must be strings") from e
    if not parsed.target:
        raise InvalidInputError("Missing url or productUrl")
    return parsed.target


@app.post("/api/extract-product")
async def extract_product(request: Request):
    """Extract a product record from a URL, or suggest one from a gift idea."""
    target = await _read_request(request)

    if target.lower().startswith(("http://", "https://")):
        outcome = await extractor.extract_product(target, client=_client, settings=settings)
    else:
        outcome = await extractor.extract_gift_idea(target)
    return outcome.product.to_response()
