"""
Runtime configuration read from environment variables.

Every setting is optional: without a render-proxy key the proxy tier is skipped,
without a semantic key the semantic fallback is skipped.
"""

import os
from dataclasses import dataclass, field


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    render_proxy_api_key: str | None = None
    render_proxy_url: str = "https://api.scraperapi.com/"
    render_proxy_timeout: float = 30.0
    direct_fetch_timeout: float = 8.0

    semantic_api_key: str | None = None
    semantic_base_url: str = "https://openrouter.ai/api/v1"
    semantic_model: str = "openai/gpt-4o-mini"
    semantic_timeout: float = 30.0

    log_file: str | None = None
    cors_origins: tuple[str, ...] = field(default=("http://localhost:3000",))

    @property
    def render_proxy_enabled(self) -> bool:
        return bool(self.render_proxy_api_key)

    @property
    def semantic_enabled(self) -> bool:
        return bool(self.semantic_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        origins = os.environ.get("CORS_ORIGINS", "http://localhost:3000")
        return cls(
            render_proxy_api_key=os.environ.get("RENDER_PROXY_API_KEY") or None,
            render_proxy_url=os.environ.get("RENDER_PROXY_URL") or cls.render_proxy_url,
            render_proxy_timeout=_float_env("RENDER_PROXY_TIMEOUT", cls.render_proxy_timeout),
            direct_fetch_timeout=_float_env("DIRECT_FETCH_TIMEOUT", cls.direct_fetch_timeout),
            semantic_api_key=os.environ.get("SEMANTIC_API_KEY") or os.environ.get("OPENAI_API_KEY") or None,
            semantic_base_url=os.environ.get("SEMANTIC_BASE_URL") or cls.semantic_base_url,
            semantic_model=os.environ.get("SEMANTIC_MODEL") or cls.semantic_model,
            semantic_timeout=_float_env("SEMANTIC_TIMEOUT", cls.semantic_timeout),
            log_file=os.environ.get("EXTRACT_LOG_FILE") or None,
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )
