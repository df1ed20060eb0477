"""
Configuration Management for the Perinatal Companion

Loads configuration from ~/.companion/config.json and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger("companion.common.config")

# Default config paths
CONFIG_DIR = Path.home() / ".companion"
CONFIG_PATH = CONFIG_DIR / "config.json"

DEFAULT_MAX_FETCH_BYTES = 2_000_000
DEFAULT_MAX_CONCURRENT_FETCHES = 2
DEFAULT_PORT = 8787


@dataclass
class GatewayConfig:
    """Retrieval gateway (search + fetch proxy) configuration"""
    allow_list: List[str] = field(default_factory=list)
    max_fetch_bytes: int = DEFAULT_MAX_FETCH_BYTES
    max_concurrent_fetches: int = DEFAULT_MAX_CONCURRENT_FETCHES
    cors_origins: List[str] = field(default_factory=list)  # empty = open
    google_key: str = ""
    google_cx: str = ""
    port: int = DEFAULT_PORT
    search_timeout: float = 8.0
    fetch_timeout: float = 15.0

    @property
    def cors_allow_all(self) -> bool:
        return not self.cors_origins or self.cors_origins == ["*"]


@dataclass
class LLMConfig:
    """Language model provider configuration"""
    provider: str = "openai"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-haiku-4-5-20251001"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = ""  # set for a local OpenAI-compatible server
    google_api_key: str = ""
    google_model: str = "gemini-2.0-flash"
    timeout: float = 30.0


@dataclass
class RouterConfig:
    """Conversation router configuration"""
    api_base: str = f"http://127.0.0.1:{DEFAULT_PORT}"
    content_dir: str = "content"
    search_count: int = 3
    history_size: int = 6
    llm_routing: bool = True
    rewrite_queries: bool = True


@dataclass
class CompanionConfig:
    """Main companion configuration"""
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    router: RouterConfig = field(default_factory=RouterConfig)


def parse_csv(value: str) -> List[str]:
    """Split a comma-separated setting into lowercased, non-empty entries."""
    return [part.strip().lower() for part in (value or "").split(",") if part.strip()]


def _as_list(value) -> List[str]:
    if isinstance(value, str):
        return parse_csv(value)
    if isinstance(value, list):
        return [str(v).strip().lower() for v in value if str(v).strip()]
    return []


def _parse_gateway_config(data: dict) -> GatewayConfig:
    """Parse gateway section from config dict"""
    gateway_data = data.get("gateway", {})
    return GatewayConfig(
        allow_list=_as_list(gateway_data.get("allow_list", [])),
        max_fetch_bytes=gateway_data.get("max_fetch_bytes", DEFAULT_MAX_FETCH_BYTES),
        max_concurrent_fetches=gateway_data.get("max_concurrent_fetches", DEFAULT_MAX_CONCURRENT_FETCHES),
        cors_origins=[o.strip() for o in gateway_data.get("cors_origins", []) if o.strip()],
        google_key=gateway_data.get("google_key", ""),
        google_cx=gateway_data.get("google_cx", ""),
        port=gateway_data.get("port", DEFAULT_PORT),
        search_timeout=gateway_data.get("search_timeout", 8.0),
        fetch_timeout=gateway_data.get("fetch_timeout", 15.0),
    )


def _parse_llm_config(data: dict) -> LLMConfig:
    """Parse llm section from config dict"""
    llm_data = data.get("llm", {})
    defaults = LLMConfig()
    return LLMConfig(
        provider=llm_data.get("provider", defaults.provider),
        anthropic_api_key=llm_data.get("anthropic_api_key", ""),
        anthropic_model=llm_data.get("anthropic_model", defaults.anthropic_model),
        openai_api_key=llm_data.get("openai_api_key", ""),
        openai_model=llm_data.get("openai_model", defaults.openai_model),
        openai_base_url=llm_data.get("openai_base_url", ""),
        google_api_key=llm_data.get("google_api_key", ""),
        google_model=llm_data.get("google_model", defaults.google_model),
        timeout=llm_data.get("timeout", defaults.timeout),
    )


def _parse_router_config(data: dict) -> RouterConfig:
    """Parse router section from config dict"""
    router_data = data.get("router", {})
    defaults = RouterConfig()
    return RouterConfig(
        api_base=router_data.get("api_base", defaults.api_base),
        content_dir=router_data.get("content_dir", defaults.content_dir),
        search_count=router_data.get("search_count", defaults.search_count),
        history_size=router_data.get("history_size", defaults.history_size),
        llm_routing=router_data.get("llm_routing", defaults.llm_routing),
        rewrite_queries=router_data.get("rewrite_queries", defaults.rewrite_queries),
    )


def _env_number(name: str, cast, default):
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring invalid %s=%r, using %s", name, raw, default)
        return default


def load_config() -> CompanionConfig:
    """
    Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables
    2. Config file (~/.companion/config.json)
    3. Default values
    """
    config = CompanionConfig()

    if CONFIG_PATH.exists():
        try:
            with open(CONFIG_PATH) as f:
                data = json.load(f)

            config.gateway = _parse_gateway_config(data)
            config.llm = _parse_llm_config(data)
            config.router = _parse_router_config(data)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning("Failed to load config file: %s", e)

    # Gateway env overrides
    if os.getenv("ALLOW_LIST") is not None:
        config.gateway.allow_list = parse_csv(os.getenv("ALLOW_LIST"))
    if os.getenv("CORS_ORIGINS"):
        config.gateway.cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS").split(",") if o.strip()]
    if os.getenv("GOOGLE_KEY"):
        config.gateway.google_key = os.getenv("GOOGLE_KEY")
    if os.getenv("GOOGLE_CX"):
        config.gateway.google_cx = os.getenv("GOOGLE_CX")

    gw = config.gateway
    gw.max_fetch_bytes = _env_number("FETCH_MAX_BYTES", int, gw.max_fetch_bytes)
    gw.max_concurrent_fetches = _env_number("FETCH_CONCURRENCY", int, gw.max_concurrent_fetches)
    gw.port = _env_number("PORT", int, gw.port)
    gw.search_timeout = _env_number("SEARCH_TIMEOUT", float, gw.search_timeout)
    gw.fetch_timeout = _env_number("FETCH_TIMEOUT", float, gw.fetch_timeout)

    # Router env overrides
    if os.getenv("COMPANION_API_BASE"):
        config.router.api_base = os.getenv("COMPANION_API_BASE").rstrip("/")
    if os.getenv("COMPANION_CONTENT_DIR"):
        config.router.content_dir = os.getenv("COMPANION_CONTENT_DIR")

    # LLM env overrides
    _env_llm_map = {
        "COMPANION_LLM_PROVIDER": "provider",
        "ANTHROPIC_API_KEY": "anthropic_api_key",
        "ANTHROPIC_MODEL": "anthropic_model",
        "OPENAI_API_KEY": "openai_api_key",
        "OPENAI_MODEL": "openai_model",
        "OPENAI_BASE_URL": "openai_base_url",
        "GOOGLE_API_KEY": "google_api_key",
        "GEMINI_API_KEY": "google_api_key",
        "GOOGLE_MODEL": "google_model",
    }
    for env_var, attr in _env_llm_map.items():
        val = os.getenv(env_var)
        if val:
            setattr(config.llm, attr, val)

    return config
