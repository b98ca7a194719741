"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    catalog_backend: str = _get_env("CATALOG_BACKEND", "json")
    catalog_path: str = _get_env("CATALOG_PATH", "catalog.json")
    catalog_source_url: str = _get_env("CATALOG_SOURCE_URL", "")
    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "products")
    mapping_path: str = _get_env("MAPPING_PATH", "product-mapping.json")
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "300"))
    exchange_rates_url: str = _get_env("EXCHANGE_RATES_URL", "https://api.exchangerate-api.com/v4/latest/EUR")
    exchange_rates_ttl_seconds: int = int(_get_env("EXCHANGE_RATES_TTL_SECONDS", "3600"))
    display_currency: str = _get_env("DISPLAY_CURRENCY", "EUR").upper()
    search_debounce_ms: int = int(_get_env("SEARCH_DEBOUNCE_MS", "150"))
    load_on_startup: bool = _get_env("LOAD_ON_STARTUP", "true").lower() in {"1", "true", "yes"}
    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
