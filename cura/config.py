"""Application configuration and constants."""
from __future__ import annotations

import os
from dataclasses import dataclass


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name)
    return value if value is not None else default


def _get_flag(name: str, default: str) -> bool:
    return _get_env(name, default).lower() in {"1", "true", "yes"}


@dataclass(frozen=True)
class Settings:
    """Simple settings container with environment variable overrides."""

    # Search engine
    cache_ttl_seconds: int = int(_get_env("CACHE_TTL_SECONDS", "300"))
    search_cache_size: int = int(_get_env("SEARCH_CACHE_SIZE", "100"))
    search_result_limit: int = int(_get_env("SEARCH_RESULT_LIMIT", "20"))
    search_history_limit: int = int(_get_env("SEARCH_HISTORY_LIMIT", "20"))
    search_history_key: str = _get_env("SEARCH_HISTORY_KEY", "cura-search-history")
    suggestion_limit: int = int(_get_env("SUGGESTION_LIMIT", "8"))

    # Durable key-value store
    use_redis: bool = _get_flag("USE_REDIS", "true")
    redis_host: str = _get_env("REDIS_HOST", "localhost")
    redis_port: int = int(_get_env("REDIS_PORT", "6379"))

    # Catalog and order sources
    catalog_backend: str = _get_env("CATALOG_BACKEND", "memory")
    catalog_path: str = _get_env("CATALOG_PATH", "data/products.json")
    orders_path: str = _get_env("ORDERS_PATH", "data/orders.json")
    es_host: str = _get_env("ES_HOST", "http://localhost:9200")
    es_index: str = _get_env("ES_INDEX", "cura-products")
    mapping_path: str = _get_env("MAPPING_PATH", "product-mapping.json")
    load_on_startup: bool = _get_flag("LOAD_ON_STARTUP", "true")

    # Revenue
    default_commission_rate: float = float(_get_env("DEFAULT_COMMISSION_RATE", "10"))
    default_doctor_commission_rate: float = float(_get_env("DEFAULT_DOCTOR_COMMISSION_RATE", "5"))
    gross_margin: float = float(_get_env("GROSS_MARGIN", "0.8"))

    log_level: str = _get_env("LOG_LEVEL", "INFO")


settings = Settings()
