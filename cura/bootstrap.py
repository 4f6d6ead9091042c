"""Composition root: builds the shared engine instances from settings."""
from __future__ import annotations

import logging

from .cache import SearchCache
from .catalog import CatalogProvider, ElasticsearchCatalog, InMemoryCatalog
from .config import Settings
from .es_client import create_client
from .history import SearchHistory
from .orders import JsonOrderSource
from .revenue import RevenueAggregator
from .search_engine import SearchEngine
from .storage import KeyValueStore, create_store

logger = logging.getLogger(__name__)


def build_catalog(settings: Settings) -> CatalogProvider:
    if settings.catalog_backend == "elasticsearch":
        return ElasticsearchCatalog(create_client(settings), settings.es_index)
    if settings.catalog_backend != "memory":
        logger.warning("Unknown catalog backend %r, using in-memory catalog", settings.catalog_backend)
    return InMemoryCatalog.from_file(settings.catalog_path)


def build_search_engine(
    settings: Settings,
    catalog: CatalogProvider | None = None,
    store: KeyValueStore | None = None,
) -> SearchEngine:
    cache = SearchCache(max_size=settings.search_cache_size, ttl_seconds=settings.cache_ttl_seconds)
    history = SearchHistory(
        store if store is not None else create_store(settings),
        key=settings.search_history_key,
        limit=settings.search_history_limit,
    )
    return SearchEngine(
        catalog if catalog is not None else build_catalog(settings),
        cache,
        history,
        result_limit=settings.search_result_limit,
        suggestion_limit=settings.suggestion_limit,
    )


def build_revenue_aggregator(settings: Settings) -> RevenueAggregator:
    return RevenueAggregator(
        default_rate=settings.default_commission_rate,
        default_doctor_rate=settings.default_doctor_commission_rate,
        gross_margin=settings.gross_margin,
    )


def build_order_source(settings: Settings) -> JsonOrderSource:
    return JsonOrderSource(settings.orders_path)
