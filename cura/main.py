"""FastAPI application wiring the search engine and revenue aggregator."""
from __future__ import annotations

import asyncio
import logging
import sys
from time import perf_counter
from typing import List, Literal

from elasticsearch import Elasticsearch
from fastapi import FastAPI, HTTPException, Query
from pydantic import ValidationError

from .bootstrap import build_order_source, build_revenue_aggregator, build_search_engine
from .catalog import ElasticsearchCatalog
from .config import Settings, settings
from .es_client import create_client
from .importer import import_if_empty, reindex_data
from .indexing import ensure_index
from .models import (
    CacheStats,
    PriceRange,
    SearchAnalytics,
    SearchFilters,
    SearchResponse,
    SearchSuggestion,
    SortBy,
)
from .orders import OrderSource
from .revenue import RevenueAggregator, parse_timeframe
from .revenue_models import (
    Order,
    PharmacyAnalytics,
    RevenueAnalytics,
    RevenueBaseline,
    RevenueKPIs,
    RevenueSummary,
    RevenueTimeframe,
)
from .search_engine import SearchEngine

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL = logging.getLevelName(settings.log_level.upper())

# Replace uvicorn's default handlers so engine timing lines share one format.
logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT, force=True)
for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "elastic_transport"):
    logging.getLogger(name).setLevel(LOG_LEVEL)

logger = logging.getLogger(__name__)
logger.info("Logging configured at %s", settings.log_level.upper())

Locale = Literal["en", "ar"]


def _resolve_days(days: int | None, timeframe: str) -> int:
    return days if days is not None else parse_timeframe(timeframe)


def create_app(
    app_settings: Settings = settings,
    engine: SearchEngine | None = None,
    aggregator: RevenueAggregator | None = None,
    order_source: OrderSource | None = None,
) -> FastAPI:
    es: Elasticsearch | None = None
    if engine is None:
        if app_settings.catalog_backend == "elasticsearch":
            es = create_client(app_settings)
            engine = build_search_engine(app_settings, catalog=ElasticsearchCatalog(es, app_settings.es_index))
        else:
            engine = build_search_engine(app_settings)
    aggregator = aggregator or build_revenue_aggregator(app_settings)
    order_source = order_source or build_order_source(app_settings)

    app = FastAPI(title="CURA Search & Revenue Service")
    app.state.engine = engine
    app.state.aggregator = aggregator
    app.state.order_source = order_source

    @app.on_event("startup")
    async def startup_event() -> None:
        if es is None:
            return
        await asyncio.to_thread(ensure_index, es, app_settings.es_index, app_settings.mapping_path)
        if app_settings.load_on_startup:
            imported = await asyncio.to_thread(import_if_empty, es, app_settings)
            if imported:
                logger.info("Imported %s products on startup", imported)

    async def load_orders() -> List[Order]:
        return await asyncio.to_thread(order_source.list_orders)

    async def analytics_inputs(days: int, compare_previous: bool) -> tuple[List[Order], RevenueBaseline | None]:
        orders = await load_orders()
        baseline = aggregator.build_baseline(orders, days) if compare_previous else None
        return orders, baseline

    @app.get("/health")
    async def health() -> dict:
        status = {
            "catalog": app_settings.catalog_backend,
            "cache": engine.cache_stats().model_dump(by_alias=True),
            "history": len(engine.history),
        }
        if es is not None:
            cluster = await asyncio.to_thread(es.cluster.health)
            status["elasticsearch"] = cluster.get("status")
            status["index"] = app_settings.es_index
        return status

    @app.get("/search", response_model=SearchResponse)
    async def search(
        q: str = Query("", description="Search query; empty returns popular entries"),
        category: List[str] = Query(default=[]),
        min_price: float | None = Query(None, alias="minPrice"),
        max_price: float | None = Query(None, alias="maxPrice"),
        in_stock_only: bool = Query(False, alias="inStockOnly"),
        prescription_only: bool = Query(False, alias="prescriptionOnly"),
        min_rating: float | None = Query(None, alias="minRating", ge=0, le=5),
        sort_by: SortBy = Query(SortBy.RELEVANCE, alias="sortBy"),
        cities: List[str] = Query(default=[], alias="city"),
        locale: Locale = "en",
    ) -> SearchResponse:
        price_range = None
        if min_price is not None or max_price is not None:
            try:
                price_range = PriceRange(
                    min=min_price if min_price is not None else 0.0,
                    max=max_price if max_price is not None else sys.float_info.max,
                )
            except ValidationError as exc:
                raise HTTPException(status_code=422, detail="minPrice and maxPrice must be numbers") from exc
        filters = SearchFilters(
            category=category,
            price_range=price_range,
            in_stock_only=in_stock_only,
            prescription_only=prescription_only,
            min_rating=min_rating,
            sort_by=sort_by,
        )
        started = perf_counter()
        results = await asyncio.to_thread(engine.search, q, filters, cities, locale)
        took_ms = (perf_counter() - started) * 1000
        return SearchResponse(query=q.strip().lower(), results=results, took_ms=took_ms)

    @app.get("/search/suggestions", response_model=List[SearchSuggestion])
    async def suggestions(
        q: str = "",
        cities: List[str] = Query(default=[], alias="city"),
    ) -> List[SearchSuggestion]:
        return await asyncio.to_thread(engine.get_suggestions, q, cities)

    @app.delete("/search/history", status_code=204)
    async def clear_history() -> None:
        await asyncio.to_thread(engine.clear_history)

    @app.delete("/search/cache", status_code=204)
    async def clear_cache() -> None:
        engine.clear_cache()

    @app.get("/search/cache/stats", response_model=CacheStats)
    async def cache_stats() -> CacheStats:
        return engine.cache_stats()

    @app.get("/search/analytics", response_model=SearchAnalytics)
    async def search_analytics() -> SearchAnalytics:
        return await asyncio.to_thread(engine.search_analytics)

    @app.post("/catalog/reindex")
    async def reindex() -> dict:
        if es is None:
            raise HTTPException(status_code=400, detail="Catalog backend does not support reindexing")
        count = await asyncio.to_thread(reindex_data, es, app_settings)
        engine.clear_cache()
        return {"indexed": count}

    @app.get("/revenue/timeframes", response_model=List[RevenueTimeframe])
    async def timeframes() -> List[RevenueTimeframe]:
        return aggregator.get_timeframes()

    @app.get("/revenue/commission")
    async def commission(
        pharmacy_id: str = Query(..., alias="pharmacyId"),
        order_value: float = Query(..., alias="orderValue", ge=0),
    ) -> dict:
        return {
            "pharmacyId": pharmacy_id,
            "orderValue": order_value,
            "commissionRate": aggregator.commission_rate(pharmacy_id),
            "commission": aggregator.compute_commission(pharmacy_id, order_value),
            "platformRevenue": aggregator.compute_platform_revenue(pharmacy_id, order_value),
        }

    @app.get("/revenue/analytics", response_model=RevenueAnalytics)
    async def revenue_analytics(
        timeframe: str = "30d",
        days: int | None = Query(None, ge=1, le=366),
        compare_previous: bool = Query(True, alias="comparePrevious"),
    ) -> RevenueAnalytics:
        window = _resolve_days(days, timeframe)
        orders, baseline = await analytics_inputs(window, compare_previous)
        return aggregator.aggregate(orders, window, baseline)

    @app.get("/revenue/summary", response_model=RevenueSummary)
    async def revenue_summary(
        timeframe: str = "30d",
        days: int | None = Query(None, ge=1, le=366),
        compare_previous: bool = Query(True, alias="comparePrevious"),
    ) -> RevenueSummary:
        window = _resolve_days(days, timeframe)
        orders, baseline = await analytics_inputs(window, compare_previous)
        return aggregator.summarize(orders, window, baseline)

    @app.get("/revenue/kpis", response_model=RevenueKPIs)
    async def revenue_kpis(
        timeframe: str = "30d",
        days: int | None = Query(None, ge=1, le=366),
        compare_previous: bool = Query(True, alias="comparePrevious"),
    ) -> RevenueKPIs:
        window = _resolve_days(days, timeframe)
        orders, baseline = await analytics_inputs(window, compare_previous)
        return aggregator.compute_kpis(orders, window, baseline)

    @app.get("/revenue/pharmacies/{pharmacy_id}", response_model=PharmacyAnalytics)
    async def pharmacy_revenue(
        pharmacy_id: str,
        timeframe: str = "30d",
        days: int | None = Query(None, ge=1, le=366),
        compare_previous: bool = Query(True, alias="comparePrevious"),
    ) -> PharmacyAnalytics:
        window = _resolve_days(days, timeframe)
        orders, baseline = await analytics_inputs(window, compare_previous)
        report = aggregator.pharmacy_analytics(orders, pharmacy_id, window, baseline)
        if report is None:
            raise HTTPException(status_code=404, detail=f"No sales for pharmacy {pharmacy_id!r} in window")
        return report

    return app


app = create_app()
