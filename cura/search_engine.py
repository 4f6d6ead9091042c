"""Product search: filtering, relevance scoring, caching and history.

A search call runs these steps:

    1) Normalize the query (trim + lowercase). An empty query short-circuits to
       a fixed set of popular categories and terms.
    2) Look the request up in the result cache.
    3) Fetch candidates from the catalog, restrict them to the enabled cities,
       and apply the product filters.
    4) Score candidates with fixed additive weights, keep the best
       ``result_limit`` by relevance, then re-sort that slice by ``sort_by``.
       Sorting by price or rating therefore only reorders the top matches, not
       the whole match set.
    5) Store the results in the cache and the query in the history.
"""
from __future__ import annotations

import json
import logging
from collections import Counter
from time import perf_counter
from typing import Iterable, List, Sequence
from urllib.parse import quote

from .cache import SearchCache
from .catalog import CatalogProvider
from .history import SearchHistory
from .models import (
    CacheStats,
    PopularQuery,
    Product,
    SearchAnalytics,
    SearchFilters,
    SearchResult,
    SearchSuggestion,
    SortBy,
)

logger = logging.getLogger(__name__)

EXACT_NAME_WEIGHT = 100
NAME_WEIGHT = 80
DESCRIPTION_WEIGHT = 40
TAG_WEIGHT = 60
CATEGORY_WEIGHT = 30
PHARMACY_WEIGHT = 20
IN_STOCK_BONUS = 10
RATING_MULTIPLIER = 2

POPULAR_SEARCHES = [
    "paracetamol",
    "vitamin d",
    "blood pressure monitor",
    "baby formula",
    "sunscreen",
    "omega 3",
    "calcium",
    "insulin",
    "thermometer",
    "face cream",
]

CATEGORIES = [
    ("prescription", "Prescription Medicines", "💊"),
    ("otc", "Over-the-Counter", "🏥"),
    ("supplements", "Supplements", "💉"),
    ("skincare", "Skincare", "🧴"),
    ("baby", "Baby Care", "👶"),
    ("medical", "Medical Supplies", "🩹"),
    ("vitamins", "Vitamins", "🍊"),
]


def normalize_query(query: str | None) -> str:
    return (query or "").strip().lower()


def build_cache_key(query: str, filters: SearchFilters, location_ids: Iterable[str], locale: str) -> str:
    filters_json = json.dumps(filters.model_dump(mode="json", by_alias=True), sort_keys=True)
    return f"{query}|{filters_json}|{','.join(sorted(location_ids))}|{locale}"


def apply_product_filters(products: Iterable[Product], filters: SearchFilters) -> List[Product]:
    """Keep products that satisfy every active filter.

    An inverted price range (min > max) matches nothing.
    """
    categories = set(filters.category)
    price_range = filters.price_range
    matched: List[Product] = []
    for product in products:
        if categories and product.category not in categories:
            continue
        if price_range is not None and not (price_range.min <= product.price <= price_range.max):
            continue
        if filters.in_stock_only and not product.in_stock:
            continue
        if filters.prescription_only and not product.prescription:
            continue
        if filters.min_rating is not None and product.rating < filters.min_rating:
            continue
        matched.append(product)
    return matched


def score_product(product: Product, query: str, locale: str = "en") -> float:
    needle = query.lower()
    name = product.display_name(locale).lower()
    score = 0.0

    if name == needle:
        score += EXACT_NAME_WEIGHT
    elif needle in name:
        score += NAME_WEIGHT
    if needle in product.display_description(locale).lower():
        score += DESCRIPTION_WEIGHT
    if any(needle in tag.lower() for tag in product.tags):
        score += TAG_WEIGHT
    if needle in product.category.lower():
        score += CATEGORY_WEIGHT
    if needle in product.pharmacy.lower():
        score += PHARMACY_WEIGHT
    if product.in_stock:
        score += IN_STOCK_BONUS
    score += product.rating * RATING_MULTIPLIER
    return score


def sort_results(results: Sequence[SearchResult], sort_by: SortBy) -> List[SearchResult]:
    if sort_by == SortBy.PRICE_LOW:
        return sorted(results, key=lambda item: item.metadata.get("price") or 0)
    if sort_by == SortBy.PRICE_HIGH:
        return sorted(results, key=lambda item: item.metadata.get("price") or 0, reverse=True)
    if sort_by == SortBy.RATING:
        return sorted(results, key=lambda item: item.metadata.get("rating") or 0, reverse=True)
    if sort_by == SortBy.NAME:
        return sorted(results, key=lambda item: item.title.casefold())
    return sorted(results, key=lambda item: item.relevance_score, reverse=True)


def _to_result(product: Product, score: float, locale: str) -> SearchResult:
    description = product.display_description(locale)
    return SearchResult(
        id=f"product-{product.id}",
        type="product",
        title=product.display_name(locale),
        subtitle=description,
        description=description,
        image=product.image,
        url=f"/product/{product.id}",
        relevance_score=score,
        metadata={
            "price": product.price,
            "rating": product.rating,
            "inStock": product.in_stock,
            "prescription": product.prescription,
            "category": product.category,
        },
    )


def popular_results() -> List[SearchResult]:
    results = [
        SearchResult(
            id=f"popular-category-{category_id}",
            type="category",
            title=name,
            subtitle="Popular Category",
            description=f"Browse {name.lower()}",
            url=f"/shop?category={category_id}",
            relevance_score=50,
            metadata={"icon": icon},
        )
        for category_id, name, icon in CATEGORIES[:4]
    ]
    results.extend(
        SearchResult(
            id=f"popular-search-{index}",
            type="product",
            title=term,
            subtitle="Popular Search",
            description=f"Search for {term}",
            url=f"/search?q={quote(term)}",
            relevance_score=40 - index,
            metadata={"isPopular": True},
        )
        for index, term in enumerate(POPULAR_SEARCHES[:6])
    )
    return results


class SearchEngine:
    """Ranks catalog products for free-text queries.

    One instance is built by the composition root and shared by the HTTP layer
    and the CLI; it owns the result cache and the search history.
    """

    def __init__(
        self,
        catalog: CatalogProvider,
        cache: SearchCache,
        history: SearchHistory,
        result_limit: int = 20,
        suggestion_limit: int = 8,
    ) -> None:
        self.catalog = catalog
        self.cache = cache
        self.history = history
        self.result_limit = result_limit
        self.suggestion_limit = suggestion_limit

    def search(
        self,
        query: str,
        filters: SearchFilters | None = None,
        enabled_location_ids: Sequence[str] = (),
        locale: str = "en",
    ) -> List[SearchResult]:
        filters = filters or SearchFilters()
        normalized_query = normalize_query(query)
        if not normalized_query:
            return popular_results()

        cache_key = build_cache_key(normalized_query, filters, enabled_location_ids, locale)
        t0 = perf_counter()
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(
                "timing: total=%.2fms cache_hit=1 q=%r results=%s",
                (perf_counter() - t0) * 1000,
                normalized_query,
                len(cached),
            )
            return list(cached)

        candidates = self.catalog.search_products(normalized_query, locale)
        t1 = perf_counter()
        if enabled_location_ids:
            allowed = set(enabled_location_ids)
            candidates = [product for product in candidates if product.city_id in allowed]
        candidates = apply_product_filters(candidates, filters)

        scored = sorted(
            ((product, score_product(product, normalized_query, locale)) for product in candidates),
            key=lambda pair: pair[1],
            reverse=True,
        )[: self.result_limit]
        results = sort_results(
            [_to_result(product, score, locale) for product, score in scored],
            filters.sort_by,
        )
        t2 = perf_counter()

        self.cache.set(cache_key, list(results))
        self.history.add(query.strip(), len(results), filters)
        logger.info(
            "timing: total=%.2fms catalog=%.2fms rank=%.2fms cache_hit=0 q=%r candidates=%s results=%s",
            (t2 - t0) * 1000,
            (t1 - t0) * 1000,
            (t2 - t1) * 1000,
            normalized_query,
            len(candidates),
            len(results),
        )
        return results

    def get_suggestions(self, query: str, enabled_location_ids: Sequence[str] = ()) -> List[SearchSuggestion]:
        normalized_query = normalize_query(query)
        if not normalized_query:
            recent = [
                SearchSuggestion(id=f"recent-{entry.id}", text=entry.query, type="recent", count=entry.result_count)
                for entry in self.history.recent(5)
            ]
            popular = [
                SearchSuggestion(id=f"popular-{index}", text=term, type="product")
                for index, term in enumerate(POPULAR_SEARCHES[:5])
            ]
            return recent + popular

        allowed = set(enabled_location_ids)
        suggestions: List[SearchSuggestion] = []
        for product in self.catalog.search_products(normalized_query, "en"):
            if allowed and product.city_id not in allowed:
                continue
            if normalized_query not in product.name.lower():
                continue
            suggestions.append(SearchSuggestion(id=f"product-{product.id}", text=product.name, type="product"))
            if len(suggestions) >= self.suggestion_limit:
                break
        return suggestions

    def clear_history(self) -> None:
        self.history.clear()
        logger.info("search history cleared")

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("search cache cleared")

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def search_analytics(self) -> SearchAnalytics:
        entries = self.history.recent()
        counts = Counter(entry.query for entry in entries)
        popular = [PopularQuery(query=query, count=count) for query, count in counts.most_common(10)]
        total_results = sum(entry.result_count for entry in entries)
        return SearchAnalytics(
            total_searches=len(entries),
            popular_queries=popular,
            average_result_count=total_results / len(entries) if entries else 0.0,
        )
