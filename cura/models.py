"""Pydantic models for catalog products and search payloads."""
from __future__ import annotations

import math
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase JSON; both spellings accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Product(CamelModel):
    id: str
    name: str
    name_ar: str = ""
    description: str = ""
    description_ar: str = ""
    category: str
    price: float = Field(..., ge=0)
    tags: list[str] = Field(default_factory=list)
    pharmacy_id: str = ""
    pharmacy: str = ""
    city_id: str = ""
    city_name: str = ""
    in_stock: bool = True
    prescription: bool = False
    rating: float = Field(0.0, ge=0, le=5)
    image: str | None = None
    manufacturer: str = ""
    active_ingredient: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    def display_name(self, locale: str) -> str:
        if locale == "ar" and self.name_ar:
            return self.name_ar
        return self.name

    def display_description(self, locale: str) -> str:
        if locale == "ar" and self.description_ar:
            return self.description_ar
        return self.description


class SortBy(str, Enum):
    RELEVANCE = "relevance"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    RATING = "rating"
    DISTANCE = "distance"
    NAME = "name"


class PriceRange(CamelModel):
    """Inclusive price bounds. Infinite bounds are clamped to the largest float so
    the range stays representable in JSON."""

    model_config = ConfigDict(frozen=True)

    min: float
    max: float

    @field_validator("min", "max")
    @classmethod
    def _finite_bound(cls, value: float) -> float:
        if math.isnan(value):
            raise ValueError("price bound must be a number")
        if math.isinf(value):
            return math.copysign(sys.float_info.max, value)
        return value


class SearchFilters(CamelModel):
    model_config = ConfigDict(frozen=True)

    category: list[str] = Field(default_factory=list)
    price_range: PriceRange | None = None
    in_stock_only: bool = False
    prescription_only: bool = False
    min_rating: float | None = None
    sort_by: SortBy = SortBy.RELEVANCE


class SearchResult(CamelModel):
    id: str
    type: Literal["product", "category"] = "product"
    title: str
    subtitle: str | None = None
    description: str | None = None
    image: str | None = None
    url: str
    relevance_score: float = Field(..., ge=0)
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchSuggestion(CamelModel):
    id: str
    text: str
    type: Literal["product", "recent"]
    count: int | None = None


class SearchHistoryEntry(CamelModel):
    id: str
    query: str
    timestamp: datetime
    result_count: int = 0
    filters: SearchFilters | None = None


class CacheStats(CamelModel):
    size: int
    max_size: int
    hits: int
    misses: int
    hit_rate: float


class PopularQuery(CamelModel):
    query: str
    count: int


class SearchAnalytics(CamelModel):
    total_searches: int
    popular_queries: list[PopularQuery]
    average_result_count: float


class SearchResponse(CamelModel):
    query: str
    results: list[SearchResult]
    took_ms: float
