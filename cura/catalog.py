"""Catalog providers consumed read-only by the search engine."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Protocol, Sequence

from elasticsearch import ApiError, Elasticsearch, TransportError
from pydantic import TypeAdapter

from .models import Product

logger = logging.getLogger(__name__)

_PRODUCTS = TypeAdapter(List[Product])

SEARCH_FIELDS = [
    "name^3",
    "nameAr^3",
    "tags^2",
    "description",
    "descriptionAr",
    "category",
    "pharmacy",
    "manufacturer",
    "activeIngredient",
]


class CatalogProvider(Protocol):
    def search_products(self, query: str, locale: str = "en") -> List[Product]: ...

    def products_in_locations(self, location_ids: Sequence[str]) -> List[Product]: ...


def load_products(path: Path) -> List[Product]:
    if not path.exists():
        logger.warning("Catalog file %s is missing", path)
        return []
    with path.open("r", encoding="utf-8") as fh:
        return _PRODUCTS.validate_python(json.load(fh))


def _searchable_text(product: Product) -> Iterable[str]:
    yield product.name
    yield product.name_ar
    yield product.description
    yield product.description_ar
    yield product.category
    yield product.pharmacy
    yield product.manufacturer
    yield product.active_ingredient
    yield from product.tags


class InMemoryCatalog:
    """Catalog held in a list; matches are case-insensitive substrings."""

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: List[Product] = list(products)

    @classmethod
    def from_file(cls, path: str | Path) -> "InMemoryCatalog":
        products = load_products(Path(path))
        logger.info("Loaded %s products from %s", len(products), path)
        return cls(products)

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    def search_products(self, query: str, locale: str = "en") -> List[Product]:
        needle = query.strip().lower()
        if not needle:
            return list(self._products)
        return [
            product
            for product in self._products
            if any(needle in text.lower() for text in _searchable_text(product) if text)
        ]

    def products_in_locations(self, location_ids: Sequence[str]) -> List[Product]:
        if not location_ids:
            return list(self._products)
        allowed = set(location_ids)
        return [product for product in self._products if product.city_id in allowed]


class ElasticsearchCatalog:
    """Catalog backed by an Elasticsearch index of camelCase product documents."""

    def __init__(self, es: Elasticsearch, index: str, size: int = 500) -> None:
        self._es = es
        self._index = index
        self._size = size

    def _build_query(self, query: str, location_ids: Sequence[str] = ()) -> Dict[str, Any]:
        bool_clause: Dict[str, Any] = {"must": [], "filter": []}
        if query:
            bool_clause["must"].append(
                {
                    "multi_match": {
                        "query": query,
                        "fields": SEARCH_FIELDS,
                        "type": "phrase_prefix",
                    }
                }
            )
        else:
            bool_clause["must"].append({"match_all": {}})
        if location_ids:
            bool_clause["filter"].append({"terms": {"cityId": list(location_ids)}})
        body = {"size": self._size, "query": {"bool": bool_clause}}
        logger.debug("ES query payload=%s", body)
        return body

    def _execute(self, body: Dict[str, Any]) -> List[Product]:
        try:
            response = self._es.search(index=self._index, body=body)
        except (ApiError, TransportError) as exc:
            logger.warning("Catalog search failed index=%s: %s", self._index, exc)
            return []
        hits = response.get("hits", {}).get("hits", [])
        return [Product.model_validate(hit.get("_source", {})) for hit in hits]

    def search_products(self, query: str, locale: str = "en") -> List[Product]:
        return self._execute(self._build_query(query.strip().lower()))

    def products_in_locations(self, location_ids: Sequence[str]) -> List[Product]:
        return self._execute(self._build_query("", location_ids))
