"""Shared fixtures: a small pharmacy catalog and a search engine with a fake clock."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, List

import pytest

from cura.cache import SearchCache
from cura.catalog import InMemoryCatalog
from cura.history import SearchHistory
from cura.models import Product
from cura.revenue_models import Order, OrderItem
from cura.search_engine import SearchEngine
from cura.storage import InMemoryStore


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class CountingCatalog(InMemoryCatalog):
    """In-memory catalog that records how often it was queried."""

    def __init__(self, products) -> None:
        super().__init__(products)
        self.calls = 0

    def search_products(self, query: str, locale: str = "en") -> List[Product]:
        self.calls += 1
        return super().search_products(query, locale)


def make_product(**overrides) -> Product:
    data = {
        "id": "0",
        "name": "Generic Product",
        "description": "",
        "category": "otc",
        "price": 10.0,
        "tags": [],
        "pharmacy_id": "wellness-cairo",
        "pharmacy": "Wellness Pharmacy",
        "city_id": "cairo-city",
        "in_stock": True,
        "prescription": False,
        "rating": 4.0,
    }
    data.update(overrides)
    return Product(**data)


def make_order(order_id: str, when: datetime, items: List[dict], **overrides) -> Order:
    data = {
        "id": order_id,
        "customer_id": f"customer-{order_id}",
        "items": [OrderItem(**item) for item in items],
        "status": "delivered",
        "order_date": when,
        "city_id": "cairo-city",
        "city_name": "Cairo",
        "governorate_id": "cairo",
    }
    data.update(overrides)
    data["total"] = data.get("total") or sum(item.line_total for item in data["items"])
    return Order(**data)


@pytest.fixture
def product_factory() -> Callable[..., Product]:
    return make_product


@pytest.fixture
def order_factory() -> Callable[..., Order]:
    return make_order


@pytest.fixture
def pharmacy_products() -> List[Product]:
    return [
        make_product(
            id="1",
            name="Paracetamol 500mg",
            name_ar="باراسيتامول 500 مجم",
            description="Paracetamol tablets for pain relief",
            tags=["paracetamol", "pain"],
            price=25,
            rating=4.5,
            pharmacy_id="medicare-cairo",
            pharmacy="MediCare Pharmacy",
        ),
        make_product(
            id="2",
            name="Panadol Extra",
            description="Contains paracetamol and caffeine",
            tags=["pain"],
            price=40,
            rating=4.0,
            city_id="ismailia-city",
        ),
        make_product(
            id="3",
            name="Vitamin D3 1000IU",
            description="Supports bone health",
            category="supplements",
            tags=["vitamin d", "supplement"],
            price=120,
            rating=4.8,
            in_stock=False,
        ),
        make_product(
            id="4",
            name="Amoxicillin 250mg",
            description="Broad spectrum antibiotic",
            category="prescription",
            tags=["antibiotic"],
            price=60,
            rating=4.2,
            prescription=True,
            city_id="giza-city",
        ),
        make_product(
            id="5",
            name="Vitamin C 1000mg",
            description="Immune support",
            category="supplements",
            tags=["vitamin c", "immunity"],
            price=50,
            rating=4.6,
        ),
        make_product(
            id="6",
            name="Omega 3 Fish Oil",
            description="Heart health supplement with vitamin e",
            category="supplements",
            tags=["omega 3"],
            price=90,
            rating=4.1,
        ),
    ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def catalog(pharmacy_products) -> CountingCatalog:
    return CountingCatalog(pharmacy_products)


@pytest.fixture
def engine(catalog, store, clock) -> SearchEngine:
    return SearchEngine(
        catalog,
        SearchCache(max_size=100, ttl_seconds=300, clock=clock),
        SearchHistory(store),
    )


@pytest.fixture
def utc_noon() -> Callable[[int, int, int], datetime]:
    def _build(year: int, month: int, day: int) -> datetime:
        return datetime(year, month, day, 12, 0, tzinfo=timezone.utc)

    return _build


@pytest.fixture
def engine_factory(store, clock) -> Callable[..., SearchEngine]:
    def _build(products: List[Product], **kwargs) -> SearchEngine:
        return SearchEngine(
            CountingCatalog(products),
            SearchCache(max_size=100, ttl_seconds=300, clock=clock),
            SearchHistory(store),
            **kwargs,
        )

    return _build
