"""Bulk loading of the products file into the Elasticsearch catalog index."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable

from elasticsearch import Elasticsearch, helpers

from .catalog import load_products
from .config import Settings
from .indexing import drop_index, ensure_index, index_is_empty
from .models import Product

logger = logging.getLogger(__name__)


def _iter_actions(index: str, products: Iterable[Product]) -> Iterable[dict]:
    for product in products:
        yield {
            "_index": index,
            "_id": product.id,
            "_source": product.model_dump(mode="json", by_alias=True),
        }


def import_products(es: Elasticsearch, settings: Settings) -> int:
    products = load_products(Path(settings.catalog_path))
    if not products:
        return 0
    actions = list(_iter_actions(settings.es_index, products))
    helpers.bulk(es, actions)
    logger.info("Indexed %s products into %s", len(actions), settings.es_index)
    return len(actions)


def import_if_empty(es: Elasticsearch, settings: Settings) -> int:
    if not index_is_empty(es, settings.es_index):
        return 0
    return import_products(es, settings)


def reindex_data(es: Elasticsearch, settings: Settings) -> int:
    drop_index(es, settings.es_index)
    ensure_index(es, settings.es_index, settings.mapping_path)
    return import_products(es, settings)
