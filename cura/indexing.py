"""Product index creation and maintenance helpers."""
from __future__ import annotations

import json
import logging
from pathlib import Path

from elasticsearch import Elasticsearch
from elasticsearch.exceptions import BadRequestError, NotFoundError

logger = logging.getLogger(__name__)


def _load_mapping(mapping_path: Path) -> dict:
    with mapping_path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def ensure_index(es: Elasticsearch, index: str, mapping_path: str | Path) -> bool:
    """Create the products index if it is missing. Returns True when created."""

    if es.indices.exists(index=index):
        return False
    path = Path(mapping_path)
    body = _load_mapping(path)
    logger.info("Creating index %s using %s", index, path)
    try:
        es.indices.create(index=index, body=body)
    except BadRequestError as exc:
        if getattr(exc, "error", "") == "resource_already_exists_exception":
            logger.info("Index %s already exists", index)
            return False
        logger.exception("Failed to create index: %s", exc)
        raise
    return True


def drop_index(es: Elasticsearch, index: str) -> None:
    try:
        es.indices.delete(index=index)
    except NotFoundError:
        return


def index_is_empty(es: Elasticsearch, index: str) -> bool:
    try:
        stats = es.count(index=index)
        return stats.get("count", 0) == 0
    except NotFoundError:
        return True
