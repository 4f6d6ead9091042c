"""Elasticsearch client factory.

The catalog works against the official synchronous client. Blocking calls are
wrapped via ``asyncio.to_thread`` by the HTTP layer where necessary.
"""
from __future__ import annotations

import logging

from elasticsearch import Elasticsearch

from .config import Settings

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> Elasticsearch:
    logger.info("Connecting to Elasticsearch at %s", settings.es_host)
    return Elasticsearch(settings.es_host)
