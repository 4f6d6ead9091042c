"""Durable key-value storage with Redis primary and in-memory fallback.

Values are whole strings; callers serialize and deserialize JSON themselves.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

import redis

from .config import Settings

logger = logging.getLogger(__name__)


class StoreUnavailableError(RuntimeError):
    """The backing store could not be read; distinct from a missing key."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


@dataclass
class RedisStore:
    client: redis.Redis

    def get(self, key: str) -> Optional[str]:
        try:
            data = self.client.get(key)
        except redis.RedisError as exc:
            logger.warning("Redis get failed key=%r: %s", key, exc)
            raise StoreUnavailableError(str(exc)) from exc
        if data is None:
            return None
        if isinstance(data, bytes):
            return data.decode("utf-8")
        return data

    def set(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except redis.RedisError as exc:
            logger.warning("Redis set failed key=%r: %s", key, exc)

    def delete(self, key: str) -> None:
        try:
            self.client.delete(key)
        except redis.RedisError as exc:
            logger.warning("Redis delete failed key=%r: %s", key, exc)


class InMemoryStore:
    def __init__(self) -> None:
        self._store: Dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._store[key] = value

    def delete(self, key: str) -> None:
        with self._lock:
            self._store.pop(key, None)


def create_store(settings: Settings) -> KeyValueStore:
    if not settings.use_redis:
        logger.info("Redis disabled, using in-memory store")
        return InMemoryStore()
    try:
        client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            decode_responses=False,
            socket_connect_timeout=1,
        )
        client.ping()
        logger.info("Using Redis store at %s:%s", settings.redis_host, settings.redis_port)
        return RedisStore(client)
    except redis.RedisError:
        logger.warning("Redis not available, using in-memory store")
        return InMemoryStore()
