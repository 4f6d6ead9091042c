"""Order records consumed read-only by the revenue aggregator."""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Protocol

from pydantic import TypeAdapter

from .revenue_models import Order

logger = logging.getLogger(__name__)

_ORDERS = TypeAdapter(List[Order])


class OrderSource(Protocol):
    def list_orders(self) -> List[Order]: ...


class InMemoryOrderSource:
    def __init__(self, orders: List[Order] | None = None) -> None:
        self._orders = list(orders or [])

    def list_orders(self) -> List[Order]:
        return list(self._orders)


class JsonOrderSource:
    """Reads the orders file on every call so edits are picked up without a restart."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def list_orders(self) -> List[Order]:
        if not self.path.exists():
            logger.warning("Orders file %s is missing", self.path)
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            return _ORDERS.validate_python(json.load(fh))
