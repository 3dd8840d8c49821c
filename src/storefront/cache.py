"""Per-session store of orders that are only known locally.

Backed by a JSON file when ``path`` is given, otherwise kept in memory.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter

from storefront.models import LocalPendingOrder

_orders_adapter = TypeAdapter(List[LocalPendingOrder])


class LocalOrderCache:
    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path).expanduser() if path else None
        self._lock = threading.Lock()
        self._orders: List[LocalPendingOrder] = self._load()

    def _load(self) -> List[LocalPendingOrder]:
        if self._path is None or not self._path.exists():
            return []
        return _orders_adapter.validate_json(self._path.read_bytes())

    def _flush(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_bytes(_orders_adapter.dump_json(self._orders, indent=2))
        os.replace(tmp, self._path)

    def add(self, order: LocalPendingOrder) -> None:
        with self._lock:
            self._orders.append(order)
            self._flush()

    def update(self, order: LocalPendingOrder) -> None:
        with self._lock:
            self._orders = [
                order if existing.local_id == order.local_id else existing
                for existing in self._orders
            ]
            self._flush()

    def remove(self, local_id: str) -> bool:
        with self._lock:
            remaining = [o for o in self._orders if o.local_id != local_id]
            removed = len(remaining) != len(self._orders)
            self._orders = remaining
            self._flush()
            return removed

    def get(self, local_id: str) -> Optional[LocalPendingOrder]:
        with self._lock:
            return next((o for o in self._orders if o.local_id == local_id), None)

    def list(self) -> List[LocalPendingOrder]:
        with self._lock:
            return list(self._orders)

    def __len__(self) -> int:
        with self._lock:
            return len(self._orders)
