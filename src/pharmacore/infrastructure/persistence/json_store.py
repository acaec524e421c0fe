"""JSON-file-backed store.

Keeps the in-memory store's commit protocol and persists the whole state
as one document after every commit.  The document is written to a temp
file and swapped in with ``os.replace``; memory is only updated once the
swap succeeded, so a failed write leaves both memory and disk at the
previous commit.  One process owns the directory; commits inside that
process are written one at a time.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path

import structlog

from pharmacore.infrastructure.persistence import json_codec
from pharmacore.infrastructure.persistence.memory_store import InMemoryStore, StagedChanges

logger = structlog.get_logger(__name__)

STORE_FILE = "store.json"

_EMPTY = {"products": [], "stock": [], "movements": [], "orders": []}


class JsonStore(InMemoryStore):

    def __init__(self, data_dir: Path) -> None:
        super().__init__()
        self._data_dir = data_dir
        self._file_lock = threading.Lock()
        self._ensure_file()
        self._load()

    @property
    def path(self) -> Path:
        return self._data_dir / STORE_FILE

    # --- Loading --------------------------------------------------------------

    def _load(self) -> None:
        document = json.loads(self.path.read_text(encoding="utf-8"))
        for raw in document.get("products", []):
            product = json_codec.product_from_raw(raw)
            self._products[product.id] = product
        for raw in document.get("stock", []):
            level = json_codec.stock_from_raw(raw)
            self._stock[level.product_id] = level
        for raw in document.get("movements", []):
            movement = json_codec.movement_from_raw(raw)
            self._movements[movement.product_id].append(movement)
        for raw in document.get("orders", []):
            order = json_codec.order_from_raw(raw)
            self._orders[order.id] = order
            self._last_order_id = max(self._last_order_id, order.id)
            day = order.order_number.split("-")[1]
            seq = int(order.order_number.rsplit("-", 1)[1])
            self._daily_sequence[day] = max(self._daily_sequence.get(day, 0), seq)
        logger.debug(
            "json_store_loaded",
            path=str(self.path),
            products=len(self._products),
            orders=len(self._orders),
        )

    # --- Writing --------------------------------------------------------------

    def _write(self, changes: StagedChanges) -> None:
        stamped = self._stamp(changes)
        with self._file_lock:
            self._persist(self._document(stamped))
            self._install(stamped)

    def _document(self, stamped: StagedChanges) -> dict:
        """The full post-commit state, built without touching memory."""
        products = dict(self._products)
        products.update(stamped.products)
        stock = dict(self._stock)
        stock.update({pid: level for pid, (_, level) in stamped.stock.items()})
        orders = dict(self._orders)
        orders.update({oid: order for oid, (_, order) in stamped.orders.items()})
        movements = [m for moves in self._movements.values() for m in moves]
        movements.extend(m for moves in stamped.movements.values() for m in moves)
        return {
            "products": [json_codec.product_to_raw(p) for p in products.values()],
            "stock": [json_codec.stock_to_raw(s) for _, s in sorted(stock.items())],
            "movements": [json_codec.movement_to_raw(m) for m in movements],
            "orders": [json_codec.order_to_raw(o) for _, o in sorted(orders.items())],
        }

    # --- File helpers ---------------------------------------------------------

    def _persist(self, document: dict) -> None:
        tmp = self.path.with_suffix(".json.tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(document, fh, indent=2)
            fh.write("\n")
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, self.path)

    def _ensure_file(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.write_text(json.dumps(_EMPTY), encoding="utf-8")
