"""Thread-safe in-memory store and its unit of work.

Concurrency model:

- Every record (a product's stock counters and ledger, an order) has its
  own lock.  There is no store-wide lock on the commit path.
- A unit of work reads committed state freely and stages its writes
  together with the version each record was read at.
- ``commit()`` takes the locks of every touched record in sorted key
  order, checks each version and the ledger chain, and only then writes.
  A stale version raises ``Contention``; the caller retries the whole
  unit.
"""

from __future__ import annotations

import copy
import threading
from collections import defaultdict
from contextlib import ExitStack
from dataclasses import dataclass, field, replace
from datetime import date

import structlog

from pharmacore.domain.events import DomainEvent
from pharmacore.domain.exceptions import Contention, LedgerInconsistency, ValidationError
from pharmacore.domain.model.movement import StockMovement
from pharmacore.domain.model.order import Order, OrderStatus, OrderType
from pharmacore.domain.model.product import Product
from pharmacore.domain.model.stock import StockLevel
from pharmacore.domain.repository.movement_repository import MovementRepository
from pharmacore.domain.repository.order_repository import OrderRepository
from pharmacore.domain.repository.product_repository import ProductRepository
from pharmacore.domain.repository.stock_repository import StockRepository
from pharmacore.domain.repository.unit_of_work import UnitOfWork

logger = structlog.get_logger(__name__)

CATALOG_KEY = "catalog"


def stock_key(product_id: str) -> str:
    return f"stock:{product_id}"


def order_key(order_id: int) -> str:
    return f"order:{order_id}"


@dataclass
class StagedChanges:
    """Writes of one unit of work.

    Versions are the committed versions the writes were derived from;
    ``None`` marks a record that must not exist yet.
    """

    products: dict[str, Product] = field(default_factory=dict)
    stock: dict[str, tuple[int | None, StockLevel]] = field(default_factory=dict)
    movements: dict[str, list[StockMovement]] = field(default_factory=lambda: defaultdict(list))
    orders: dict[int, tuple[int | None, Order]] = field(default_factory=dict)

    def keys(self) -> list[str]:
        keys = {stock_key(pid) for pid in self.stock}
        keys.update(stock_key(pid) for pid, moves in self.movements.items() if moves)
        keys.update(order_key(oid) for oid in self.orders)
        if self.products:
            keys.add(CATALOG_KEY)
        return sorted(keys)

    def is_empty(self) -> bool:
        return not self.keys()


class InMemoryStore:

    def __init__(self) -> None:
        self._products: dict[str, Product] = {}
        self._stock: dict[str, StockLevel] = {}
        self._movements: dict[str, list[StockMovement]] = defaultdict(list)
        self._orders: dict[int, Order] = {}
        self._last_order_id = 0
        self._daily_sequence: dict[str, int] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._meta_lock = threading.Lock()

    def unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    # --- Committed reads ------------------------------------------------------

    def product(self, product_id: str) -> Product | None:
        product = self._products.get(product_id)
        return copy.deepcopy(product) if product is not None else None

    def products(self) -> list[Product]:
        return [copy.deepcopy(p) for p in list(self._products.values())]

    def stock_level(self, product_id: str) -> StockLevel | None:
        return self._stock.get(product_id)

    def stock_levels(self) -> list[StockLevel]:
        return sorted(self._stock.values(), key=lambda level: level.product_id)

    def movements_of(self, product_id: str) -> list[StockMovement]:
        with self._lock_for(stock_key(product_id)):
            return list(self._movements.get(product_id, ()))

    def all_movements(self) -> list[StockMovement]:
        movements = [m for pid in list(self._movements) for m in self.movements_of(pid)]
        return sorted(movements, key=lambda m: m.created_at)

    def order(self, order_id: int) -> Order | None:
        with self._lock_for(order_key(order_id)):
            order = self._orders.get(order_id)
            return copy.deepcopy(order) if order is not None else None

    def orders(self) -> list[Order]:
        return [o for o in (self.order(oid) for oid in list(self._orders)) if o is not None]

    def next_identity(self, on: date) -> tuple[int, str]:
        day = on.strftime("%Y%m%d")
        with self._meta_lock:
            self._last_order_id += 1
            self._daily_sequence[day] = self._daily_sequence.get(day, 0) + 1
            return self._last_order_id, f"CMD-{day}-{self._daily_sequence[day]:04d}"

    # --- Seeding --------------------------------------------------------------

    def seed_product(self, product: Product) -> None:
        """Put a catalog entry in place outside any unit of work."""
        with self._lock_for(CATALOG_KEY):
            self._products[product.id] = copy.deepcopy(product)

    # --- Commit ---------------------------------------------------------------

    def apply(self, changes: StagedChanges) -> None:
        """Verify and write staged changes as one atomic step."""
        keys = changes.keys()
        with ExitStack() as stack:
            for key in keys:
                stack.enter_context(self._lock_for(key))
            self._verify(changes)
            self._write(changes)
        logger.debug("unit_of_work_committed", keys=keys)

    def _verify(self, changes: StagedChanges) -> None:
        for pid, (expected, level) in changes.stock.items():
            current = self._stock.get(pid)
            if expected is None:
                if current is not None:
                    raise Contention(stock_key(pid))
            elif current is None or current.version != expected:
                raise Contention(stock_key(pid))

        for pid, moves in changes.movements.items():
            if not moves:
                continue
            current = self._stock.get(pid)
            running = current.on_hand if current is not None else 0
            for movement in moves:
                if movement.stock_before != running:
                    raise LedgerInconsistency(pid, movement.stock_before, running)
                running = movement.stock_after
            staged = changes.stock.get(pid)
            final = staged[1].on_hand if staged is not None else running
            if final != running:
                raise LedgerInconsistency(pid, running, final)

        for pid, (expected, level) in changes.stock.items():
            if pid not in changes.movements or not changes.movements[pid]:
                current = self._stock.get(pid)
                before = current.on_hand if current is not None else 0
                if level.on_hand != before:
                    # on-hand never changes without a ledger entry
                    raise LedgerInconsistency(pid, before, level.on_hand)

        for oid, (expected, order) in changes.orders.items():
            current = self._orders.get(oid)
            if expected is None:
                if current is not None:
                    raise Contention(order_key(oid))
            elif current is None or current.version != expected:
                raise Contention(order_key(oid))

    def _write(self, changes: StagedChanges) -> None:
        self._install(self._stamp(changes))

    def _stamp(self, changes: StagedChanges) -> StagedChanges:
        """Copy of ``changes`` carrying the versions the records commit at."""
        stamped = StagedChanges()
        stamped.products = {pid: copy.deepcopy(p) for pid, p in changes.products.items()}
        for pid, (expected, level) in changes.stock.items():
            stamped.stock[pid] = (expected, replace(level, version=(expected or 0) + 1))
        for pid, moves in changes.movements.items():
            stamped.movements[pid].extend(moves)
        for oid, (expected, order) in changes.orders.items():
            stored = copy.deepcopy(order)
            stored.version = (expected or 0) + 1
            stamped.orders[oid] = (expected, stored)
        return stamped

    def _install(self, stamped: StagedChanges) -> None:
        self._products.update(stamped.products)
        for pid, (_, level) in stamped.stock.items():
            self._stock[pid] = level
        for pid, moves in stamped.movements.items():
            self._movements[pid].extend(moves)
        for oid, (_, order) in stamped.orders.items():
            self._orders[oid] = order

    def _lock_for(self, key: str) -> threading.Lock:
        with self._meta_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock


# ---------------------------------------------------------------------------
# Repository views bound to one unit of work
# ---------------------------------------------------------------------------
class _ProductView(ProductRepository):

    def __init__(self, store: InMemoryStore, changes: StagedChanges) -> None:
        self._store = store
        self._changes = changes

    def get_by_id(self, product_id: str) -> Product | None:
        if product_id in self._changes.products:
            return self._changes.products[product_id]
        return self._store.product(product_id)

    def get_by_name(self, name: str) -> Product | None:
        for product in self.list_all():
            if product.name.lower() == name.lower():
                return product
        return None

    def list_all(self) -> list[Product]:
        merged = {p.id: p for p in self._store.products()}
        merged.update(self._changes.products)
        return list(merged.values())

    def add(self, product: Product) -> None:
        self._changes.products[product.id] = product


class _StockView(StockRepository):

    def __init__(self, store: InMemoryStore, changes: StagedChanges) -> None:
        self._store = store
        self._changes = changes

    def get(self, product_id: str) -> StockLevel | None:
        staged = self._changes.stock.get(product_id)
        if staged is not None:
            return staged[1]
        return self._store.stock_level(product_id)

    def list_all(self) -> list[StockLevel]:
        merged = {level.product_id: level for level in self._store.stock_levels()}
        merged.update({pid: level for pid, (_, level) in self._changes.stock.items()})
        return [merged[pid] for pid in sorted(merged)]

    def compare_and_set(self, expected: StockLevel, new: StockLevel) -> None:
        pid = expected.product_id
        if new.product_id != pid:
            raise ValidationError("Cannot swap stock records of different products")
        if self.get(pid) != expected:
            raise Contention(stock_key(pid))
        base = self._changes.stock[pid][0] if pid in self._changes.stock else expected.version
        self._changes.stock[pid] = (base, new)

    def add(self, level: StockLevel) -> None:
        if self.get(level.product_id) is not None:
            raise ValidationError(f"Stock record for '{level.product_id}' already exists")
        self._changes.stock[level.product_id] = (None, level)


class _MovementView(MovementRepository):

    def __init__(self, store: InMemoryStore, changes: StagedChanges) -> None:
        self._store = store
        self._changes = changes

    def append(self, movement: StockMovement) -> None:
        self._changes.movements[movement.product_id].append(movement)

    def for_product(self, product_id: str) -> list[StockMovement]:
        return self._store.movements_of(product_id) + list(
            self._changes.movements.get(product_id, ())
        )

    def list_all(self) -> list[StockMovement]:
        staged = [m for moves in self._changes.movements.values() for m in moves]
        return self._store.all_movements() + staged


class _OrderView(OrderRepository):

    def __init__(self, store: InMemoryStore, changes: StagedChanges) -> None:
        self._store = store
        self._changes = changes

    def next_identity(self, on: date) -> tuple[int, str]:
        return self._store.next_identity(on)

    def get_by_id(self, order_id: int) -> Order | None:
        if order_id in self._changes.orders:
            return self._changes.orders[order_id][1]
        return self._store.order(order_id)

    def list(
        self,
        status: OrderStatus | None = None,
        order_type: OrderType | None = None,
    ) -> list[Order]:
        orders = [
            o
            for o in self._store.orders()
            if (status is None or o.status == status)
            and (order_type is None or o.order_type == order_type)
        ]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def save(self, order: Order) -> None:
        if order.id is None:
            raise ValidationError("Order must have an identity before it is saved")
        if order.id in self._changes.orders:
            expected = self._changes.orders[order.id][0]
        else:
            expected = order.version or None
        self._changes.orders[order.id] = (expected, order)


class InMemoryUnitOfWork(UnitOfWork):

    def __init__(self, store: InMemoryStore) -> None:
        self._store = store
        self._changes = StagedChanges()
        self._committed = False
        self.events: list[DomainEvent] = []
        self._bind()

    def commit(self) -> None:
        if self._committed:
            raise ValidationError("Unit of work already committed")
        if not self._changes.is_empty():
            self._store.apply(self._changes)
        self._committed = True

    def rollback(self) -> None:
        if not self._committed:
            self.events.clear()
        self._changes = StagedChanges()
        self._bind()

    def _bind(self) -> None:
        self.products = _ProductView(self._store, self._changes)
        self.stock = _StockView(self._store, self._changes)
        self.movements = _MovementView(self._store, self._changes)
        self.orders = _OrderView(self._store, self._changes)
