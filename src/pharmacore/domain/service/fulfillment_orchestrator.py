"""Domain service: Fulfillment Orchestrator.

The only place that coordinates the order, the stock tracker and the
ledger.  It works inside one unit of work and uses a two-phase approach:

  Phase 1: load and validate every line.  Nothing is written, so a
           failure on any line leaves no trace.
  Phase 2: stage the order and one inventory effect per line.  The
           caller commits the unit of work, which applies all of it or
           none of it.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pharmacore.domain.events import OrderCreated, OrderStatusChanged
from pharmacore.domain.exceptions import (
    InsufficientStock,
    OrderNotFound,
    PrescriptionRequired,
    ProductInactive,
    ProductNotFound,
    ValidationError,
)
from pharmacore.domain.model.movement import MovementReason
from pharmacore.domain.model.order import (
    DeliveryMethod,
    Order,
    OrderItem,
    OrderStatus,
    OrderType,
    Payment,
    PaymentMethod,
    PaymentStatus,
    StatusChange,
)
from pharmacore.domain.model.pricing import Coupon, LineInput
from pharmacore.domain.model.product import Product
from pharmacore.domain.model.value_objects import Money, Quantity
from pharmacore.domain.repository.unit_of_work import UnitOfWork
from pharmacore.domain.service.inventory_posting import InventoryPosting
from pharmacore.domain.service.order_totals import calculate_totals, price_line
from pharmacore.domain.service.stock_tracker import StockTracker


class InventoryEffect(Enum):
    NONE = "none"
    RELEASE = "release"
    COMMIT_OUTBOUND = "commit_outbound"


def effect_of(from_status: OrderStatus, to_status: OrderStatus) -> InventoryEffect:
    """Inventory side effect of an (allowed) status transition."""
    if to_status == OrderStatus.CANCELLED:
        return InventoryEffect.RELEASE
    if from_status == OrderStatus.CONFIRMED and to_status == OrderStatus.PREPARING:
        return InventoryEffect.COMMIT_OUTBOUND
    # Refunds do not restock; that takes an explicit inbound movement.
    return InventoryEffect.NONE


@dataclass(frozen=True)
class LineRequest:
    product_id: str
    quantity: int
    discount: Money | None = None
    prescription: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class OrderRequest:
    customer_id: str
    lines: list[LineRequest]
    order_type: OrderType = OrderType.COMMANDE
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_id: str | None = None
    coupon: Coupon | None = None
    complete_at_counter: bool = False
    notes: str | None = None


class FulfillmentOrchestrator:

    def __init__(
        self,
        uow: UnitOfWork,
        delivery_fee: Money,
        now: datetime | None = None,
    ) -> None:
        self._uow = uow
        self._delivery_fee = delivery_fee
        self._now = now
        self._posting = InventoryPosting(uow)

    @property
    def tracker(self) -> StockTracker:
        return self._posting.tracker

    # --- Order creation -------------------------------------------------------

    def create_order(self, request: OrderRequest, actor: str) -> Order:
        if request.complete_at_counter and request.order_type != OrderType.POS_SALE:
            raise ValidationError("Only point-of-sale orders can be completed at the counter")
        if not request.lines:
            raise ValidationError("Order must contain at least one item")

        # Phase 1: validate every line before anything is staged
        products = self._validate_lines(request.lines)

        items = [self._build_item(line, products[line.product_id]) for line in request.lines]
        totals = calculate_totals(
            [item.pricing_input() for item in items],
            shipping_cost=self._shipping_cost(request.delivery_method),
            coupon=request.coupon,
        )

        payment = Payment(
            method=request.payment_method,
            amount=totals.total_ttc,
            status=request.payment_status,
            transaction_id=request.transaction_id,
        )
        at = self._clock()
        if request.complete_at_counter:
            payment.mark_paid(at)
            status, note = OrderStatus.DELIVERED, "Point-of-sale sale completed at the counter"
        else:
            if payment.status == PaymentStatus.PAID:
                payment.paid_at = at
            status, note = OrderStatus.PENDING, None

        order = Order.create(
            customer_id=request.customer_id,
            order_type=request.order_type,
            delivery_method=request.delivery_method,
            items=items,
            payment=payment,
            totals=totals,
            actor=actor,
            coupon=request.coupon,
            status=status,
            note=note,
            notes=request.notes,
            at=at,
        )
        order.id, order.order_number = self._uow.orders.next_identity(at.date())

        # Phase 2: one inventory effect per line
        for item in order.items:
            if request.complete_at_counter:
                self._posting.post_outbound(
                    item.product_id,
                    item.quantity.value,
                    MovementReason.SALE,
                    reference=order.reference,
                    actor=actor,
                    notes=f"Point-of-sale {order.order_number}",
                    at=at,
                )
            else:
                self.tracker.reserve(item.product_id, item.quantity.value)
                item.reserved_quantity = item.quantity.value

        self._uow.orders.save(order)
        self._uow.events.append(
            OrderCreated(
                order_id=order.id,
                order_number=order.order_number,
                status=order.status.value,
                total_ttc=str(order.totals.total_ttc.amount),
            )
        )
        return order

    def _validate_lines(self, lines: list[LineRequest]) -> dict[str, Product]:
        products: dict[str, Product] = {}
        requested: dict[str, int] = defaultdict(int)

        for line in lines:
            qty = Quantity(line.quantity).value
            product = self._uow.products.get_by_id(line.product_id)
            if product is None:
                raise ProductNotFound(line.product_id)
            if not product.is_active:
                raise ProductInactive(product.id, product.name)

            requested[product.id] += qty
            available = self.tracker.available(product.id)
            if requested[product.id] > available:
                raise InsufficientStock(product.id, requested[product.id], available)

            if product.is_prescription_required and not line.prescription:
                raise PrescriptionRequired(product.id, product.name)
            products[product.id] = product

        return products

    def _build_item(self, line: LineRequest, product: Product) -> OrderItem:
        discount = line.discount or Money.zero(product.price_ttc.currency)
        priced = price_line(
            LineInput(
                price_ttc=product.price_ttc,
                tax_rate=product.tax_rate,
                quantity=line.quantity,
                discount=discount,
            )
        )
        return OrderItem(
            product_id=product.id,
            product_name=product.name,
            quantity=Quantity(line.quantity),
            price_ttc=priced.price_ttc,
            tax_rate=product.tax_rate,
            price_ht=priced.price_ht,
            total_ht=priced.total_ht,
            total_ttc=priced.total_ttc,
            discount=priced.discount,
            prescription=line.prescription,
            notes=line.notes,
        )

    def _shipping_cost(self, method: DeliveryMethod) -> Money:
        if method == DeliveryMethod.DELIVERY:
            return self._delivery_fee
        return Money.zero(self._delivery_fee.currency)

    # --- Status transitions ---------------------------------------------------

    def transition(
        self,
        order_id: int,
        new_status: OrderStatus,
        actor: str,
        note: str | None = None,
    ) -> tuple[Order, StatusChange]:
        order = self._uow.orders.get_by_id(order_id)
        if order is None:
            raise OrderNotFound(order_id)

        previous = order.status
        at = self._clock()
        change = order.transition_to(new_status, actor, note, at=at)

        effect = effect_of(previous, new_status)
        if effect == InventoryEffect.RELEASE:
            self._release(order)
        elif effect == InventoryEffect.COMMIT_OUTBOUND:
            self._ship(order, actor, at)

        if new_status == OrderStatus.REFUNDED and order.payment.status == PaymentStatus.PAID:
            order.payment.mark_refunded(change.changed_at)

        self._uow.orders.save(order)
        self._uow.events.append(
            OrderStatusChanged(
                order_id=order.id,
                order_number=order.order_number,
                from_status=previous.value,
                to_status=new_status.value,
                changed_by=actor,
            )
        )
        return order, change

    def _release(self, order: Order) -> None:
        """Give back whatever this order still holds."""
        for item in order.items:
            if item.reserved_quantity > 0:
                self.tracker.release(item.product_id, item.reserved_quantity)
                item.reserved_quantity = 0

    def _ship(self, order: Order, actor: str, at: datetime) -> None:
        for item in order.items:
            self._posting.post_outbound(
                item.product_id,
                item.quantity.value,
                MovementReason.SALE,
                reference=order.reference,
                actor=actor,
                held=item.reserved_quantity,
                notes=f"Sale for order {order.order_number}",
                at=at,
            )
            item.reserved_quantity = 0

    def _clock(self) -> datetime:
        return self._now or datetime.now(timezone.utc)
