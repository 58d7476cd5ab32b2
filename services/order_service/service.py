"""Order engine: checkout, the status lifecycle and cancellation.

Creation, status changes and cancellation each run in one transaction.
Product rows are locked (ascending id) before stock is checked, and the
inventory ledger reserves or releases stock inside that same transaction.
Notifications go out only after commit.
"""
from decimal import Decimal
from typing import Optional

import structlog
from fastapi import Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db, utcnow
from shared.errors import (
    CustomerNotFound,
    InsufficientStock,
    InvalidQuantity,
    InvalidTransition,
    OrderNotCancellable,
    OrderNotEditable,
    OrderNotFound,
    OrderNumberCollision,
    ProductInactive,
    ProductNotFound,
)
from shared.observability import erp_order_transitions_total, erp_orders_created_total
from shared.schemas import to_money
from services.auth_service.repository import UserRepository
from services.notification_service.service import NotificationService, get_notifier
from services.product_service.ledger import InventoryLedger
from services.product_service.repository import ProductRepository

from .constants import (
    CANCELLABLE_STATES,
    ORDER_NUMBER_MAX_RETRIES,
    OrderStatus,
    can_transition,
)
from .models import Order
from .pricing import calculate_totals, generate_order_number
from .repository import OrderRepository
from .schemas import OrderCreate, OrderUpdate

logger = structlog.get_logger(__name__)


def order_details(order: Order) -> dict:
    return {
        "orderNumber": order.order_number,
        "status": order.status,
        "subtotal": order.total_amount,
        "taxAmount": order.tax_amount,
        "shippingCost": order.shipping_cost,
        "discountAmount": order.discount_amount,
        "totalAmount": order.final_amount,
        "items": order.items,
    }


class OrderService:
    def __init__(self, db: AsyncSession, notifier: NotificationService):
        self.db = db
        self.notifier = notifier

    async def _unique_order_number(self) -> str:
        for _ in range(ORDER_NUMBER_MAX_RETRIES):
            candidate = generate_order_number()
            if not await OrderRepository.order_number_exists(self.db, candidate):
                return candidate
        raise OrderNumberCollision("Could not allocate a unique order number, please retry")

    async def _snapshot_items(self, data: OrderCreate) -> tuple[list[dict], dict[int, int]]:
        requested: dict[int, int] = {}
        for item in data.items:
            if item.quantity <= 0:
                raise InvalidQuantity("Quantity must be greater than 0")
            requested[item.product_id] = requested.get(item.product_id, 0) + item.quantity

        products = await ProductRepository.lock_many(self.db, requested.keys())

        for product_id, quantity in requested.items():
            product = products.get(product_id)
            if product is None:
                raise ProductNotFound(f"Product with ID {product_id} not found")
            if not product.is_active:
                raise ProductInactive(f"Product {product.name} is not available")
            if quantity > product.stock:
                raise InsufficientStock(
                    f"Insufficient stock for product {product.name}: requested {quantity}, available {product.stock}"
                )

        snapshots = []
        for item in data.items:
            product = products[item.product_id]
            unit_price = to_money(product.price)
            snapshots.append(
                {
                    "productId": product.id,
                    "productName": product.name,
                    "quantity": item.quantity,
                    "unitPrice": float(unit_price),
                    "totalPrice": float(unit_price * item.quantity),
                }
            )
        return snapshots, requested

    async def create_order(self, data: OrderCreate) -> Order:
        customer = await UserRepository.get_customer(self.db, data.customer_id)
        if not customer:
            raise CustomerNotFound("Customer not found")

        try:
            items, requested = await self._snapshot_items(data)
            totals = calculate_totals(Decimal(str(item["totalPrice"])) for item in items)

            order = Order(
                order_number=await self._unique_order_number(),
                customer_id=data.customer_id,
                status=OrderStatus.PENDING,
                items=items,
                total_amount=totals.subtotal,
                tax_amount=totals.tax,
                shipping_cost=totals.shipping,
                discount_amount=totals.discount,
                final_amount=totals.total,
                shipping_address=data.shipping_address,
                billing_address=data.billing_address,
                notes=data.notes,
            )
            self.db.add(order)
            await self.db.flush()

            ledger = InventoryLedger(self.db)
            for product_id in sorted(requested):
                await ledger.reserve(product_id, requested[product_id])

            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            logger.warning("order_insert_conflict", error=str(exc.orig))
            raise OrderNumberCollision("Could not allocate a unique order number, please retry")
        except Exception:
            await self.db.rollback()
            raise

        erp_orders_created_total.inc()
        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            final_amount=str(order.final_amount),
        )

        order = await self.get_order(order.id)
        await self.notifier.notify_new_order(
            order.id,
            order.customer_id,
            {**order_details(order), "customerName": customer.name},
        )
        return order

    async def list_orders(self, **filters):
        return await OrderRepository.search(self.db, **filters)

    async def get_order(self, order_id: int) -> Order:
        order = await OrderRepository.get_order(self.db, order_id)
        if not order:
            raise OrderNotFound("Order not found")
        return order

    async def _locked_order(self, order_id: int) -> Order:
        order = await OrderRepository.get_for_update(self.db, order_id)
        if not order:
            raise OrderNotFound("Order not found")
        return order

    async def _release_items(self, order: Order) -> None:
        released: dict[int, int] = {}
        for item in order.items or []:
            released[item["productId"]] = released.get(item["productId"], 0) + item["quantity"]

        ledger = InventoryLedger(self.db)
        for product_id in sorted(released):
            try:
                await ledger.release(product_id, released[product_id])
            except ProductNotFound:
                # Product was hard-deleted after checkout; nothing to give back
                logger.warning("release_skipped", order_id=order.id, product_id=product_id)

    async def _announce_status(self, order: Order, previous: OrderStatus) -> None:
        erp_order_transitions_total.labels(from_status=previous.value, to_status=order.status.value).inc()
        logger.info(
            "order_status_changed",
            order_id=order.id,
            from_status=previous.value,
            to_status=order.status.value,
        )
        await self.notifier.notify_order_status_update(
            order.customer_id, order.id, order.status.value, order_details(order)
        )

    async def update_status(self, order_id: int, status: OrderStatus) -> Order:
        try:
            order = await self._locked_order(order_id)
            previous = order.status
            if not can_transition(previous, status):
                raise InvalidTransition(f"Invalid status transition from {previous.value} to {status.value}")

            order.status = status
            if status == OrderStatus.DELIVERED:
                order.delivered_date = utcnow().date()
            if status == OrderStatus.CANCELLED:
                await self._release_items(order)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        order = await self.get_order(order_id)
        await self._announce_status(order, previous)
        return order

    async def update_order(self, order_id: int, data: OrderUpdate) -> Order:
        try:
            order = await self._locked_order(order_id)
            if order.status != OrderStatus.PENDING:
                raise OrderNotEditable("Cannot update order that is not in PENDING status")

            for field, value in data.model_dump(exclude_unset=True).items():
                setattr(order, field, value)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return await self.get_order(order_id)

    async def cancel_order(self, order_id: int, reason: Optional[str] = None) -> Order:
        try:
            order = await self._locked_order(order_id)
            previous = order.status
            if previous not in CANCELLABLE_STATES:
                raise OrderNotCancellable(f"Cannot cancel order in {previous.value} status")

            order.status = OrderStatus.CANCELLED
            if reason:
                order.cancellation_reason = reason
                note = f"Cancellation reason: {reason}"
                order.notes = f"{order.notes}\n{note}" if order.notes else note
            await self._release_items(order)

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        order = await self.get_order(order_id)
        await self._announce_status(order, previous)
        return order

    async def remove_order(self, order_id: int) -> None:
        try:
            order = await self._locked_order(order_id)
            if order.status != OrderStatus.PENDING:
                raise OrderNotEditable("Cannot delete order that is not in PENDING status")

            await self._release_items(order)
            await OrderRepository.delete_order(self.db, order)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        logger.info("order_deleted", order_id=order_id)


def get_order_service(
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
) -> OrderService:
    return OrderService(db, notifier)
