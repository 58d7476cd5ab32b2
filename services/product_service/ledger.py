"""Inventory ledger.

Per-product stock counter with a non-negative invariant. Every operation
row-locks the product and works inside the caller's transaction; the caller
decides when to commit, so a reservation and the order that needs it either
both land or neither does.
"""
import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import InactiveProduct, InsufficientStock, InvalidQuantity, ProductNotFound
from shared.observability import erp_stock_reservations_total

from .models import Product
from .repository import ProductRepository
from .schemas import StockDirection

logger = structlog.get_logger(__name__)


class InventoryLedger:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _locked(self, product_id: int) -> Product:
        product = await ProductRepository.get_for_update(self.db, product_id)
        if not product:
            raise ProductNotFound(f"Product with ID {product_id} not found")
        return product

    @staticmethod
    def _check_quantity(quantity: int) -> None:
        if quantity <= 0:
            raise InvalidQuantity("Quantity must be greater than 0")

    async def reserve(self, product_id: int, quantity: int) -> int:
        """Takes ``quantity`` units out of stock. Returns the remaining stock."""
        self._check_quantity(quantity)
        product = await self._locked(product_id)

        if not product.is_active:
            erp_stock_reservations_total.labels(outcome="inactive").inc()
            raise InactiveProduct(f"Product {product.name} is not active")
        if quantity > product.stock:
            erp_stock_reservations_total.labels(outcome="insufficient").inc()
            raise InsufficientStock(
                f"Insufficient stock for product {product.name}: requested {quantity}, available {product.stock}"
            )

        product.stock -= quantity
        await self.db.flush()
        erp_stock_reservations_total.labels(outcome="reserved").inc()
        logger.info("stock_reserved", product_id=product_id, quantity=quantity, stock=product.stock)
        return product.stock

    async def release(self, product_id: int, quantity: int) -> int:
        # No upper bound: callers must release each reservation once
        self._check_quantity(quantity)
        product = await self._locked(product_id)
        product.stock += quantity
        await self.db.flush()
        logger.info("stock_released", product_id=product_id, quantity=quantity, stock=product.stock)
        return product.stock

    async def adjust(self, product_id: int, delta: int, direction: StockDirection) -> int:
        self._check_quantity(delta)
        product = await self._locked(product_id)

        if direction == StockDirection.SUBTRACT:
            if delta > product.stock:
                raise InsufficientStock(
                    f"Insufficient stock for product {product.name}: cannot remove {delta}, available {product.stock}"
                )
            product.stock -= delta
        else:
            product.stock += delta

        await self.db.flush()
        logger.info(
            "stock_adjusted",
            product_id=product_id,
            delta=delta,
            direction=direction.value,
            stock=product.stock,
        )
        return product.stock
