import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import DuplicateSku, InvalidPrice, InvalidQuantity, ProductNotFound

from .ledger import InventoryLedger
from .models import Product
from .repository import ProductRepository
from .schemas import ProductCreate, ProductUpdate, StockDirection

logger = structlog.get_logger(__name__)


class ProductService:

    @staticmethod
    def _validate_price_and_stock(price=None, stock=None):
        if price is not None and price < 0:
            raise InvalidPrice("Price cannot be negative")
        if stock is not None and stock < 0:
            raise InvalidQuantity("Stock cannot be negative")

    @staticmethod
    async def create_product(db: AsyncSession, data: ProductCreate):
        if await ProductRepository.get_product_by_sku(db, data.sku):
            raise DuplicateSku("Product with this SKU already exists")
        ProductService._validate_price_and_stock(data.price, data.stock)

        product = Product(**data.model_dump())
        product = await ProductRepository.create_product(db, product)
        logger.info("product_created", product_id=product.id, sku=product.sku)
        return product

    @staticmethod
    async def list_products(db: AsyncSession, **filters):
        return await ProductRepository.search(db, **filters)

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int):
        product = await ProductRepository.get_product_by_id(db, product_id)
        if not product:
            raise ProductNotFound("Product not found")
        return product

    @staticmethod
    async def get_product_by_sku(db: AsyncSession, sku: str):
        product = await ProductRepository.get_product_by_sku(db, sku)
        if not product:
            raise ProductNotFound("Product not found")
        return product

    @staticmethod
    async def update_product(db: AsyncSession, product_id: int, data: ProductUpdate):
        product = await ProductService.get_product_by_id(db, product_id)
        changes = data.model_dump(exclude_unset=True)

        new_sku = changes.get("sku")
        if new_sku and new_sku != product.sku:
            if await ProductRepository.get_product_by_sku(db, new_sku):
                raise DuplicateSku("Product with this SKU already exists")
        ProductService._validate_price_and_stock(changes.get("price"), changes.get("stock"))

        for field, value in changes.items():
            setattr(product, field, value)
        return await ProductRepository.update_product(db, product)

    @staticmethod
    async def _ledger_call(db: AsyncSession, product_id: int, operation):
        """Runs one ledger operation as its own transaction."""
        try:
            await operation(InventoryLedger(db))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        return await ProductService.get_product_by_id(db, product_id)

    @staticmethod
    async def adjust_stock(db: AsyncSession, product_id: int, quantity: int, direction: StockDirection):
        return await ProductService._ledger_call(
            db, product_id, lambda ledger: ledger.adjust(product_id, quantity, direction)
        )

    @staticmethod
    async def reserve_stock(db: AsyncSession, product_id: int, quantity: int):
        return await ProductService._ledger_call(
            db, product_id, lambda ledger: ledger.reserve(product_id, quantity)
        )

    @staticmethod
    async def restore_stock(db: AsyncSession, product_id: int, quantity: int):
        return await ProductService._ledger_call(
            db, product_id, lambda ledger: ledger.release(product_id, quantity)
        )

    @staticmethod
    async def set_active(db: AsyncSession, product_id: int, active: bool):
        product = await ProductService.get_product_by_id(db, product_id)
        product.is_active = active
        return await ProductRepository.update_product(db, product)

    @staticmethod
    async def delete_product(db: AsyncSession, product_id: int) -> None:
        product = await ProductService.get_product_by_id(db, product_id)
        await ProductRepository.delete_product(db, product)
        logger.info("product_deleted", product_id=product_id)
