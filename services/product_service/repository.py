from typing import Iterable, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Product

LOW_STOCK_THRESHOLD = 10


class ProductRepository:

    @staticmethod
    async def create_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def update_product(db: AsyncSession, product: Product):
        db.add(product)
        await db.commit()
        await db.refresh(product)
        return product

    @staticmethod
    async def delete_product(db: AsyncSession, product: Product):
        await db.delete(product)
        await db.commit()

    @staticmethod
    async def get_product_by_id(db: AsyncSession, product_id: int):
        result = await db.execute(select(Product).where(Product.id == product_id))
        return result.scalars().first()

    @staticmethod
    async def get_product_by_sku(db: AsyncSession, sku: str):
        result = await db.execute(select(Product).where(Product.sku == sku))
        return result.scalars().first()

    @staticmethod
    async def get_for_update(db: AsyncSession, product_id: int) -> Optional[Product]:
        """Row-locks the product until the surrounding transaction ends."""
        result = await db.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def lock_many(db: AsyncSession, product_ids: Iterable[int]) -> dict[int, Product]:
        # Ascending id order so concurrent lockers cannot deadlock
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        result = await db.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {product.id: product for product in result.scalars().all()}

    @staticmethod
    async def search(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        min_price=None,
        max_price=None,
        low_stock: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        query = select(Product)
        if is_active is not None:
            query = query.where(Product.is_active == is_active)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
        if min_price is not None:
            query = query.where(Product.price >= min_price)
        if max_price is not None:
            query = query.where(Product.price <= max_price)
        if low_stock:
            query = query.where(Product.stock <= LOW_STOCK_THRESHOLD)

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Product.created_at.desc(), Product.id.desc())
        if limit:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        result = await db.execute(query)
        return result.scalars().all(), total
