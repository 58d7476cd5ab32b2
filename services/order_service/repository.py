from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .constants import OrderStatus
from .models import Order


class OrderRepository:

    @staticmethod
    async def get_order(db: AsyncSession, order_id: int) -> Optional[Order]:
        # populate_existing so payments reloaded after another unit of work are current
        result = await db.execute(
            select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_for_update(db: AsyncSession, order_id: int) -> Optional[Order]:
        """Row-locks the order until the surrounding transaction ends."""
        result = await db.execute(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def order_number_exists(db: AsyncSession, order_number: str) -> bool:
        result = await db.execute(select(Order.id).where(Order.order_number == order_number))
        return result.first() is not None

    @staticmethod
    async def delete_order(db: AsyncSession, order: Order) -> None:
        await db.delete(order)

    @staticmethod
    async def search(
        db: AsyncSession,
        *,
        status: Optional[OrderStatus] = None,
        customer_id: Optional[int] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        query = select(Order)
        if status is not None:
            query = query.where(Order.status == status)
        if customer_id is not None:
            query = query.where(Order.customer_id == customer_id)
        if start_date is not None:
            query = query.where(Order.created_at >= start_date)
        if end_date is not None:
            query = query.where(Order.created_at <= end_date)

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Order.created_at.desc(), Order.id.desc())
        if limit:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        result = await db.execute(query)
        return result.scalars().all(), total
