from datetime import datetime
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Payment, PaymentMethod, PaymentStatus


class PaymentRepository:

    @staticmethod
    async def add_payment(db: AsyncSession, payment: Payment) -> Payment:
        db.add(payment)
        await db.flush()
        return payment

    @staticmethod
    async def get_payment(db: AsyncSession, payment_id: int) -> Optional[Payment]:
        result = await db.execute(
            select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def get_for_update(db: AsyncSession, payment_id: int) -> Optional[Payment]:
        """Row-locks the payment until the surrounding transaction ends."""
        result = await db.execute(
            select(Payment)
            .where(Payment.id == payment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    @staticmethod
    async def search(
        db: AsyncSession,
        *,
        order_id: Optional[int] = None,
        customer_id: Optional[int] = None,
        status: Optional[PaymentStatus] = None,
        payment_method: Optional[PaymentMethod] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        query = select(Payment)
        if order_id is not None:
            query = query.where(Payment.order_id == order_id)
        if customer_id is not None:
            query = query.where(Payment.customer_id == customer_id)
        if status is not None:
            query = query.where(Payment.status == status)
        if payment_method is not None:
            query = query.where(Payment.payment_method == payment_method)
        if start_date is not None:
            query = query.where(Payment.created_at >= start_date)
        if end_date is not None:
            query = query.where(Payment.created_at <= end_date)

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Payment.created_at.desc(), Payment.id.desc())
        if limit:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        result = await db.execute(query)
        return result.scalars().all(), total
