from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Customer


class CustomerRepository:

    @staticmethod
    async def save(db: AsyncSession, customer: Customer) -> Customer:
        db.add(customer)
        await db.commit()
        await db.refresh(customer)
        return customer

    @staticmethod
    async def get_by_id(db: AsyncSession, customer_id: int) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.id == customer_id))
        return result.scalars().first()

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Optional[Customer]:
        result = await db.execute(select(Customer).where(Customer.email == email))
        return result.scalars().first()

    @staticmethod
    async def search(
        db: AsyncSession,
        *,
        is_active: Optional[bool] = None,
        is_vip: Optional[bool] = None,
        company: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ):
        query = select(Customer)
        if is_active is not None:
            query = query.where(Customer.is_active == is_active)
        if is_vip is not None:
            query = query.where(Customer.is_vip == is_vip)
        if company:
            query = query.where(Customer.company.ilike(f"%{company}%"))
        if search:
            pattern = f"%{search}%"
            query = query.where(
                or_(
                    Customer.first_name.ilike(pattern),
                    Customer.last_name.ilike(pattern),
                    Customer.email.ilike(pattern),
                )
            )

        total = await db.scalar(select(func.count()).select_from(query.subquery()))

        query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
        if limit:
            query = query.limit(limit)
        if offset:
            query = query.offset(offset)

        result = await db.execute(query)
        return result.scalars().all(), total
