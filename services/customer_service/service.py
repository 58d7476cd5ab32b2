import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import CustomerNotFound, EmailAlreadyRegistered

from .models import Customer
from .repository import CustomerRepository
from .schemas import CustomerCreate, CustomerUpdate

logger = structlog.get_logger(__name__)


class CustomerService:

    @staticmethod
    async def create_customer(db: AsyncSession, data: CustomerCreate) -> Customer:
        if await CustomerRepository.get_by_email(db, data.email):
            raise EmailAlreadyRegistered("Customer with this email already exists")

        customer = Customer(**data.model_dump())
        customer = await CustomerRepository.save(db, customer)
        logger.info("customer_created", customer_id=customer.id)
        return customer

    @staticmethod
    async def list_customers(db: AsyncSession, **filters):
        return await CustomerRepository.search(db, **filters)

    @staticmethod
    async def get_customer(db: AsyncSession, customer_id: int) -> Customer:
        customer = await CustomerRepository.get_by_id(db, customer_id)
        if not customer:
            raise CustomerNotFound("Customer not found")
        return customer

    @staticmethod
    async def get_by_email(db: AsyncSession, email: str) -> Customer:
        customer = await CustomerRepository.get_by_email(db, email)
        if not customer:
            raise CustomerNotFound("Customer not found")
        return customer

    @staticmethod
    async def update_customer(db: AsyncSession, customer_id: int, data: CustomerUpdate) -> Customer:
        customer = await CustomerService.get_customer(db, customer_id)
        changes = data.model_dump(exclude_unset=True)

        new_email = changes.get("email")
        if new_email and new_email != customer.email:
            if await CustomerRepository.get_by_email(db, new_email):
                raise EmailAlreadyRegistered("Customer with this email already exists")

        for field, value in changes.items():
            setattr(customer, field, value)
        return await CustomerRepository.save(db, customer)

    @staticmethod
    async def adjust_balance(db: AsyncSession, customer_id: int, amount) -> Customer:
        customer = await CustomerService.get_customer(db, customer_id)
        customer.current_balance = (customer.current_balance or 0) + amount
        return await CustomerRepository.save(db, customer)

    @staticmethod
    async def add_loyalty_points(db: AsyncSession, customer_id: int, points: int) -> Customer:
        customer = await CustomerService.get_customer(db, customer_id)
        customer.loyalty_points = (customer.loyalty_points or 0) + points
        return await CustomerRepository.save(db, customer)

    @staticmethod
    async def set_active(db: AsyncSession, customer_id: int, active: bool) -> Customer:
        customer = await CustomerService.get_customer(db, customer_id)
        customer.is_active = active
        return await CustomerRepository.save(db, customer)

    @staticmethod
    async def remove_customer(db: AsyncSession, customer_id: int) -> None:
        # Customers are never hard-deleted; order history keeps pointing at them
        await CustomerService.set_active(db, customer_id, False)
        logger.info("customer_deactivated", customer_id=customer_id)
