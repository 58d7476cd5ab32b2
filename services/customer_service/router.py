from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.errors import Forbidden
from shared.security import ADMIN, CurrentUser, ensure_owner_or_admin, get_current_user, require_role

from .schemas import (
    BalanceAdjustment,
    CustomerCreate,
    CustomerList,
    CustomerResponse,
    CustomerUpdate,
    LoyaltyPointsAward,
)
from .service import CustomerService

router = APIRouter(tags=["Customers"], dependencies=[Depends(get_current_user)])
public_router = APIRouter()

admin_only = require_role(ADMIN)

# Account-level fields only staff may change
_PRIVILEGED_FIELDS = {"credit_limit", "is_active", "is_vip", "notes"}


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "customer", "status": "running"}


@router.post(
    "/",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_customer(payload: CustomerCreate, db: AsyncSession = Depends(get_db)):
    return await CustomerService.create_customer(db, payload)


@router.get("/", response_model=CustomerList, dependencies=[Depends(admin_only)])
async def list_customers(
    is_active: Optional[bool] = Query(default=None),
    is_vip: Optional[bool] = Query(default=None),
    company: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: Optional[int] = Query(default=None, ge=0),
    db: AsyncSession = Depends(get_db),
):
    customers, total = await CustomerService.list_customers(
        db,
        is_active=is_active,
        is_vip=is_vip,
        company=company,
        search=search,
        limit=limit,
        offset=offset,
    )
    return CustomerList(customers=customers, total=total)


@router.get("/email/{email}", response_model=CustomerResponse, dependencies=[Depends(admin_only)])
async def get_customer_by_email(email: str, db: AsyncSession = Depends(get_db)):
    return await CustomerService.get_by_email(db, email)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(
    customer_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_owner_or_admin(user, customer_id)
    return await CustomerService.get_customer(db, customer_id)


@router.put("/{customer_id}", response_model=CustomerResponse)
async def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    ensure_owner_or_admin(user, customer_id)
    if not user.is_admin and _PRIVILEGED_FIELDS & payload.model_fields_set:
        raise Forbidden("Only administrators may change account-level fields")
    return await CustomerService.update_customer(db, customer_id, payload)


@router.put("/{customer_id}/balance", response_model=CustomerResponse, dependencies=[Depends(admin_only)])
async def adjust_balance(customer_id: int, payload: BalanceAdjustment, db: AsyncSession = Depends(get_db)):
    return await CustomerService.adjust_balance(db, customer_id, payload.amount)


@router.post(
    "/{customer_id}/loyalty-points",
    response_model=CustomerResponse,
    dependencies=[Depends(admin_only)],
)
async def add_loyalty_points(customer_id: int, payload: LoyaltyPointsAward, db: AsyncSession = Depends(get_db)):
    return await CustomerService.add_loyalty_points(db, customer_id, payload.points)


@router.put("/{customer_id}/deactivate", response_model=CustomerResponse, dependencies=[Depends(admin_only)])
async def deactivate_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    return await CustomerService.set_active(db, customer_id, False)


@router.put("/{customer_id}/activate", response_model=CustomerResponse, dependencies=[Depends(admin_only)])
async def activate_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    return await CustomerService.set_active(db, customer_id, True)


@router.delete("/{customer_id}", dependencies=[Depends(admin_only)])
async def delete_customer(customer_id: int, db: AsyncSession = Depends(get_db)):
    await CustomerService.remove_customer(db, customer_id)
    return {"message": "Customer deactivated successfully"}
