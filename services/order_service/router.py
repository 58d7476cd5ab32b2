from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from shared.security import ADMIN, CurrentUser, ensure_owner_or_admin, get_current_user, require_role

from .constants import OrderStatus
from .schemas import (
    OrderCancel,
    OrderCreate,
    OrderList,
    OrderResponse,
    OrderStatusUpdate,
    OrderUpdate,
)
from .service import OrderService, get_order_service

router = APIRouter(tags=["Orders"], dependencies=[Depends(get_current_user)])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

admin_only = require_role(ADMIN)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


async def _owned_order(service: OrderService, order_id: int, user: CurrentUser):
    order = await service.get_order(order_id)
    ensure_owner_or_admin(user, order.customer_id)
    return order


@router.post("/", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    ensure_owner_or_admin(user, payload.customer_id)
    return await service.create_order(payload)


@router.get("/", response_model=OrderList)
async def list_orders(
    status: Optional[OrderStatus] = Query(default=None),
    customer_id: Optional[int] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: Optional[int] = Query(default=None, ge=0),
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    # Customers only ever see their own orders
    if not user.is_admin:
        customer_id = user.id

    orders, total = await service.list_orders(
        status=status,
        customer_id=customer_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return OrderList(orders=orders, total=total)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return await _owned_order(service, order_id, user)


@router.put("/{order_id}/status", response_model=OrderResponse, dependencies=[Depends(admin_only)])
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    return await service.update_status(order_id, payload.status)


@router.put("/{order_id}/cancel", response_model=OrderResponse)
async def cancel_order(
    order_id: int,
    payload: Optional[OrderCancel] = None,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    await _owned_order(service, order_id, user)
    return await service.cancel_order(order_id, payload.reason if payload else None)


@router.put("/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    await _owned_order(service, order_id, user)
    return await service.update_order(order_id, payload)


@router.delete("/{order_id}", dependencies=[Depends(admin_only)])
async def delete_order(order_id: int, service: OrderService = Depends(get_order_service)):
    await service.remove_order(order_id)
    return {"message": "Order deleted successfully"}
