from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from shared.security import ADMIN, CurrentUser, ensure_owner_or_admin, get_current_user, require_role

from .models import PaymentMethod, PaymentStatus
from .schemas import (
    STATUS_DESCRIPTIONS,
    SUPPORTED_CURRENCIES,
    GatewayStatus,
    PaymentCreate,
    PaymentList,
    PaymentMethods,
    PaymentResponse,
    PaymentStatuses,
    RefundRequest,
)
from .service import PaymentService, get_payment_service

router = APIRouter(tags=["Payments"], dependencies=[Depends(get_current_user)])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

admin_only = require_role(ADMIN)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


@router.get("/methods/available", response_model=PaymentMethods)
async def get_payment_methods():
    return PaymentMethods(
        methods=list(PaymentMethod),
        supported_currencies=SUPPORTED_CURRENCIES,
        default_currency="USD",
    )


@router.get("/statuses/available", response_model=PaymentStatuses)
async def get_payment_statuses():
    return PaymentStatuses(statuses=list(PaymentStatus), descriptions=STATUS_DESCRIPTIONS)


@router.get("/gateways/stripe/status", response_model=GatewayStatus, dependencies=[Depends(admin_only)])
async def stripe_status(service: PaymentService = Depends(get_payment_service)):
    return await service.stripe_status()


@router.post("/", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(
    payload: PaymentCreate,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    ensure_owner_or_admin(user, payload.customer_id)
    if not user.is_admin:
        order = await service.get_order(payload.order_id)
        ensure_owner_or_admin(user, order.customer_id)
    return await service.create_payment(payload)


@router.get("/", response_model=PaymentList)
async def list_payments(
    order_id: Optional[int] = Query(default=None),
    customer_id: Optional[int] = Query(default=None),
    status: Optional[PaymentStatus] = Query(default=None),
    payment_method: Optional[PaymentMethod] = Query(default=None),
    start_date: Optional[datetime] = Query(default=None),
    end_date: Optional[datetime] = Query(default=None),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: Optional[int] = Query(default=None, ge=0),
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    if not user.is_admin:
        customer_id = user.id

    payments, total = await service.list_payments(
        order_id=order_id,
        customer_id=customer_id,
        status=status,
        payment_method=payment_method,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    return PaymentList(payments=payments, total=total)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: int,
    user: CurrentUser = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    payment = await service.get_payment(payment_id)
    ensure_owner_or_admin(user, payment.customer_id)
    return payment


@router.post("/{payment_id}/refund", response_model=PaymentResponse, dependencies=[Depends(admin_only)])
async def refund_payment(
    payment_id: int,
    payload: Optional[RefundRequest] = None,
    service: PaymentService = Depends(get_payment_service),
):
    payload = payload or RefundRequest()
    return await service.refund_payment(payment_id, payload.amount, payload.reason)
