from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import ADMIN, get_current_user, require_role

from .schemas import (
    ProductCreate,
    ProductList,
    ProductResponse,
    ProductUpdate,
    StockAdjustment,
    StockUpdate,
)
from .service import ProductService

router = APIRouter(tags=["Products"], dependencies=[Depends(get_current_user)])
public_router = APIRouter()  # For any public endpoints (e.g. health check)

admin_only = require_role(ADMIN)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "product", "status": "running"}


@router.get("/", response_model=ProductList)
async def list_products(
    is_active: Optional[bool] = Query(default=None),
    search: Optional[str] = Query(default=None),
    min_price: Optional[Decimal] = Query(default=None, ge=0),
    max_price: Optional[Decimal] = Query(default=None, ge=0),
    low_stock: bool = Query(default=False),
    limit: Optional[int] = Query(default=None, ge=1, le=500),
    offset: Optional[int] = Query(default=None, ge=0),
    db: AsyncSession = Depends(get_db),
):
    products, total = await ProductService.list_products(
        db,
        is_active=is_active,
        search=search,
        min_price=min_price,
        max_price=max_price,
        low_stock=low_stock,
        limit=limit,
        offset=offset,
    )
    return ProductList(products=products, total=total)


@router.get("/sku/{sku}", response_model=ProductResponse)
async def get_product_by_sku(sku: str, db: AsyncSession = Depends(get_db)):
    return await ProductService.get_product_by_sku(db, sku)


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await ProductService.get_product_by_id(db, product_id)


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_product(product: ProductCreate, db: AsyncSession = Depends(get_db)):
    return await ProductService.create_product(db, product)


@router.put("/{product_id}", response_model=ProductResponse, dependencies=[Depends(admin_only)])
async def update_product(product_id: int, payload: ProductUpdate, db: AsyncSession = Depends(get_db)):
    return await ProductService.update_product(db, product_id, payload)


@router.put("/{product_id}/stock", response_model=ProductResponse, dependencies=[Depends(admin_only)])
async def adjust_stock(product_id: int, payload: StockAdjustment, db: AsyncSession = Depends(get_db)):
    return await ProductService.adjust_stock(db, product_id, payload.quantity, payload.operation)


@router.post("/{product_id}/reserve", response_model=ProductResponse, dependencies=[Depends(admin_only)])
async def reserve_stock(product_id: int, payload: StockUpdate, db: AsyncSession = Depends(get_db)):
    return await ProductService.reserve_stock(db, product_id, payload.quantity)


@router.post("/{product_id}/release", response_model=ProductResponse, dependencies=[Depends(admin_only)])
async def release_stock(product_id: int, payload: StockUpdate, db: AsyncSession = Depends(get_db)):
    return await ProductService.restore_stock(db, product_id, payload.quantity)


@router.put("/{product_id}/deactivate", response_model=ProductResponse, dependencies=[Depends(admin_only)])
async def deactivate_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await ProductService.set_active(db, product_id, False)


@router.put("/{product_id}/activate", response_model=ProductResponse, dependencies=[Depends(admin_only)])
async def activate_product(product_id: int, db: AsyncSession = Depends(get_db)):
    return await ProductService.set_active(db, product_id, True)


@router.delete("/{product_id}", dependencies=[Depends(admin_only)])
async def delete_product(product_id: int, db: AsyncSession = Depends(get_db)):
    await ProductService.delete_product(db, product_id)
    return {"message": "Product deleted successfully"}
