"""Public catalog router: product listing, lookup by article, manufacturers."""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Query
from libs.db.session import get_async_db
from services.store_service.schemas import (
    ManufacturerResponse,
    ProductFilter,
    ProductView,
)
from services.store_service.services import catalog as catalog_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["catalog"])


# ============================================================================
# PRODUCTS
# ============================================================================


@router.get("/products", response_model=list[ProductView])
async def list_products(
    search: Optional[str] = Query(None),
    manufacturer_id: Optional[int] = Query(None, alias="manufacturerId"),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice"),
    only_with_discount: bool = Query(False, alias="onlyWithDiscount"),
    only_in_stock: bool = Query(False, alias="onlyInStock"),
    sort_by: str = Query("name_asc", alias="sortBy"),
    db: AsyncSession = Depends(get_async_db),
):
    """List products with optional filters. Unknown sort keys sort by name."""
    filters = ProductFilter(
        search=search,
        manufacturer_id=manufacturer_id,
        max_price=max_price,
        only_with_discount=only_with_discount,
        only_in_stock=only_in_stock,
        sort_by=sort_by,
    )
    return await catalog_service.query_products(db, filters)


@router.get("/products/by-article/{article}", response_model=ProductView)
async def get_product_by_article(
    article: str,
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_service.get_product_by_article(db, article)
    return ProductView.from_product(product)


# ============================================================================
# REFERENCE DATA
# ============================================================================


@router.get("/manufacturers", response_model=list[ManufacturerResponse])
async def list_manufacturers(db: AsyncSession = Depends(get_async_db)):
    return await catalog_service.list_manufacturers(db)
