"""Staff catalog management: create, update and delete products."""

from fastapi import APIRouter, Depends, Response, status
from libs.auth.dependencies import get_access_policy
from libs.auth.policy import AccessPolicy
from libs.db.session import get_async_db
from services.store_service.schemas import ProductCreate, ProductUpdate, ProductView
from services.store_service.services import catalog as catalog_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/products", tags=["admin-catalog"])


@router.post("", response_model=ProductView, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    """Create a product. 409 when the article is already used."""
    product = await catalog_service.create_product(db, policy, payload)
    return ProductView.from_product(product)


@router.put("/{product_id}", response_model=ProductView)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    product = await catalog_service.update_product(db, policy, product_id, payload)
    return ProductView.from_product(product)


@router.delete("/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_product(
    product_id: int,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    await catalog_service.delete_product(db, policy, product_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
