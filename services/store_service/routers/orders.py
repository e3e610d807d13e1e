"""Store orders router: placement, history and staff lifecycle updates."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from libs.auth.dependencies import get_access_policy, require_client
from libs.auth.models import AuthUser
from libs.auth.policy import AccessPolicy
from libs.db.session import get_async_db
from services.store_service.models import Order
from services.store_service.schemas import (
    DeliveryDateUpdate,
    OrderResponse,
    OrderStatusUpdate,
    PlaceOrderRequest,
)
from services.store_service.services import orders as order_service
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/orders", tags=["orders"])


def _to_response(order: Order) -> OrderResponse:
    return OrderResponse.from_order(order, order_service.calculate_order_total(order))


# ============================================================================
# ORDER HISTORY
# ============================================================================


@router.get("", response_model=list[OrderResponse])
async def list_orders(
    status_name: Optional[str] = Query(None, alias="status"),
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    """Orders visible to the caller: all for staff, own orders otherwise."""
    orders = await order_service.list_orders(db, policy, status_name=status_name)
    return [_to_response(o) for o in orders]


@router.get("/by-user/{login}", response_model=list[OrderResponse])
async def list_orders_by_user(
    login: str,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    orders = await order_service.list_orders_for_login(db, policy, login)
    return [_to_response(o) for o in orders]


# ============================================================================
# PLACEMENT
# ============================================================================


@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: PlaceOrderRequest,
    current_user: AuthUser = Depends(require_client),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_service.place_order(
        db,
        user_id=current_user.user_id,
        product_id=payload.product_id,
        quantity=payload.quantity,
    )
    return _to_response(order)


# ============================================================================
# LIFECYCLE (STAFF)
# ============================================================================


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_service.update_status(
        db,
        policy,
        order_id,
        status_id=payload.status_id,
        status_name=payload.status_name,
    )
    return _to_response(order)


@router.put("/{order_id}/delivery-date", response_model=OrderResponse)
async def update_delivery_date(
    order_id: int,
    payload: DeliveryDateUpdate,
    policy: AccessPolicy = Depends(get_access_policy),
    db: AsyncSession = Depends(get_async_db),
):
    order = await order_service.update_delivery_date(
        db, policy, order_id, payload.delivery_date
    )
    return _to_response(order)
