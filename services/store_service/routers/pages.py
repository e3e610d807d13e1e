"""Server-rendered store pages (catalog, orders, account).

Pages share the API's service layer and the API's token: the web session is
the same signed token kept in an HttpOnly cookie. Flash messages travel in the
query string of the 303 redirect that follows every form post.
"""

from datetime import date, timedelta
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Form, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates
from libs.auth.dependencies import get_session_user
from libs.auth.models import AuthUser
from libs.auth.tokens import create_access_token
from libs.common.config import get_settings
from libs.common.datetime_utils import local_today
from libs.common.errors import InvalidInputError, StoreError
from libs.common.rate_limit import auth_limit
from libs.db.session import get_async_db
from services.store_service.schemas import ProductFilter
from services.store_service.services import catalog as catalog_service
from services.store_service.services import orders as order_service
from services.store_service.services.accounts import authenticate, issue_session
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(tags=["pages"], include_in_schema=False)

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

SORT_OPTIONS = [
    ("name_asc", "Name (A-Z)"),
    ("name_desc", "Name (Z-A)"),
    ("supplier_asc", "Supplier"),
    ("price_asc", "Price: low to high"),
    ("price_desc", "Price: high to low"),
]


def safe_return_url(value: Optional[str], default: str = "/") -> str:
    """Only allow redirects to local paths."""
    if not value or not value.startswith("/") or value.startswith("//"):
        return default
    if "\\" in value or "://" in value:
        return default
    return value


def _redirect(url: str, **flash: Optional[str]) -> RedirectResponse:
    params = {k: v for k, v in flash.items() if v}
    if params:
        url = f"{url}{'&' if '?' in url else '?'}{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_303_SEE_OTHER)


def _login_redirect(return_url: str) -> RedirectResponse:
    return _redirect("/account/login", return_url=return_url)


def _render(
    request: Request,
    template: str,
    user: Optional[AuthUser],
    status_code: int = status.HTTP_200_OK,
    **context,
) -> HTMLResponse:
    context.setdefault("message", request.query_params.get("message"))
    context.setdefault("error", request.query_params.get("error"))
    context["user"] = user
    context["policy"] = user.policy if user else None
    return templates.TemplateResponse(
        request, template, context, status_code=status_code
    )


# ============================================================================
# CATALOG
# ============================================================================


@router.get("/", response_class=HTMLResponse)
async def catalog_page(
    request: Request,
    search: Optional[str] = Query(None),
    manufacturer_id: Optional[int] = Query(None, alias="manufacturerId"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    only_with_discount: bool = Query(False, alias="onlyWithDiscount"),
    only_in_stock: bool = Query(False, alias="onlyInStock"),
    sort_by: str = Query("name_asc", alias="sortBy"),
    user: Optional[AuthUser] = Depends(get_session_user),
    db: AsyncSession = Depends(get_async_db),
):
    error = None
    try:
        price_limit = catalog_service.parse_decimal(max_price)
    except InvalidInputError as exc:
        price_limit = None
        error = exc.detail

    filters = ProductFilter(
        search=search,
        manufacturer_id=manufacturer_id,
        max_price=price_limit,
        only_with_discount=only_with_discount,
        only_in_stock=only_in_stock,
        sort_by=catalog_service.normalize_sort_key(sort_by),
    )
    products = await catalog_service.query_products(db, filters)
    manufacturers = await catalog_service.list_manufacturers(db)

    context = {
        "products": products,
        "manufacturers": manufacturers,
        "filters": filters,
        "max_price": max_price or "",
        "sort_options": SORT_OPTIONS,
    }
    if error:
        context["error"] = error
    return _render(request, "index.html", user, **context)


@router.post("/order")
async def order_product(
    product_id: int = Form(...),
    quantity: int = Form(1),
    user: Optional[AuthUser] = Depends(get_session_user),
    db: AsyncSession = Depends(get_async_db),
):
    if user is None:
        return _login_redirect("/")
    if not user.policy.can_place_order():
        return _redirect("/account/access-denied")

    try:
        order = await order_service.place_order(
            db, user_id=user.user_id, product_id=product_id, quantity=quantity
        )
    except StoreError as exc:
        return _redirect("/", error=exc.detail)

    return _redirect(
        "/",
        message=f"Order #{order.id} placed. Pickup code: {order.pickup_code}",
    )


# ============================================================================
# ORDERS
# ============================================================================


@router.get("/orders", response_class=HTMLResponse)
async def orders_page(
    request: Request,
    status_name: Optional[str] = Query(None, alias="status"),
    user: Optional[AuthUser] = Depends(get_session_user),
    db: AsyncSession = Depends(get_async_db),
):
    if user is None:
        return _login_redirect("/orders")

    policy = user.policy
    orders = await order_service.list_orders(db, policy, status_name=status_name)
    rows = [(o, order_service.calculate_order_total(o)) for o in orders]
    statuses = await catalog_service.list_order_statuses(db)

    return _render(
        request,
        "orders.html",
        user,
        rows=rows,
        statuses=statuses,
        status_filter=status_name or "",
        today=local_today().isoformat(),
    )


@router.post("/orders/{order_id}/status")
async def change_order_status(
    order_id: int,
    status_name: str = Form(...),
    user: Optional[AuthUser] = Depends(get_session_user),
    db: AsyncSession = Depends(get_async_db),
):
    if user is None:
        return _login_redirect("/orders")
    if not user.policy.can_mutate_order_lifecycle():
        return _redirect("/account/access-denied")

    try:
        order = await order_service.update_status(
            db, user.policy, order_id, status_name=status_name
        )
    except StoreError as exc:
        return _redirect("/orders", error=exc.detail)
    return _redirect(
        "/orders", message=f"Order #{order.id} is now '{order.status.name}'"
    )


@router.post("/orders/{order_id}/delivery-date")
async def change_delivery_date(
    order_id: int,
    delivery_date: str = Form(...),
    user: Optional[AuthUser] = Depends(get_session_user),
    db: AsyncSession = Depends(get_async_db),
):
    if user is None:
        return _login_redirect("/orders")
    if not user.policy.can_mutate_order_lifecycle():
        return _redirect("/account/access-denied")

    try:
        new_date = date.fromisoformat(delivery_date.strip())
    except ValueError:
        return _redirect("/orders", error="Delivery date must be YYYY-MM-DD")

    try:
        order = await order_service.update_delivery_date(
            db, user.policy, order_id, new_date
        )
    except StoreError as exc:
        return _redirect("/orders", error=exc.detail)
    return _redirect(
        "/orders",
        message=f"Order #{order.id} delivery date set to {order.delivery_date}",
    )


# ============================================================================
# ACCOUNT
# ============================================================================


@router.get("/account/login", response_class=HTMLResponse)
async def login_page(
    request: Request,
    return_url: Optional[str] = Query(None),
    user: Optional[AuthUser] = Depends(get_session_user),
):
    return _render(
        request, "login.html", user, return_url=safe_return_url(return_url)
    )


@router.post("/account/login", response_class=HTMLResponse)
@auth_limit
async def login_submit(
    request: Request,
    login: str = Form(""),
    password: str = Form(""),
    return_url: str = Form("/"),
    db: AsyncSession = Depends(get_async_db),
):
    target = safe_return_url(return_url)
    try:
        user = await authenticate(db, login, password)
    except StoreError as exc:
        return _render(
            request,
            "login.html",
            None,
            status_code=exc.status_code,
            error=exc.detail,
            return_url=target,
            login=login,
        )

    settings = get_settings()
    lifetime = timedelta(days=settings.SESSION_EXPIRY_DAYS)
    token = create_access_token(issue_session(user), expires_delta=lifetime)

    response = _redirect(target)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        max_age=int(lifetime.total_seconds()),
        httponly=True,
        samesite="strict",
        secure=settings.ENVIRONMENT == "production",
    )
    return response


@router.post("/account/logout")
async def logout():
    response = _redirect("/")
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME)
    return response


@router.get("/account/access-denied", response_class=HTMLResponse)
async def access_denied(
    request: Request,
    user: Optional[AuthUser] = Depends(get_session_user),
):
    return _render(
        request, "access_denied.html", user, status_code=status.HTTP_403_FORBIDDEN
    )
