"""
Admin endpoints: oversight of every merchant, menu, category and order
"""

from typing import Optional

from fastapi import APIRouter, Cookie, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from . import errors
from .auth import ADMIN_SESSION_COOKIE, AdminSession, admin_sessions, require_admin
from .config import settings
from .database import get_db
from .errors import success_response
from .menu_service import menu_service
from .merchant_service import merchant_service
from .models import (
    AdminLogin, AvailabilityUpdate, CategoryResponse, Menu, MenuCategory, MenuResponse,
    Merchant, MerchantRegister, MerchantResponse, Order, OrderStatus, OrderStatusUpdate,
    PaymentResponse, PaymentStatusUpdate,
)
from .order_service import order_service
from .pagination import page_response

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login")
async def login(request: AdminLogin):
    if not admin_sessions.validate_credentials(request.username, request.password):
        raise errors.AppError(errors.ErrorCode.INVALID_CREDENTIALS, "Invalid username or password", 401)

    token = admin_sessions.create(request.username)
    response = success_response({"username": request.username}, message="Login successful")
    response.set_cookie(
        ADMIN_SESSION_COOKIE,
        token,
        max_age=settings.admin_session_hours * 60 * 60,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return response


@router.post("/logout")
async def logout(admin_session: Optional[str] = Cookie(None)):
    admin_sessions.clear(admin_session)
    response = success_response(None, message="Logged out")
    response.delete_cookie(ADMIN_SESSION_COOKIE, path="/")
    return response


@router.get("/me")
async def me(admin: AdminSession = Depends(require_admin)):
    return success_response({
        "username": admin.username,
        "login_time": admin.login_time,
        "expires_at": admin.expires_at,
    })


@router.get("/dashboard/stats")
async def dashboard_stats(
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    stats = order_service.get_order_stats(db)

    def count(model):
        return db.query(func.count(model.id)).filter(model.deleted_at.is_(None)).scalar()

    recent = (
        db.query(Order.id, Merchant.name, Order.total_amount, Order.status, Order.created_at)
        .outerjoin(Merchant, Merchant.id == Order.merchant_id)
        .filter(Order.deleted_at.is_(None))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(10)
        .all()
    )

    return success_response({
        "totalOrders": stats.total_orders,
        "totalRevenue": stats.total_revenue,
        "averageOrderValue": stats.average_order_value,
        "pendingOrders": stats.status_breakdown.get(OrderStatus.PENDING.value, 0),
        "completedOrders": stats.status_breakdown.get(OrderStatus.COMPLETED.value, 0),
        "ordersByStatus": stats.status_breakdown,
        "totalMerchants": count(Merchant),
        "totalMenus": count(Menu),
        "totalCategories": count(MenuCategory),
        "recentOrders": [
            {
                "id": row.id,
                "merchantName": row.name,
                "totalAmount": row.total_amount,
                "status": row.status,
                "createdAt": row.created_at,
            }
            for row in recent
        ],
    })


# Merchants

@router.get("/merchants")
async def list_merchants(
    is_available: Optional[bool] = None,
    cursor: Optional[str] = None,
    limit: int = 20,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    page = merchant_service.list_merchants(db, cursor, limit, is_available)
    return page_response(page, MerchantResponse.model_validate)


@router.post("/merchants", status_code=201)
async def create_merchant(
    request: MerchantRegister,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    merchant = merchant_service.register(db, request)
    return success_response(MerchantResponse.model_validate(merchant), status_code=201)


@router.patch("/merchants/{merchant_id}/availability")
async def set_merchant_availability(
    merchant_id: str,
    request: AvailabilityUpdate,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    merchant = merchant_service.set_availability(db, merchant_id, request.is_available)
    return success_response(MerchantResponse.model_validate(merchant))


@router.delete("/merchants/{merchant_id}")
async def delete_merchant(
    merchant_id: str,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    merchant_service.soft_delete(db, merchant_id)
    return success_response({"id": merchant_id}, message="Merchant deleted")


# Menus and categories

@router.get("/menus")
async def list_menus(
    merchant_id: Optional[str] = None,
    category_id: Optional[str] = None,
    is_available: Optional[bool] = None,
    cursor: Optional[str] = None,
    limit: int = 20,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    page = menu_service.list_menus(db, merchant_id, category_id, is_available, cursor, limit)
    return page_response(page, MenuResponse.model_validate)


@router.patch("/menus/{menu_id}/availability")
async def set_menu_availability(
    menu_id: str,
    request: AvailabilityUpdate,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    menu = menu_service.set_availability(db, menu_id, request.is_available)
    return success_response(MenuResponse.model_validate(menu))


@router.delete("/menus/{menu_id}")
async def delete_menu(
    menu_id: str,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    menu_service.delete_menu(db, menu_id)
    return success_response({"id": menu_id}, message="Menu deleted")


@router.get("/categories")
async def list_categories(
    merchant_id: Optional[str] = None,
    cursor: Optional[str] = None,
    limit: int = 100,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    page = menu_service.list_categories(db, merchant_id, cursor, limit)
    return page_response(page, CategoryResponse.model_validate)


@router.delete("/categories/{category_id}")
async def delete_category(
    category_id: str,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    menu_service.delete_category(db, category_id)
    return success_response({"id": category_id}, message="Category deleted")


# Orders

@router.get("/orders")
async def list_orders(
    status: Optional[OrderStatus] = None,
    merchant_id: Optional[str] = None,
    cursor: Optional[str] = None,
    limit: int = 20,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    page = order_service.list_all_orders(
        db, cursor, limit, status.value if status else None, merchant_id
    )
    return page_response(page, lambda order: order_service.order_details(db, order))


@router.get("/orders/{order_id}")
async def get_order(
    order_id: str,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    order = order_service.find_order_by_id(db, order_id)
    return success_response(order_service.order_details(db, order))


@router.patch("/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    order = order_service.update_order_status(db, order_id, request.status.value)
    return success_response(order_service.order_details(db, order))


@router.patch("/orders/{order_id}/payment")
async def update_order_payment(
    order_id: str,
    request: PaymentStatusUpdate,
    admin: AdminSession = Depends(require_admin),
    db: Session = Depends(get_db)
):
    payment = order_service.set_payment_status(db, order_id, request.status.value)
    message = (
        "Order payment marked as paid" if request.status.value == "paid"
        else "Order payment marked as unpaid"
    )
    return success_response(PaymentResponse.model_validate(payment), message=message)
