"""
Merchant account and dashboard endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import errors
from .auth import MERCHANT_SESSION_COOKIE, get_current_merchant
from .database import get_db
from .errors import success_response
from .menu_service import menu_service
from .merchant_service import merchant_service
from .models import (
    AvailabilityUpdate, CategoryCreate, CategoryResponse, MenuCreate, MenuResponse, MenuUpdate,
    Merchant, MerchantLogin, MerchantProfileUpdate, MerchantRegister, MerchantResponse,
    OrderStatus, OrderStatusUpdate, PasswordChange, PaymentResponse, PaymentStatusUpdate,
)
from .order_service import order_service
from .pagination import page_response

router = APIRouter(prefix="/api/merchants", tags=["merchants"])

SESSION_MAX_AGE = 7 * 24 * 60 * 60


# Account

@router.post("/register", status_code=201)
async def register(request: MerchantRegister, db: Session = Depends(get_db)):
    merchant = merchant_service.register(db, request)
    return success_response(
        MerchantResponse.model_validate(merchant),
        message="Merchant registered successfully",
        status_code=201,
    )


@router.post("/login")
async def login(request: MerchantLogin, db: Session = Depends(get_db)):
    merchant = merchant_service.login(db, request.phone_number, request.password)
    response = success_response(MerchantResponse.model_validate(merchant), message="Login successful")
    response.set_cookie(
        MERCHANT_SESSION_COOKIE,
        merchant.id,
        max_age=SESSION_MAX_AGE,
        httponly=True,
        samesite="lax",
        path="/",
    )
    return response


@router.post("/logout")
async def logout():
    response = success_response(None, message="Logged out")
    response.delete_cookie(MERCHANT_SESSION_COOKIE, path="/")
    return response


@router.get("/me")
async def me(merchant: Merchant = Depends(get_current_merchant)):
    return success_response(MerchantResponse.model_validate(merchant))


@router.put("/profile")
async def update_profile(
    request: MerchantProfileUpdate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    updated = merchant_service.update_profile(db, merchant.id, request)
    return success_response(MerchantResponse.model_validate(updated))


@router.put("/profile/password")
async def change_password(
    request: PasswordChange,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    merchant_service.change_password(db, merchant.id, request.current_password, request.new_password)
    return success_response(None, message="Password updated")


# Categories

@router.get("/dashboard/categories")
async def list_categories(
    cursor: Optional[str] = None,
    limit: int = 100,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    page = menu_service.list_categories(db, merchant.id, cursor, limit)
    return page_response(page, CategoryResponse.model_validate)


@router.post("/dashboard/categories", status_code=201)
async def create_category(
    request: CategoryCreate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    category = menu_service.create_category(db, merchant.id, request.name)
    return success_response(CategoryResponse.model_validate(category), status_code=201)


@router.put("/dashboard/categories/{category_id}")
async def rename_category(
    category_id: str,
    request: CategoryCreate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    category = menu_service.rename_category(db, category_id, merchant.id, request.name)
    return success_response(CategoryResponse.model_validate(category))


@router.delete("/dashboard/categories/{category_id}")
async def delete_category(
    category_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    menu_service.delete_category(db, category_id, merchant.id)
    return success_response({"id": category_id}, message="Category deleted")


# Menus

@router.get("/dashboard/menus")
async def list_menus(
    category_id: Optional[str] = None,
    cursor: Optional[str] = None,
    limit: int = 20,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    page = menu_service.list_menus(db, merchant.id, category_id, cursor=cursor, limit=limit)
    return page_response(page, MenuResponse.model_validate)


@router.post("/dashboard/menus", status_code=201)
async def create_menu(
    request: MenuCreate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    menu = menu_service.create_menu(db, merchant.id, request)
    return success_response(MenuResponse.model_validate(menu), status_code=201)


@router.put("/dashboard/menus/{menu_id}")
async def update_menu(
    menu_id: str,
    request: MenuUpdate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    menu = menu_service.update_menu(db, menu_id, merchant.id, request)
    return success_response(MenuResponse.model_validate(menu))


@router.patch("/dashboard/menus/{menu_id}/availability")
async def set_menu_availability(
    menu_id: str,
    request: AvailabilityUpdate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    menu = menu_service.set_availability(db, menu_id, request.is_available, merchant.id)
    return success_response(MenuResponse.model_validate(menu))


@router.delete("/dashboard/menus/{menu_id}")
async def delete_menu(
    menu_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    menu_service.delete_menu(db, menu_id, merchant.id)
    return success_response({"id": menu_id}, message="Menu deleted")


# Orders

def _own_order(db: Session, order_id: str, merchant: Merchant):
    order = order_service.find_order_by_id(db, order_id)
    if order.merchant_id != merchant.id:
        raise errors.order_not_found(order_id)
    return order


@router.get("/dashboard/orders")
async def list_orders(
    status: Optional[OrderStatus] = None,
    cursor: Optional[str] = None,
    limit: int = 20,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    page = order_service.list_orders_by_merchant(
        db, merchant.id, cursor, limit, status.value if status else None
    )
    return page_response(page, lambda order: order_service.order_details(db, order))


@router.get("/dashboard/orders/{order_id}")
async def get_order(
    order_id: str,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    order = _own_order(db, order_id, merchant)
    return success_response(order_service.order_details(db, order))


@router.patch("/dashboard/orders/{order_id}/status")
async def update_order_status(
    order_id: str,
    request: OrderStatusUpdate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    _own_order(db, order_id, merchant)
    order = order_service.update_order_status(db, order_id, request.status.value)
    return success_response(order_service.order_details(db, order))


@router.patch("/dashboard/orders/{order_id}/payment")
async def update_order_payment(
    order_id: str,
    request: PaymentStatusUpdate,
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    _own_order(db, order_id, merchant)
    payment = order_service.set_payment_status(db, order_id, request.status.value)
    return success_response(PaymentResponse.model_validate(payment))


@router.get("/dashboard/stats")
async def dashboard_stats(
    merchant: Merchant = Depends(get_current_merchant),
    db: Session = Depends(get_db)
):
    return success_response(merchant_service.get_stats(db, merchant.id))
