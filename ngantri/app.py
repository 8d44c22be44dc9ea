"""
Main FastAPI application for Ngantri food-court ordering
"""

import logging
import sys
from typing import Optional

from fastapi import Body, Depends, FastAPI, Header
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import errors
from .admin_routes import router as admin_router
from .batch_models import BatchOrderRequest, OrderCreateRequest
from .config import settings
from .database import db_manager, get_db
from .errors import install_exception_handlers, success_response
from .menu_service import menu_service
from .merchant_routes import router as merchant_router
from .merchant_service import merchant_service
from .models import (
    CancelOrderRequest, CartBulkRequest, CartItemAdd, CartItemResponse, CartItemUpdate,
    CategoryResponse, MenuResponse, OrderStatus, PaymentCreateRequest,
    PublicMerchantResponse, SessionCreate, SessionResponse,
)
from .order_service import OrderItemData, order_service
from .pagination import page_response
from .payment_service import payment_service
from .session_service import session_service
from .xendit_client import XenditClient, get_xendit_client

logging.basicConfig(
    level=settings.log_level.upper(),
    stream=sys.stderr,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Ngantri",
    description="Food-court ordering API: sessions, carts, multi-merchant checkout and payments",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

# Merchant and admin routes come first so their fixed paths win over
# the public /api/merchants/{merchant_id} routes below
app.include_router(merchant_router)
app.include_router(admin_router)


# API Routes

@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Ngantri - Food Court Ordering", "version": "1.0.0"}


@app.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """Health check endpoint"""
    db.execute(text("SELECT 1"))
    return {"status": "healthy", "database": True}


# Buyer sessions and cart

@app.post("/api/sessions", status_code=201)
async def create_session(
    request: Optional[SessionCreate] = Body(None),
    db: Session = Depends(get_db)
):
    """Open an anonymous buyer session"""
    table_number = request.table_number if request else None
    session = session_service.create_session(db, table_number)
    return success_response(SessionResponse.model_validate(session), status_code=201)


@app.get("/api/sessions/{session_id}")
async def get_session(session_id: str, db: Session = Depends(get_db)):
    session = session_service.find_session(db, session_id)
    return success_response(SessionResponse.model_validate(session))


@app.get("/api/sessions/{session_id}/cart")
async def get_cart(session_id: str, db: Session = Depends(get_db)):
    """Cart grouped by merchant"""
    return success_response(session_service.get_cart(db, session_id))


@app.post("/api/sessions/{session_id}/cart", status_code=201)
async def add_cart_item(session_id: str, item: CartItemAdd, db: Session = Depends(get_db)):
    cart_item = session_service.add_cart_item(db, session_id, item)
    return success_response(CartItemResponse.model_validate(cart_item), status_code=201)


@app.post("/api/sessions/{session_id}/cart/bulk")
async def bulk_add_cart_items(session_id: str, request: CartBulkRequest, db: Session = Depends(get_db)):
    cart_items = session_service.bulk_add_cart_items(db, session_id, request.items, request.replace)
    return success_response([CartItemResponse.model_validate(c) for c in cart_items])


@app.put("/api/sessions/{session_id}/cart/{item_id}")
async def update_cart_item(
    session_id: str,
    item_id: str,
    update: CartItemUpdate,
    db: Session = Depends(get_db)
):
    cart_item = session_service.update_cart_item(db, session_id, item_id, update.quantity, update.notes)
    return success_response(CartItemResponse.model_validate(cart_item))


@app.delete("/api/sessions/{session_id}/cart/{item_id}")
async def remove_cart_item(session_id: str, item_id: str, db: Session = Depends(get_db)):
    session_service.remove_cart_item(db, session_id, item_id)
    return success_response({"id": item_id}, message="Item removed from cart")


@app.delete("/api/sessions/{session_id}/cart")
async def clear_cart(session_id: str, merchant_id: Optional[str] = None, db: Session = Depends(get_db)):
    removed = session_service.clear_cart(db, session_id, merchant_id)
    return success_response({"removed": removed}, message="Cart cleared")


# Browsing

@app.get("/api/merchants")
async def list_merchants(
    cursor: Optional[str] = None,
    limit: int = 20,
    db: Session = Depends(get_db)
):
    """Merchants currently taking orders"""
    page = merchant_service.list_merchants(db, cursor, limit, is_available=True)
    return page_response(page, PublicMerchantResponse.model_validate)


@app.get("/api/merchants/{merchant_id}")
async def get_merchant(merchant_id: str, db: Session = Depends(get_db)):
    merchant = merchant_service.find_by_id(db, merchant_id)
    return success_response(PublicMerchantResponse.model_validate(merchant))


@app.get("/api/merchants/{merchant_id}/menus")
async def list_merchant_menus(
    merchant_id: str,
    category_id: Optional[str] = None,
    available_only: bool = False,
    cursor: Optional[str] = None,
    limit: int = 20,
    db: Session = Depends(get_db)
):
    merchant_service.find_by_id(db, merchant_id)
    page = menu_service.list_menus(
        db,
        merchant_id=merchant_id,
        category_id=category_id,
        is_available=True if available_only else None,
        cursor=cursor,
        limit=limit,
    )
    return page_response(page, MenuResponse.model_validate)


@app.get("/api/merchants/{merchant_id}/categories")
async def list_merchant_categories(
    merchant_id: str,
    cursor: Optional[str] = None,
    limit: int = 100,
    db: Session = Depends(get_db)
):
    merchant_service.find_by_id(db, merchant_id)
    page = menu_service.list_categories(db, merchant_id, cursor, limit)
    return page_response(page, CategoryResponse.model_validate)


# Orders

@app.post("/api/orders/batch")
async def create_batch_orders(request: BatchOrderRequest, db: Session = Depends(get_db)):
    """Create one order per merchant in a single transaction"""
    results = order_service.create_batch_orders(db, request)
    return success_response({
        "orders": [r.model_dump(by_alias=True) for r in results],
        "totalOrders": len(results),
        "message": "All orders created successfully",
    })


@app.post("/api/orders", status_code=201)
async def create_order(request: OrderCreateRequest, db: Session = Depends(get_db)):
    """Order from a single merchant"""
    if not request.session_id or not request.merchant_id or not request.items:
        raise errors.validation("Missing required fields: sessionId, merchantId, and items")

    session_service.find_session(db, request.session_id)
    merchant_service.find_by_id(db, request.merchant_id)
    order = order_service.create_order(
        db,
        session_id=request.session_id,
        merchant_id=request.merchant_id,
        items=[
            OrderItemData(
                menu_id=item.menu_id,
                menu_name=item.menu_name,
                quantity=item.quantity,
                unit_price=item.unit_price,
                menu_image_url=item.menu_image_url,
            )
            for item in request.items
        ],
        customer_name=request.customer_name,
        customer_phone=request.customer_phone,
        notes=request.notes,
    )
    return success_response(
        order_service.order_details(db, order),
        message="Order created successfully",
        status_code=201,
    )


@app.get("/api/orders")
async def list_orders(
    session_id: Optional[str] = None,
    ids: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    cursor: Optional[str] = None,
    limit: int = 20,
    db: Session = Depends(get_db)
):
    """Orders by comma-separated ids, or those placed from a buyer session"""
    if ids is not None:
        order_ids = [order_id.strip() for order_id in ids.split(",") if order_id.strip()]
        if not order_ids:
            raise errors.bad_request("Invalid order IDs")
        orders = order_service.find_orders_by_ids(db, order_ids)
        return success_response([order_service.order_details(db, order) for order in orders])

    if not session_id:
        raise errors.validation("Either session_id or ids is required")
    session_service.find_session(db, session_id)
    page = order_service.list_orders_by_session(
        db, session_id, cursor, limit, status.value if status else None
    )
    return page_response(page, lambda order: order_service.order_details(db, order))


@app.get("/api/orders/{order_id}")
async def get_order(order_id: str, db: Session = Depends(get_db)):
    order = order_service.find_order_by_id(db, order_id)
    return success_response(order_service.order_details(db, order))


@app.post("/api/orders/{order_id}/cancel")
async def cancel_order(order_id: str, request: CancelOrderRequest, db: Session = Depends(get_db)):
    """Buyer cancels one of their own orders"""
    order = order_service.cancel_order(db, order_id, session_id=request.session_id)
    return success_response(order_service.order_details(db, order))


# Payments

@app.post("/api/payments/create")
async def create_payment(
    request: PaymentCreateRequest,
    db: Session = Depends(get_db),
    client: XenditClient = Depends(get_xendit_client)
):
    """Create (or reuse) a payment link for an order"""
    link = await payment_service.create_payment(db, client, request.order_id)
    return success_response({"order": link})


@app.post("/api/webhooks/xendit")
async def xendit_webhook(
    payload: dict = Body(...),
    x_callback_token: Optional[str] = Header(None),
    db: Session = Depends(get_db)
):
    """Xendit invoice callback"""
    result = payment_service.handle_webhook(db, x_callback_token, payload)
    return success_response(result, message="Webhook processed successfully")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize application on startup"""

    # Ensure database tables exist
    db_manager.create_tables()

    logger.info("Ngantri API started on port %s", settings.api_port)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "ngantri.app:app",
        host="127.0.0.1",
        port=settings.api_port,
        reload=True,
        log_level=settings.log_level.lower()
    )
