"""
Order service: batch checkout across merchants and order lifecycle
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import errors
from .batch_models import BatchOrderRequest, BatchOrderResult, MerchantOrderGroup
from .errors import AppError
from .models import (
    BuyerSession, Menu, Merchant, Order, OrderItem, OrderPayment,
    OrderDetailResponse, OrderItemResponse, OrderStatus, PaymentStatus, new_id, utcnow,
)
from .pagination import Page, paginate
from .validation import (
    is_placeholder_id, require_text, validate_indonesian_phone, validate_item_bounds,
)

logger = logging.getLogger(__name__)

CLOSED_STATUSES = {OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value}


@dataclass
class _MerchantRef:
    name: str
    is_available: bool


@dataclass
class _MenuRef:
    name: str
    is_available: bool
    merchant_id: str


@dataclass
class OrderItemData:
    menu_id: str
    menu_name: str
    quantity: int
    unit_price: int
    menu_image_url: Optional[str] = None


@dataclass
class OrderStats:
    total_orders: int = 0
    total_revenue: int = 0
    average_order_value: float = 0
    status_breakdown: Dict[str, int] = field(default_factory=dict)

    def as_dict(self) -> dict:
        return {
            "totalOrders": self.total_orders,
            "totalRevenue": self.total_revenue,
            "averageOrderValue": self.average_order_value,
            "statusBreakdown": self.status_breakdown,
        }


class OrderService:
    """Handles business logic for order operations"""

    # Batch checkout

    def create_batch_orders(self, db: Session, data: BatchOrderRequest) -> List[BatchOrderResult]:
        """Create one order per merchant in a single transaction.

        Either every order (and every order item) is written or none is.
        Validation failures raise an AppError before anything is flushed,
        and the transaction is rolled back.
        """
        session_id = require_text(data.session_id, "Session ID is required")
        customer_name = require_text(data.customer_name, "Customer name is required")
        customer_phone = require_text(data.customer_phone, "Customer phone is required")

        if not data.orders_by_merchant:
            raise errors.validation("No orders provided")

        validate_indonesian_phone(customer_phone)

        for merchant_id in data.orders_by_merchant:
            if is_placeholder_id(merchant_id):
                raise errors.validation("Invalid merchant ID provided")

        try:
            session = (
                db.query(BuyerSession)
                .filter(BuyerSession.id == session_id, BuyerSession.deleted_at.is_(None))
                .first()
            )
            if not session:
                raise errors.not_found("Session")

            merchant_entries = list(data.orders_by_merchant.items())

            merchants_by_id = self._preload_merchants(db, [merchant_id for merchant_id, _ in merchant_entries])
            menus_by_id = self._preload_menus(db, merchant_entries)

            self._validate_merchants(merchant_entries, merchants_by_id)

            order_id_by_merchant = {merchant_id: new_id() for merchant_id, _ in merchant_entries}
            totals_by_merchant = {merchant_id: 0 for merchant_id, _ in merchant_entries}

            item_rows = self._prepare_items(
                merchant_entries, menus_by_id, order_id_by_merchant, totals_by_merchant
            )
            order_rows, results = self._build_orders(
                merchant_entries,
                order_id_by_merchant,
                totals_by_merchant,
                session_id,
                customer_name,
                customer_phone,
                data.notes,
            )

            # Order rows carry their final totals before either insert runs
            db.execute(insert(Order), order_rows)
            db.execute(insert(OrderItem), item_rows)
            db.commit()

        except AppError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Batch order transaction failed for session %s", session_id)
            raise errors.internal("Failed to create batch orders") from e

        logger.info(
            "Created %d orders for session %s (%s)",
            len(results), session_id, ", ".join(r.order_id for r in results)
        )
        return results

    def _preload_merchants(self, db: Session, merchant_ids: List[str]) -> Dict[str, _MerchantRef]:
        rows = (
            db.query(Merchant.id, Merchant.name, Merchant.is_available)
            .filter(Merchant.id.in_(merchant_ids), Merchant.deleted_at.is_(None))
            .all()
        )
        return {row.id: _MerchantRef(name=row.name, is_available=row.is_available) for row in rows}

    def _preload_menus(
        self, db: Session, merchant_entries: List[Tuple[str, MerchantOrderGroup]]
    ) -> Dict[str, _MenuRef]:
        menu_ids = sorted({item.menu_id for _, group in merchant_entries for item in group.items})
        if not menu_ids:
            return {}

        rows = (
            db.query(Menu.id, Menu.name, Menu.is_available, Menu.merchant_id)
            .filter(Menu.id.in_(menu_ids), Menu.deleted_at.is_(None))
            .all()
        )
        return {
            row.id: _MenuRef(name=row.name, is_available=row.is_available, merchant_id=row.merchant_id)
            for row in rows
        }

    def _validate_merchants(
        self,
        merchant_entries: List[Tuple[str, MerchantOrderGroup]],
        merchants_by_id: Dict[str, _MerchantRef],
    ):
        for merchant_id, group in merchant_entries:
            if not group.items:
                raise errors.validation(f"No items provided for merchant {group.merchant_name}")

            merchant = merchants_by_id.get(merchant_id)
            if not merchant:
                raise errors.not_found("Merchant", merchant_id)

            if not merchant.is_available:
                raise errors.bad_request(f"Merchant {merchant.name} is not available")

    def _prepare_items(
        self,
        merchant_entries: List[Tuple[str, MerchantOrderGroup]],
        menus_by_id: Dict[str, _MenuRef],
        order_id_by_merchant: Dict[str, str],
        totals_by_merchant: Dict[str, int],
    ) -> List[dict]:
        now = utcnow()
        item_rows = []

        for merchant_id, group in merchant_entries:
            for item in group.items:
                menu = menus_by_id.get(item.menu_id)
                if not menu or menu.merchant_id != merchant_id:
                    raise errors.not_found("Menu", item.menu_id)

                if not menu.is_available:
                    raise errors.bad_request(f"Menu {menu.name or item.menu_name} is not available")

                validate_item_bounds(item.quantity, item.unit_price)

                subtotal = item.quantity * item.unit_price
                totals_by_merchant[merchant_id] += subtotal

                item_rows.append({
                    "id": new_id(),
                    "order_id": order_id_by_merchant[merchant_id],
                    "menu_id": item.menu_id,
                    "menu_name": item.menu_name,
                    "menu_image_url": item.menu_image_url or None,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "subtotal": subtotal,
                    "created_at": now,
                    "updated_at": now,
                })

        return item_rows

    def _build_orders(
        self,
        merchant_entries: List[Tuple[str, MerchantOrderGroup]],
        order_id_by_merchant: Dict[str, str],
        totals_by_merchant: Dict[str, int],
        session_id: str,
        customer_name: str,
        customer_phone: str,
        notes: Optional[str],
    ) -> Tuple[List[dict], List[BatchOrderResult]]:
        now = utcnow()
        order_rows = []
        results = []

        for merchant_id, group in merchant_entries:
            order_id = order_id_by_merchant[merchant_id]
            total_amount = totals_by_merchant[merchant_id]

            order_rows.append({
                "id": order_id,
                "session_id": session_id,
                "merchant_id": merchant_id,
                "customer_name": customer_name,
                "customer_phone": customer_phone,
                "total_amount": total_amount,
                "notes": notes or None,
                "status": OrderStatus.PENDING.value,
                "created_at": now,
                "updated_at": now,
            })
            results.append(BatchOrderResult(
                merchant_id=merchant_id,
                merchant_name=group.merchant_name,
                order_id=order_id,
                total_amount=total_amount,
            ))

        return order_rows, results

    # Single-merchant orders

    def create_order(
        self,
        db: Session,
        session_id: str,
        merchant_id: str,
        items: List[OrderItemData],
        customer_name: Optional[str] = None,
        customer_phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        require_text(session_id, "Session ID is required")
        require_text(merchant_id, "Merchant ID is required")
        if not items:
            raise errors.validation("Order must contain at least one item")
        if customer_phone and customer_phone.strip():
            validate_indonesian_phone(customer_phone)

        for item in items:
            require_text(item.menu_id, "Menu ID is required for all items")
            require_text(item.menu_name, "Menu name is required for all items")
            validate_item_bounds(item.quantity, item.unit_price)

        order = Order(
            id=new_id(),
            session_id=session_id,
            merchant_id=merchant_id,
            customer_name=customer_name or None,
            customer_phone=customer_phone or None,
            total_amount=sum(item.quantity * item.unit_price for item in items),
            status=OrderStatus.PENDING.value,
            notes=notes or None,
        )
        try:
            db.add(order)
            db.add_all([
                OrderItem(
                    order_id=order.id,
                    menu_id=item.menu_id,
                    menu_name=item.menu_name,
                    menu_image_url=item.menu_image_url,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    subtotal=item.quantity * item.unit_price,
                )
                for item in items
            ])
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Failed to create order for merchant %s", merchant_id)
            raise errors.internal("Failed to create order") from e

        return order

    # Queries

    def find_order_by_id(self, db: Session, order_id: str) -> Order:
        order = (
            db.query(Order)
            .filter(Order.id == order_id, Order.deleted_at.is_(None))
            .first()
        )
        if not order:
            raise errors.order_not_found(order_id)
        return order

    def find_orders_by_ids(self, db: Session, order_ids: List[str]) -> List[Order]:
        """Orders in the requested order, skipping ids that do not exist"""
        found = {
            order.id: order
            for order in db.query(Order).filter(Order.id.in_(order_ids), Order.deleted_at.is_(None))
        }
        return [found[order_id] for order_id in order_ids if order_id in found]

    def get_order_items(self, db: Session, order_id: str) -> List[OrderItem]:
        self.find_order_by_id(db, order_id)
        return (
            db.query(OrderItem)
            .filter(OrderItem.order_id == order_id, OrderItem.deleted_at.is_(None))
            .order_by(OrderItem.id)
            .all()
        )

    def latest_payment(self, db: Session, order_id: str) -> Optional[OrderPayment]:
        return (
            db.query(OrderPayment)
            .filter(OrderPayment.order_id == order_id, OrderPayment.deleted_at.is_(None))
            .order_by(OrderPayment.created_at.desc(), OrderPayment.id.desc())
            .first()
        )

    def order_details(self, db: Session, order: Order) -> OrderDetailResponse:
        """Order with its items, merchant summary and payment status"""
        items = (
            db.query(OrderItem)
            .filter(OrderItem.order_id == order.id, OrderItem.deleted_at.is_(None))
            .order_by(OrderItem.id)
            .all()
        )
        merchant = db.query(Merchant).filter(Merchant.id == order.merchant_id).first()
        payment = self.latest_payment(db, order.id)

        details = OrderDetailResponse.model_validate(order)
        details.items = [OrderItemResponse.model_validate(item) for item in items]
        details.payment_status = payment.status if payment else "unpaid"
        details.merchant = {
            "id": order.merchant_id,
            "name": merchant.name if merchant else None,
            "image_url": merchant.image_url if merchant else None,
        }
        return details

    def _list(
        self,
        db: Session,
        cursor: Optional[str],
        limit: Optional[int],
        status: Optional[str],
        **filters,
    ) -> Page:
        query = db.query(Order).filter(Order.deleted_at.is_(None))
        for column, value in filters.items():
            query = query.filter(getattr(Order, column) == value)
        if status:
            query = query.filter(Order.status == status)
        return paginate(query, Order.id, cursor, limit)

    def list_orders_by_session(self, db, session_id, cursor=None, limit=None, status=None) -> Page:
        return self._list(db, cursor, limit, status, session_id=session_id)

    def list_orders_by_merchant(self, db, merchant_id, cursor=None, limit=None, status=None) -> Page:
        return self._list(db, cursor, limit, status, merchant_id=merchant_id)

    def list_all_orders(self, db, cursor=None, limit=None, status=None, merchant_id=None) -> Page:
        if merchant_id:
            return self._list(db, cursor, limit, status, merchant_id=merchant_id)
        return self._list(db, cursor, limit, status)

    # Lifecycle

    def update_order_status(self, db: Session, order_id: str, status: str) -> Order:
        order = self.find_order_by_id(db, order_id)

        valid_statuses = [s.value for s in OrderStatus]
        if status not in valid_statuses:
            raise errors.validation(
                f"Invalid order status. Valid statuses: {', '.join(valid_statuses)}"
            )

        order.status = status
        order.updated_at = utcnow()

        # Completing an order means the counter collected the money
        if status == OrderStatus.COMPLETED.value:
            self._mark_paid(db, order)

        db.commit()
        logger.info("Order %s status -> %s", order_id, status)
        return order

    def cancel_order(self, db: Session, order_id: str, session_id: Optional[str] = None) -> Order:
        order = self.find_order_by_id(db, order_id)

        if session_id is not None and order.session_id != session_id:
            raise errors.forbidden("You do not have permission to cancel this order")

        if order.status in CLOSED_STATUSES:
            raise errors.bad_request(f"Cannot cancel order with status: {order.status}")

        order.status = OrderStatus.CANCELLED.value
        order.updated_at = utcnow()
        db.commit()
        logger.info("Order %s cancelled", order_id)
        return order

    def set_payment_status(self, db: Session, order_id: str, status: str) -> OrderPayment:
        """Manually mark an order paid (cash at the counter) or unpaid"""
        order = self.find_order_by_id(db, order_id)

        if status == PaymentStatus.PAID.value:
            payment = self._mark_paid(db, order)
        else:
            payment = self.latest_payment(db, order_id)
            if not payment:
                raise errors.not_found("Payment for order", order_id)
            payment.status = status
            payment.payment_method = None
            payment.paid_at = None
            payment.updated_at = utcnow()

        db.commit()
        return payment

    def _mark_paid(self, db: Session, order: Order) -> OrderPayment:
        now = utcnow()
        payment = self.latest_payment(db, order.id)
        if payment is None:
            payment = OrderPayment(
                id=new_id(),
                order_id=order.id,
                amount=order.total_amount,
                created_at=now,
            )
            db.add(payment)

        if payment.status != PaymentStatus.PAID.value:
            payment.status = PaymentStatus.PAID.value
            payment.payment_method = payment.payment_method or "cash"
            payment.paid_at = now
        payment.updated_at = now
        return payment

    # Analytics

    def get_order_stats(
        self,
        db: Session,
        merchant_id: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> OrderStats:
        query = db.query(Order.status, func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
        query = query.filter(Order.deleted_at.is_(None))
        if merchant_id:
            query = query.filter(Order.merchant_id == merchant_id)
        if start_date:
            query = query.filter(Order.created_at >= start_date)
        if end_date:
            query = query.filter(Order.created_at <= end_date)

        stats = OrderStats()
        revenue_orders = 0
        for status, count, amount in query.group_by(Order.status).all():
            stats.status_breakdown[status] = count
            stats.total_orders += count
            if status != OrderStatus.CANCELLED.value:
                stats.total_revenue += int(amount)
                revenue_orders += count

        if revenue_orders:
            stats.average_order_value = round(stats.total_revenue / revenue_orders, 2)
        return stats


# Global order service instance
order_service = OrderService()
