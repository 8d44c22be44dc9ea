"""
Payment service: Xendit invoices for orders and webhook reconciliation
"""

import json
import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from . import errors
from .config import settings
from .models import Order, OrderPayment, OrderStatus, PaymentStatus, new_id, utcnow
from .order_service import CLOSED_STATUSES, order_service
from .xendit_client import CreateInvoiceParams, InvoiceLine, XenditClient

logger = logging.getLogger(__name__)

# Xendit invoice status -> local payment status
WEBHOOK_STATUS_MAP = {
    "PAID": PaymentStatus.PAID.value,
    "SETTLED": PaymentStatus.PAID.value,
    "EXPIRED": PaymentStatus.EXPIRED.value,
    "FAILED": PaymentStatus.FAILED.value,
}


def parse_gateway_time(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 from the gateway -> naive UTC"""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _payment_link(order_id: str, payment: OrderPayment) -> Dict[str, Any]:
    return {
        "id": order_id,
        "payment_id": payment.xendit_invoice_id,
        "payment_url": payment.payment_url,
        "expiry_date": payment.expires_at,
    }


class PaymentService:
    """Creates payment links and applies gateway callbacks"""

    async def create_payment(self, db: Session, client: XenditClient, order_id: str) -> Dict[str, Any]:
        order = order_service.find_order_by_id(db, order_id)
        if order.status in CLOSED_STATUSES:
            raise errors.bad_request(f"Cannot pay for order with status: {order.status}")

        latest = order_service.latest_payment(db, order_id)
        if latest and latest.status == PaymentStatus.PAID.value:
            raise errors.bad_request("Order is already paid")

        now = utcnow()
        pending = (
            db.query(OrderPayment)
            .filter(
                OrderPayment.order_id == order_id,
                OrderPayment.status == PaymentStatus.PENDING.value,
                OrderPayment.deleted_at.is_(None),
            )
            .order_by(OrderPayment.created_at.desc(), OrderPayment.id.desc())
            .all()
        )
        for payment in pending:
            if payment.payment_url and payment.expires_at and payment.expires_at > now:
                return _payment_link(order_id, payment)
            payment.status = PaymentStatus.EXPIRED.value
            payment.updated_at = now

        items = order_service.get_order_items(db, order_id)
        params = CreateInvoiceParams(
            external_id=f"ORDER-{order_id}-{int(time.time() * 1000)}",
            amount=order.total_amount,
            description=f"Payment for Order #{order_id[-8:]}",
            customer_name=order.customer_name or "Customer",
            customer_phone=order.customer_phone,
            items=[InvoiceLine(name=i.menu_name, quantity=i.quantity, price=i.unit_price) for i in items],
            success_redirect_url=f"{settings.payment_success_url}?order_id={order_id}",
            failure_redirect_url=f"{settings.payment_failed_url}?order_id={order_id}",
        )

        try:
            invoice = await client.create_invoice(params)
        except errors.AppError:
            db.commit()  # keep stale payments marked expired
            raise

        payment = OrderPayment(
            id=new_id(),
            order_id=order_id,
            xendit_invoice_id=invoice["id"],
            payment_url=invoice["invoice_url"],
            amount=order.total_amount,
            status=PaymentStatus.PENDING.value,
            expires_at=parse_gateway_time(invoice.get("expiry_date")),
        )
        db.add(payment)
        db.commit()

        logger.info("Created invoice %s for order %s", payment.xendit_invoice_id, order_id)
        return _payment_link(order_id, payment)

    def verify_webhook_token(self, callback_token: Optional[str]) -> bool:
        if not settings.xendit_webhook_token:
            logger.warning("XENDIT_WEBHOOK_TOKEN not configured")
            return False
        return secrets.compare_digest(callback_token or "", settings.xendit_webhook_token)

    def handle_webhook(self, db: Session, callback_token: Optional[str], payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.verify_webhook_token(callback_token):
            logger.error("Invalid webhook token")
            raise errors.unauthorized("Unauthorized")

        invoice_id = payload.get("id")
        status = (payload.get("status") or "").upper()
        logger.info(
            "Xendit webhook received: invoice=%s external_id=%s status=%s",
            invoice_id, payload.get("external_id"), status
        )

        payment = (
            db.query(OrderPayment)
            .filter(OrderPayment.xendit_invoice_id == invoice_id, OrderPayment.deleted_at.is_(None))
            .first()
        ) if invoice_id else None
        if not payment:
            raise errors.not_found("Payment record")

        order = db.query(Order).filter(Order.id == payment.order_id).first()
        if not order:
            raise errors.order_not_found(payment.order_id)

        now = utcnow()
        payment.webhook_data = json.dumps(payload)
        payment.updated_at = now

        new_status = WEBHOOK_STATUS_MAP.get(status)
        if new_status:
            payment.status = new_status
        if new_status == PaymentStatus.PAID.value:
            payment.payment_method = payload.get("payment_method")
            payment.paid_at = parse_gateway_time(payload.get("paid_at")) or now

        if order.status == OrderStatus.PENDING.value:
            if new_status == PaymentStatus.PAID.value:
                order.status = OrderStatus.ACCEPTED.value
                order.updated_at = now
            elif new_status in (PaymentStatus.EXPIRED.value, PaymentStatus.FAILED.value):
                order.status = OrderStatus.CANCELLED.value
                order.updated_at = now

        db.commit()
        logger.info(
            "Payment %s for order %s -> %s (order %s)",
            payment.id, order.id, payment.status, order.status
        )
        return {
            "order_id": order.id,
            "payment_id": payment.id,
            "status": payment.status,
            "order_status": order.status,
        }


# Global payment service instance
payment_service = PaymentService()
