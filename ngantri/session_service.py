"""
Buyer sessions and their shopping carts
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from . import errors
from .models import BuyerSession, CartItem, CartItemAdd, Menu, Merchant, utcnow

logger = logging.getLogger(__name__)


class SessionService:
    """Anonymous buyer sessions and cart management"""

    def create_session(self, db: Session, table_number: Optional[int] = None) -> BuyerSession:
        session = BuyerSession(table_number=table_number)
        db.add(session)
        db.commit()
        logger.info("Opened buyer session %s (table %s)", session.id, table_number)
        return session

    def find_session(self, db: Session, session_id: str) -> BuyerSession:
        session = (
            db.query(BuyerSession)
            .filter(BuyerSession.id == session_id, BuyerSession.deleted_at.is_(None))
            .first()
        )
        if not session:
            raise errors.not_found("Session", session_id)
        return session

    def touch(self, session: BuyerSession):
        session.updated_at = utcnow()

    # Cart

    def _available_menu(self, db: Session, menu_id: str) -> Menu:
        menu = db.query(Menu).filter(Menu.id == menu_id, Menu.deleted_at.is_(None)).first()
        if not menu:
            raise errors.menu_not_found(menu_id)
        if not menu.is_available:
            raise errors.menu_unavailable(menu.name)

        merchant = (
            db.query(Merchant)
            .filter(Merchant.id == menu.merchant_id, Merchant.deleted_at.is_(None))
            .first()
        )
        if not merchant:
            raise errors.merchant_not_found(menu.merchant_id)
        if not merchant.is_available:
            raise errors.merchant_inactive(merchant.name)
        return menu

    def _active_cart_items(self, db: Session, session_id: str):
        return db.query(CartItem).filter(
            CartItem.session_id == session_id, CartItem.deleted_at.is_(None)
        )

    def _upsert(self, db: Session, session_id: str, item: CartItemAdd, accumulate: bool) -> CartItem:
        menu = self._available_menu(db, item.menu_id)

        existing = (
            self._active_cart_items(db, session_id)
            .filter(CartItem.menu_id == menu.id)
            .first()
        )
        if existing:
            quantity = existing.quantity + item.quantity if accumulate else item.quantity
            if quantity > 99:
                raise errors.validation("Quantity too large")
            existing.quantity = quantity
            existing.price_snapshot = menu.price
            if item.notes is not None:
                existing.notes = item.notes
            existing.updated_at = utcnow()
            return existing

        cart_item = CartItem(
            session_id=session_id,
            merchant_id=menu.merchant_id,
            menu_id=menu.id,
            quantity=item.quantity,
            price_snapshot=menu.price,
            notes=item.notes,
        )
        db.add(cart_item)
        db.flush()
        return cart_item

    def add_cart_item(self, db: Session, session_id: str, item: CartItemAdd) -> CartItem:
        session = self.find_session(db, session_id)
        cart_item = self._upsert(db, session_id, item, accumulate=True)
        self.touch(session)
        db.commit()
        return cart_item

    def bulk_add_cart_items(
        self, db: Session, session_id: str, items: List[CartItemAdd], replace: bool = False
    ) -> List[CartItem]:
        """Upsert several items at once; with replace the cart is emptied first"""
        session = self.find_session(db, session_id)
        now = utcnow()
        try:
            if replace:
                self._active_cart_items(db, session_id).update(
                    {"deleted_at": now, "updated_at": now}, synchronize_session=False
                )
            results = [self._upsert(db, session_id, item, accumulate=False) for item in items]
            self.touch(session)
            db.commit()
        except errors.AppError:
            db.rollback()
            raise
        return results

    def find_cart_item(self, db: Session, session_id: str, item_id: str) -> CartItem:
        cart_item = (
            self._active_cart_items(db, session_id)
            .filter(CartItem.id == item_id)
            .first()
        )
        if not cart_item:
            raise errors.not_found("Cart item", item_id)
        return cart_item

    def update_cart_item(
        self, db: Session, session_id: str, item_id: str, quantity: int, notes: Optional[str] = None
    ) -> CartItem:
        cart_item = self.find_cart_item(db, session_id, item_id)
        cart_item.quantity = quantity
        if notes is not None:
            cart_item.notes = notes
        cart_item.updated_at = utcnow()
        db.commit()
        return cart_item

    def remove_cart_item(self, db: Session, session_id: str, item_id: str):
        cart_item = self.find_cart_item(db, session_id, item_id)
        cart_item.deleted_at = utcnow()
        db.commit()

    def clear_cart(self, db: Session, session_id: str, merchant_id: Optional[str] = None) -> int:
        self.find_session(db, session_id)
        now = utcnow()
        query = self._active_cart_items(db, session_id)
        if merchant_id:
            query = query.filter(CartItem.merchant_id == merchant_id)
        count = query.update({"deleted_at": now, "updated_at": now}, synchronize_session=False)
        db.commit()
        return count

    def get_cart(self, db: Session, session_id: str) -> Dict:
        """Cart grouped by merchant with per-merchant and overall totals"""
        self.find_session(db, session_id)
        rows = (
            db.query(CartItem, Menu.name, Menu.image_url, Merchant.name)
            .join(Menu, Menu.id == CartItem.menu_id)
            .join(Merchant, Merchant.id == CartItem.merchant_id)
            .filter(CartItem.session_id == session_id, CartItem.deleted_at.is_(None))
            .order_by(CartItem.id)
            .all()
        )

        merchants: Dict[str, Dict] = {}
        for cart_item, menu_name, menu_image_url, merchant_name in rows:
            group = merchants.setdefault(cart_item.merchant_id, {
                "merchant_id": cart_item.merchant_id,
                "merchant_name": merchant_name,
                "items": [],
                "total": 0,
                "item_count": 0,
            })
            subtotal = cart_item.quantity * cart_item.price_snapshot
            group["items"].append({
                "id": cart_item.id,
                "menu_id": cart_item.menu_id,
                "menu_name": menu_name,
                "menu_image_url": menu_image_url,
                "quantity": cart_item.quantity,
                "price_snapshot": cart_item.price_snapshot,
                "subtotal": subtotal,
                "notes": cart_item.notes,
            })
            group["total"] += subtotal
            group["item_count"] += cart_item.quantity

        return {
            "session_id": session_id,
            "merchants": list(merchants.values()),
            "total": sum(group["total"] for group in merchants.values()),
            "item_count": sum(group["item_count"] for group in merchants.values()),
        }


# Global session service instance
session_service = SessionService()
