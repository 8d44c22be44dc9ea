"""
Merchant service: registration, login, profile and availability
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import errors
from .auth import hash_password, verify_password
from .models import Menu, Merchant, MerchantProfileUpdate, MerchantRegister, utcnow
from .order_service import order_service
from .pagination import Page, paginate
from .validation import validate_merchant_phone

logger = logging.getLogger(__name__)

MERCHANT_NUMBER_ATTEMPTS = 3


class MerchantService:
    """Handles business logic for merchant operations"""

    def register(self, db: Session, data: MerchantRegister) -> Merchant:
        validate_merchant_phone(data.phone_number)
        name = data.name.strip()
        if not name:
            raise errors.validation("Merchant name is required")

        if self.find_by_phone_number(db, data.phone_number):
            raise errors.conflict("Phone number is already registered")

        password_hash = hash_password(data.password)
        for attempt in range(1, MERCHANT_NUMBER_ATTEMPTS + 1):
            merchant = Merchant(
                phone_number=data.phone_number,
                password_hash=password_hash,
                merchant_number=self.next_merchant_number(db),
                name=name,
                description=data.description or None,
                image_url=data.image_url or None,
                is_available=True,
            )
            try:
                db.add(merchant)
                db.commit()
            except IntegrityError as e:
                db.rollback()
                if "merchant_number" not in str(e.orig):
                    raise errors.conflict("Phone number is already registered") from e
                # Another registration took this number between allocation and commit
                logger.warning(
                    "Merchant number %d already taken (attempt %d)", merchant.merchant_number, attempt
                )
                continue

            logger.info("Registered merchant #%d %s", merchant.merchant_number, merchant.name)
            return merchant

        raise errors.conflict("Could not allocate a merchant number, please try again")

    def login(self, db: Session, phone_number: str, password: str) -> Merchant:
        merchant = self.find_by_phone_number(db, phone_number)
        if not merchant or not verify_password(password, merchant.password_hash):
            raise errors.invalid_credentials()

        if not merchant.is_available:
            raise errors.merchant_inactive(merchant.name)

        return merchant

    def find_by_id(self, db: Session, merchant_id: str) -> Merchant:
        merchant = (
            db.query(Merchant)
            .filter(Merchant.id == merchant_id, Merchant.deleted_at.is_(None))
            .first()
        )
        if not merchant:
            raise errors.merchant_not_found(merchant_id)
        return merchant

    def find_by_phone_number(self, db: Session, phone_number: str) -> Optional[Merchant]:
        return (
            db.query(Merchant)
            .filter(Merchant.phone_number == phone_number, Merchant.deleted_at.is_(None))
            .first()
        )

    def next_merchant_number(self, db: Session) -> int:
        # Soft-deleted merchants keep their number, so count them too
        current = db.query(func.coalesce(func.max(Merchant.merchant_number), 0)).scalar()
        return int(current) + 1

    def list_merchants(
        self,
        db: Session,
        cursor: Optional[str] = None,
        limit: Optional[int] = None,
        is_available: Optional[bool] = None,
    ) -> Page:
        query = db.query(Merchant).filter(Merchant.deleted_at.is_(None))
        if is_available is not None:
            query = query.filter(Merchant.is_available == is_available)
        return paginate(query, Merchant.id, cursor, limit)

    def update_profile(self, db: Session, merchant_id: str, data: MerchantProfileUpdate) -> Merchant:
        merchant = self.find_by_id(db, merchant_id)
        for key, value in data.model_dump(exclude_unset=True).items():
            setattr(merchant, key, value)
        merchant.updated_at = utcnow()
        db.commit()
        return merchant

    def change_password(self, db: Session, merchant_id: str, current_password: str, new_password: str):
        merchant = self.find_by_id(db, merchant_id)
        if not verify_password(current_password, merchant.password_hash):
            raise errors.bad_request("Current password is incorrect")

        merchant.password_hash = hash_password(new_password)
        merchant.updated_at = utcnow()
        db.commit()

    def set_availability(self, db: Session, merchant_id: str, is_available: bool) -> Merchant:
        merchant = self.find_by_id(db, merchant_id)
        merchant.is_available = is_available
        merchant.updated_at = utcnow()
        db.commit()
        logger.info("Merchant %s availability -> %s", merchant_id, is_available)
        return merchant

    def soft_delete(self, db: Session, merchant_id: str):
        merchant = self.find_by_id(db, merchant_id)
        merchant.deleted_at = utcnow()
        merchant.updated_at = merchant.deleted_at
        db.commit()

    def get_stats(self, db: Session, merchant_id: str) -> dict:
        self.find_by_id(db, merchant_id)
        stats = order_service.get_order_stats(db, merchant_id=merchant_id)
        active_menu_items = (
            db.query(func.count(Menu.id))
            .filter(
                Menu.merchant_id == merchant_id,
                Menu.deleted_at.is_(None),
                Menu.is_available.is_(True),
            )
            .scalar()
        )

        result = stats.as_dict()
        result["activeMenuItems"] = active_menu_items
        result["pendingOrders"] = stats.status_breakdown.get("pending", 0)
        return result


# Global merchant service instance
merchant_service = MerchantService()
