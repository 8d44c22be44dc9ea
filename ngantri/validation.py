"""
Input validation helpers shared by the services
"""

import re
from typing import Optional

from . import errors

INDONESIAN_PHONE_RE = re.compile(r"^(\+62|62|0)?[0-9]{9,13}$")
E164_PHONE_RE = re.compile(r"^\+[1-9]\d{1,14}$")

PLACEHOLDER_IDS = {"undefined", "null"}

MAX_ITEM_QUANTITY = 100


def validate_indonesian_phone(phone_number: str) -> str:
    """Validate a buyer phone number (0812..., +62812..., 62812... or 812...)"""
    clean_phone = re.sub(r"[-\s]", "", phone_number or "")

    if not INDONESIAN_PHONE_RE.match(clean_phone):
        raise errors.validation("Invalid Indonesian phone number format")

    digits_only = re.sub(r"\D", "", clean_phone)
    if len(digits_only) < 10 or len(digits_only) > 15:
        raise errors.validation("Invalid Indonesian phone number format")

    return clean_phone


def validate_merchant_phone(phone_number: str) -> str:
    if not E164_PHONE_RE.match(phone_number or ""):
        raise errors.validation("Invalid phone number format")
    return phone_number


def is_placeholder_id(value: Optional[str]) -> bool:
    """True for ids a client sent without filling in"""
    if value is None:
        return True
    stripped = value.strip()
    return not stripped or stripped in PLACEHOLDER_IDS


def require_text(value: Optional[str], message: str) -> str:
    if not value or not value.strip():
        raise errors.validation(message)
    return value.strip()


def validate_item_bounds(quantity, unit_price):
    """Quantity is a positive integer up to 100, unit price a positive number"""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise errors.validation("Quantity must be a positive integer")

    if quantity > MAX_ITEM_QUANTITY:
        raise errors.validation(f"Maximum quantity per item is {MAX_ITEM_QUANTITY}")

    if isinstance(unit_price, bool) or not isinstance(unit_price, (int, float)) or unit_price <= 0:
        raise errors.validation("Unit price must be a positive number")
