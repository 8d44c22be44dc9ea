"""
Pydantic models for batch ordering
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, StrictInt
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BatchOrderItem(_CamelModel):
    menu_id: str
    menu_name: str
    # No coercion from "3", 2.0 or true
    quantity: StrictInt
    unit_price: StrictInt
    menu_image_url: Optional[str] = None


class MerchantOrderGroup(_CamelModel):
    merchant_name: str = ""
    items: List[BatchOrderItem] = []


class BatchOrderRequest(_CamelModel):
    session_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
    orders_by_merchant: Dict[str, MerchantOrderGroup] = {}


class BatchOrderResult(_CamelModel):
    merchant_id: str
    merchant_name: str
    order_id: str
    total_amount: int


class OrderCreateRequest(_CamelModel):
    """Single-merchant order"""
    session_id: Optional[str] = None
    merchant_id: Optional[str] = None
    items: List[BatchOrderItem] = []
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    notes: Optional[str] = None
