"""
Xendit payment gateway client (invoice API)
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from . import errors
from .config import settings

logger = logging.getLogger(__name__)


@dataclass
class InvoiceLine:
    name: str
    quantity: int
    price: int


@dataclass
class CreateInvoiceParams:
    external_id: str
    amount: int
    description: str
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    payer_email: Optional[str] = None
    invoice_duration: Optional[int] = None
    success_redirect_url: Optional[str] = None
    failure_redirect_url: Optional[str] = None
    items: Optional[List[InvoiceLine]] = None


def to_international(phone: str) -> str:
    """0812... / 62812... / +62812... -> +62812..."""
    phone = phone.replace(" ", "").replace("-", "")
    if phone.startswith("+"):
        return phone
    if phone.startswith("62"):
        return f"+{phone}"
    return f"+62{phone[1:] if phone.startswith('0') else phone}"


class XenditClient:
    """Thin async wrapper over the Xendit invoice endpoints"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key if api_key is not None else settings.xendit_api_key
        self.base_url = (base_url or settings.xendit_base_url).rstrip("/")
        self.transport = transport
        self.timeout = timeout

    def _client(self) -> httpx.AsyncClient:
        # Basic auth: API key as user name, empty password
        return httpx.AsyncClient(
            base_url=self.base_url,
            auth=(self.api_key, ""),
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
        )

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error("Xendit %s %s failed: %s", method, path, e)
            raise errors.payment_gateway(f"Xendit API unreachable: {e}") from e

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = {}
            error_code = body.get("error_code", "Unknown")
            message = body.get("message", f"HTTP {response.status_code}")
            logger.error("Xendit %s %s returned %s: %s", method, path, error_code, message)
            raise errors.payment_gateway(f"Xendit API Error: {error_code} - {message}")

        return response.json()

    async def create_invoice(self, params: CreateInvoiceParams) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "external_id": params.external_id,
            "amount": params.amount,
            "payer_email": params.payer_email or f"{params.external_id}@ngantri.app",
            "description": params.description,
            "invoice_duration": params.invoice_duration or settings.invoice_duration_seconds,
            "success_redirect_url": params.success_redirect_url or settings.payment_success_url,
            "failure_redirect_url": params.failure_redirect_url or settings.payment_failed_url,
            "currency": "IDR",
            "customer": {"given_names": params.customer_name or "Customer"},
        }
        if params.customer_phone:
            payload["customer"]["mobile_number"] = to_international(params.customer_phone)
        if params.items:
            payload["items"] = [
                {"name": line.name, "quantity": line.quantity, "price": line.price}
                for line in params.items
            ]

        return await self._request("POST", "/v2/invoices", json=payload)

    async def get_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/v2/invoices/{invoice_id}")

    async def expire_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/invoices/{invoice_id}/expire!")


def get_xendit_client() -> XenditClient:
    """Dependency for FastAPI; overridden in tests"""
    return XenditClient()
