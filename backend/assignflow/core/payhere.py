# core/payhere.py
"""PayHere checkout signing and callback verification."""
import hashlib
import hmac
import re
import time
from typing import Mapping, Optional, Tuple

from assignflow.core.config import settings
from assignflow.core.errors import GatewayNotConfigured
from assignflow.utils.rounding import round_half_up

ORDER_PATTERNS = {
    "assignment": re.compile(r"^ASSIGN_(.+)_(\d+)$"),
    "paysheet": re.compile(r"^PAYSHEET_(.+)_(\d+)$"),
}

SUCCESS_STATUS_CODE = "2"


def _md5_upper(value: str) -> str:
    return hashlib.md5(value.encode("utf-8")).hexdigest().upper()


def checkout_hash(merchant_id: str, order_id: str, amount, currency: str, secret: str) -> str:
    return _md5_upper(f"{merchant_id}{order_id}{amount}{currency}{secret}")


def callback_signature(params: Mapping[str, str], secret: str) -> str:
    return _md5_upper(
        f"{params.get('merchant_id', '')}{params.get('order_id', '')}"
        f"{params.get('payhere_amount', '')}{params.get('payhere_currency', '')}"
        f"{params.get('status_code', '')}{secret}"
    )


def verify_callback(params: Mapping[str, str], secret: str) -> bool:
    received = params.get("md5sig") or ""
    return hmac.compare_digest(callback_signature(params, secret), received.upper())


def parse_order_id(order_id: str) -> Optional[Tuple[str, str]]:
    """('assignment' | 'paysheet', id) or None for an unknown format."""
    for kind, pattern in ORDER_PATTERNS.items():
        match = pattern.match(order_id or "")
        if match:
            return kind, match.group(1)
    return None


def new_order_id(kind: str, entity_id: str) -> str:
    prefix = "ASSIGN" if kind == "assignment" else "PAYSHEET"
    return f"{prefix}_{entity_id}_{int(time.time() * 1000)}"


def to_gateway_amount(usd: float) -> int:
    return int(round_half_up(usd * settings.PAYHERE_USD_RATE))


def checkout_fields(order_id: str, amount: int, items: str, customer: dict) -> dict:
    """Form fields the frontend posts to the PayHere checkout page."""
    if not settings.PAYHERE_MERCHANT_ID or not settings.PAYHERE_SECRET:
        raise GatewayNotConfigured()

    currency = settings.PAYHERE_CURRENCY
    return {
        "merchant_id": settings.PAYHERE_MERCHANT_ID,
        "order_id": order_id,
        "amount": amount,
        "currency": currency,
        "hash": checkout_hash(settings.PAYHERE_MERCHANT_ID, order_id, amount, currency, settings.PAYHERE_SECRET),
        "items": items,
        "first_name": customer.get("name") or "Customer",
        "last_name": "",
        "email": customer.get("email") or "",
        "phone": customer.get("phone") or "",
        "address": "",
        "city": "",
        "country": "Sri Lanka",
        "checkout_url": settings.PAYHERE_CHECKOUT_URL,
        "return_url": f"{settings.BACKEND_URL}/api/payments/payhere/success",
        "cancel_url": f"{settings.BACKEND_URL}/api/payments/payhere/cancel",
        "notify_url": f"{settings.BACKEND_URL}/api/payments/payhere/callback",
    }
