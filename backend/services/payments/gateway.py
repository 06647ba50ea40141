"""
Payment gateway adapters.

The escrow logic only talks to PaymentGateway; the concrete class is chosen
with the PAYMENT_GATEWAY_CLASS setting so tests can plug in a fake.
"""

import logging
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

MERCADOPAGO_API_URL = "https://api.mercadopago.com"


class PaymentGatewayError(Exception):
    """Raised when the payment provider rejects or fails a request."""
    pass


class PaymentGateway:
    """Interface every gateway adapter implements."""

    def create_preference(
        self,
        *,
        reference: str,
        title: str,
        description: str,
        amount,
        currency: str,
        back_url: str,
        notification_url: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Returns {"id", "init_point", "sandbox_init_point"}."""
        raise NotImplementedError

    def get_payment(self, payment_id) -> Dict[str, Any]:
        """Returns the provider's payment document ("status", "external_reference", ...)."""
        raise NotImplementedError

    def search_payments(self, reference: str) -> List[Dict[str, Any]]:
        """Payments for an external reference, newest first."""
        raise NotImplementedError


class MercadoPagoGateway(PaymentGateway):
    """Checkout Pro preferences and payment lookups over the MercadoPago REST API."""

    def __init__(self, access_token: Optional[str] = None, timeout: float = 30.0):
        self.access_token = access_token or settings.MP_ACCESS_TOKEN
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        if not self.access_token:
            raise PaymentGatewayError("MP_ACCESS_TOKEN is not configured")

        try:
            with httpx.Client(timeout=self.timeout) as http_client:
                response = http_client.request(
                    method,
                    f"{MERCADOPAGO_API_URL}{path}",
                    headers=self._headers(),
                    **kwargs,
                )
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"MercadoPago request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.error("MercadoPago %s %s -> %s: %s", method, path, response.status_code, response.text)
            raise PaymentGatewayError(f"MercadoPago returned {response.status_code}")

        return response.json()

    def create_preference(
        self,
        *,
        reference,
        title,
        description,
        amount,
        currency,
        back_url,
        notification_url,
        metadata=None,
    ):
        body = {
            "items": [{
                "id": reference,
                "title": title,
                "description": description,
                "quantity": 1,
                "unit_price": float(amount),
                "currency_id": currency,
            }],
            "back_urls": {
                "success": f"{back_url}?payment=success",
                "failure": f"{back_url}?payment=failure",
                "pending": f"{back_url}?payment=pending",
            },
            "auto_return": "approved",
            "external_reference": reference,
            "notification_url": notification_url,
            "metadata": metadata or {},
        }
        data = self._request("POST", "/checkout/preferences", json=body)
        return {
            "id": data.get("id"),
            "init_point": data.get("init_point"),
            "sandbox_init_point": data.get("sandbox_init_point"),
        }

    def get_payment(self, payment_id):
        return self._request("GET", f"/v1/payments/{payment_id}")

    def search_payments(self, reference):
        data = self._request(
            "GET",
            "/v1/payments/search",
            params={
                "external_reference": reference,
                "sort": "date_created",
                "criteria": "desc",
            },
        )
        return data.get("results") or []


_gateway: Optional[PaymentGateway] = None


def get_payment_gateway() -> PaymentGateway:
    """Gateway instance configured by PAYMENT_GATEWAY_CLASS (cached per class path)."""
    global _gateway
    path = settings.PAYMENT_GATEWAY_CLASS
    if _gateway is None or getattr(_gateway, "_class_path", None) != path:
        _gateway = import_string(path)()
        _gateway._class_path = path
    return _gateway
