"""
Payments - escrow checkout, confirmation and release.
"""

from .escrow import (
    calculate_amounts,
    create_checkout,
    handle_payment_webhook,
    confirm_payment,
    release_payment,
    get_payment_status,
    list_payment_history,
)
from .gateway import (
    PaymentGateway,
    PaymentGatewayError,
    MercadoPagoGateway,
    get_payment_gateway,
)

__all__ = [
    "calculate_amounts",
    "create_checkout",
    "handle_payment_webhook",
    "confirm_payment",
    "release_payment",
    "get_payment_status",
    "list_payment_history",
    "PaymentGateway",
    "PaymentGatewayError",
    "MercadoPagoGateway",
    "get_payment_gateway",
]
