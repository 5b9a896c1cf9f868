"""
Module 'payments' (feature-first): point d'entrée public.
Réunit logique panier, port passerelle et adaptateurs, repository BD, et services.
"""

from .cart import CheckoutValidationError, validate_payment_request, product_ids, parse_price, cart_total
from .gateway import GatewayError, PaymentGateway, build_gateway, get_gateway
from .callbacks import CallbackGateway, await_callback
from .fake_gateway import FakeGateway
from .service import (
    CheckoutConflictError,
    OrderNotRecordedError,
    PaymentProcessingError,
    TokenGenerationError,
    issue_client_token,
    price_cart,
    process_payment,
)

__all__ = [
    # cart
    "CheckoutValidationError",
    "validate_payment_request",
    "product_ids",
    "parse_price",
    "cart_total",
    # gateway
    "GatewayError",
    "PaymentGateway",
    "build_gateway",
    "get_gateway",
    "CallbackGateway",
    "await_callback",
    "FakeGateway",
    # services
    "CheckoutConflictError",
    "OrderNotRecordedError",
    "PaymentProcessingError",
    "TokenGenerationError",
    "issue_client_token",
    "price_cart",
    "process_payment",
]
