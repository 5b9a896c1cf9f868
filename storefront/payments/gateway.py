"""
Port passerelle de paiement: contrat commun aux adaptateurs (Stripe, callbacks, fake).

Les deux opérations sont awaitables; une erreur de la passerelle est toujours
levée sous forme de GatewayError avec le message d'origine.
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import Request


class GatewayError(Exception):
    """Erreur remontée par la passerelle (réseau, refus, configuration)."""

    def __init__(self, message: str, *, payload: Any = None):
        super().__init__(message)
        self.message = message
        self.payload = payload


class PaymentGateway(ABC):

    @abstractmethod
    async def generate_client_token(self) -> Dict[str, Any]:
        """Jeton client court terme pour collecter la carte côté navigateur."""

    @abstractmethod
    async def sale(
        self,
        amount: Decimal,
        payment_method_nonce: str,
        *,
        submit_for_settlement: bool = True,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Soumet une vente; retourne le résultat de transaction (dict opaque)."""


def build_gateway(kind: Optional[str] = None) -> PaymentGateway:
    """
    Construit la passerelle configurée (PAYMENT_GATEWAY).
    - "stripe": StripeGateway (clé STRIPE_SECRET_KEY)
    - "fake": FakeGateway en mémoire (dev/démo)
    """
    from storefront.config import PAYMENT_GATEWAY

    kind = (kind or PAYMENT_GATEWAY or "stripe").lower()
    if kind == "fake":
        from .fake_gateway import FakeGateway
        return FakeGateway()
    if kind == "stripe":
        from .stripe_client import StripeGateway
        return StripeGateway()
    raise ValueError(f"Unknown payment gateway: {kind}")


def get_gateway(request: Request) -> PaymentGateway:
    """Dépendance FastAPI: passerelle construite par create_app() (app.state)."""
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise RuntimeError("Payment gateway is not configured")
    return gateway
