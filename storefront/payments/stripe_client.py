"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.

Correspondance avec le contrat de checkout:
- jeton client  -> SetupIntent (client_secret pour Stripe Elements)
- nonce         -> identifiant PaymentMethod (pm_...) collecté côté navigateur
- vente         -> PaymentIntent confirmé immédiatement (montant en plus petite unité de la devise)
Le SDK Stripe est bloquant: les appels passent par le threadpool Starlette.
"""
import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Optional

import stripe
from starlette.concurrency import run_in_threadpool

from .gateway import GatewayError, PaymentGateway

logger = logging.getLogger(__name__)

# Statuts PaymentIntent considérés comme une vente réussie
SUCCESS_STATUSES = {"succeeded", "requires_capture", "processing"}

# module storefront.payments.stripe_client
def require_stripe(api_key: Optional[str] = None) -> stripe:
    """
    Prépare et retourne le module stripe prêt à l’emploi.
    - Configure stripe.api_key via api_key ou STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if not api_key:
        from storefront.config import STRIPE_SECRET_KEY
        api_key = STRIPE_SECRET_KEY
    if api_key:
        stripe.api_key = api_key
    return stripe

# Devises sans sous-unité chez Stripe: le montant part tel quel (600 JPY -> 600)
ZERO_DECIMAL_CURRENCIES = {
    "bif", "clp", "djf", "gnf", "jpy", "kmf", "krw", "mga",
    "pyg", "rwf", "ugx", "vnd", "vuv", "xaf", "xof", "xpf",
}

def to_minor_units(amount: Decimal, currency: str = "usd") -> int:
    """Montant décimal -> plus petite unité de la devise (arrondi au plus proche, demi vers le haut)."""
    factor = 1 if (currency or "").lower() in ZERO_DECIMAL_CURRENCIES else 100
    return int((Decimal(amount) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject -> dict (to_dict_recursive absent des versions récentes)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)

def _stripe_message(e: Exception) -> str:
    return getattr(e, "user_message", None) or str(e)


class StripeGateway(PaymentGateway):

    def __init__(self, api_key: Optional[str] = None, currency: Optional[str] = None):
        from storefront.config import STRIPE_CURRENCY
        self.api_key = api_key
        self.currency = (currency or STRIPE_CURRENCY or "usd").lower()

    def _create_setup_intent(self) -> Dict[str, Any]:
        client = require_stripe(self.api_key)
        intent = client.SetupIntent.create(usage="on_session")
        return {"clientToken": intent["client_secret"], "success": True}

    def _create_payment_intent(
        self,
        amount: Decimal,
        payment_method_nonce: str,
        submit_for_settlement: bool,
        idempotency_key: Optional[str],
    ) -> Dict[str, Any]:
        client = require_stripe(self.api_key)
        params: Dict[str, Any] = {
            "amount": to_minor_units(amount, self.currency),
            "currency": self.currency,
            "payment_method": payment_method_nonce,
            "confirm": True,
            "capture_method": "automatic" if submit_for_settlement else "manual",
            "automatic_payment_methods": {"enabled": True, "allow_redirects": "never"},
        }
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        intent = _as_dict(client.PaymentIntent.create(**params))

        status = intent.get("status") or ""
        if status not in SUCCESS_STATUSES:
            raise GatewayError(f"Transaction not completed (status={status})", payload=intent)
        return {
            "success": True,
            "transaction": {
                "id": intent.get("id"),
                "amount": f"{Decimal(amount):.2f}",
                "currencyIsoCode": (intent.get("currency") or self.currency).upper(),
                "status": status,
                "paymentMethod": payment_method_nonce,
            },
        }

    async def generate_client_token(self) -> Dict[str, Any]:
        try:
            return await run_in_threadpool(self._create_setup_intent)
        except stripe.StripeError as e:
            logger.warning("stripe.generate_client_token failed: %s", e)
            raise GatewayError(_stripe_message(e), payload=e) from e

    async def sale(
        self,
        amount: Decimal,
        payment_method_nonce: str,
        *,
        submit_for_settlement: bool = True,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        try:
            return await run_in_threadpool(
                self._create_payment_intent,
                amount,
                payment_method_nonce,
                submit_for_settlement,
                idempotency_key,
            )
        except stripe.StripeError as e:
            logger.warning("stripe.sale failed amount=%s: %s", amount, e)
            raise GatewayError(_stripe_message(e), payload=e) from e
