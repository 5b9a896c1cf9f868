"""
Cas d'usage 'payments': jeton client et checkout.

Checkout en deux phases autour de la passerelle:
  1) tentative 'submitted' enregistrée avant la vente (clé d'idempotence,
     clé passerelle distincte à chaque essai: <clé>:<attempt_no>)
  2) vente -> commande -> tentative 'confirmed'
Une vente capturée dont la commande n'a pas pu être écrite reste tracée
('capture_unrecorded', résultat passerelle conservé) et peut être rejouée
avec la même clé sans nouveau débit.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from storefront import config
from storefront.orders import repository as orders_repository
from . import cart as cart_logic
from . import repository
from .gateway import GatewayError, PaymentGateway

logger = logging.getLogger(__name__)


class TokenGenerationError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PaymentProcessingError(Exception):
    """Échec passerelle ou persistance: enveloppe 500 'Error processing payment'."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class OrderNotRecordedError(PaymentProcessingError):
    """Vente capturée par la passerelle mais commande non enregistrée."""

    def __init__(self, message: str, *, idempotency_key: str, payment: Any):
        super().__init__(message)
        self.idempotency_key = idempotency_key
        self.payment = payment


class CheckoutConflictError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _message(e: BaseException) -> str:
    return getattr(e, "message", None) or str(e) or e.__class__.__name__

def _transaction_id(result: Any) -> Optional[str]:
    if isinstance(result, dict):
        return (result.get("transaction") or {}).get("id")
    return getattr(getattr(result, "transaction", None), "id", None)

# --- Jeton client ---

async def issue_client_token(gateway: PaymentGateway) -> Dict[str, Any]:
    """
    Demande un jeton client à la passerelle, sans paramètre appelant.
    - Retourne le payload passerelle tel quel.
    - Soulève TokenGenerationError avec le message d'origine en cas d'échec.
    """
    try:
        return await gateway.generate_client_token()
    except Exception as e:
        logger.exception("payments.service.issue_client_token failed")
        raise TokenGenerationError(_message(e)) from e

# --- Checkout ---

def price_cart(cart: List[Dict[str, Any]], pricing: Optional[str] = None) -> Decimal:
    """
    Montant autoritatif du panier (somme des prix de ligne).
    - "catalog": prix relus dans 'products' par id
    - "client": prix du panier, validés (ni absent, ni négatif, ni non numérique)
    """
    pricing = (pricing or config.CHECKOUT_PRICING or "catalog").lower()
    if pricing == "client":
        prices = cart_logic.client_line_prices(cart)
    else:
        products = repository.get_products_map(cart_logic.product_ids(cart))
        prices = cart_logic.catalog_line_prices(cart, products)
    return cart_logic.cart_total(prices)

def _ensure_successful(result: Any) -> None:
    if not result:
        raise GatewayError("Payment gateway returned no result")
    # dict (Stripe, fake) ou objet résultat des clients à callbacks (result.success)
    if isinstance(result, dict):
        success, message = result.get("success"), result.get("message")
    else:
        success, message = getattr(result, "success", None), getattr(result, "message", None)
    if success is False:
        raise GatewayError(message or "Transaction declined", payload=result)

def _finalize(idempotency_key: str, buyer_id: str, products: List[str], payment: Any) -> Dict[str, Any]:
    try:
        order = orders_repository.create_order(buyer=buyer_id, products=products, payment=payment)
    except Exception as e:
        msg = _message(e)
        logger.error(
            "payments.checkout capture_unrecorded key=%s buyer=%s transaction=%s error=%s",
            idempotency_key, buyer_id, _transaction_id(payment), msg,
        )
        repository.mark_attempt(idempotency_key, repository.CAPTURE_UNRECORDED, payment=payment, error=msg)
        raise OrderNotRecordedError(msg, idempotency_key=idempotency_key, payment=payment) from e

    repository.mark_attempt(idempotency_key, repository.CONFIRMED, payment=payment, order_id=order.get("id"), error=None)
    logger.info("payments.checkout confirmed key=%s buyer=%s order=%s", idempotency_key, buyer_id, order.get("id"))
    return order

def _resume(attempt: Dict[str, Any], buyer_id: str, amount: str, products: List[str]) -> Optional[Dict[str, Any]]:
    """
    Rejoue une clé d'idempotence déjà connue.
    Retourne la commande si la tentative est (ou devient) confirmée,
    None si une nouvelle vente doit partir (tentative 'failed').
    """
    if attempt.get("buyer") != buyer_id or attempt.get("amount") != amount:
        raise CheckoutConflictError("Idempotency key already used")

    status = attempt.get("status")
    key = attempt["idempotency_key"]
    if status == repository.CONFIRMED:
        order = orders_repository.get_order(attempt.get("order_id")) or {"id": attempt.get("order_id")}
        logger.info("payments.checkout replay key=%s order=%s", key, order.get("id"))
        return order
    if status == repository.SUBMITTED:
        raise CheckoutConflictError("Payment already in progress")
    if status == repository.CAPTURE_UNRECORDED:
        # Débit déjà capturé: on ne retente que l'écriture de la commande
        logger.warning("payments.checkout recovering key=%s transaction=%s", key, _transaction_id(attempt.get("payment")))
        return _finalize(key, buyer_id, attempt.get("products") or products, attempt.get("payment"))
    return None

async def process_payment(
    *,
    gateway: PaymentGateway,
    buyer_id: str,
    nonce: Any,
    cart: Any,
    idempotency_key: Optional[str] = None,
    pricing: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Traite un paiement {nonce, cart} pour un acheteur authentifié.
    Étapes:
      1) Valider la requête (nonce, panier) -> CheckoutValidationError (400)
      2) Calculer le montant autoritatif (price_cart)
      3) Rejouer la clé d'idempotence si le client en fournit une
      4) Phase 1: tentative 'submitted' (insert unique, ou ré-armement conditionnel d'une tentative 'failed')
         -> CheckoutConflictError (409) si une autre requête tient la clé
      5) Vente passerelle -> PaymentProcessingError si erreur (aucune commande)
      6) Phase 2: commande + tentative 'confirmed' (OrderNotRecordedError si l'écriture échoue)
    Retourne la commande enregistrée.
    """
    items = cart_logic.validate_payment_request(nonce, cart)
    products = cart_logic.product_ids(items)
    total = price_cart(items, pricing)
    amount = f"{total:.2f}"

    key = idempotency_key or uuid4().hex
    existing = repository.get_attempt(key) if idempotency_key else None
    try:
        if existing:
            order = _resume(existing, buyer_id, amount, products)
            if order is not None:
                return order
            attempt = repository.rearm_failed_attempt(existing)
        else:
            attempt = repository.open_attempt(idempotency_key=key, buyer=buyer_id, amount=amount, products=products)
    except repository.AttemptConflictError as e:
        raise CheckoutConflictError("Payment already in progress") from e

    try:
        result = await gateway.sale(
            total,
            nonce,
            submit_for_settlement=True,
            idempotency_key=repository.gateway_idempotency_key(attempt),
        )
        _ensure_successful(result)
    except Exception as e:
        msg = _message(e)
        logger.warning("payments.checkout gateway failed key=%s buyer=%s amount=%s error=%s", key, buyer_id, amount, msg)
        repository.mark_attempt(key, repository.FAILED, error=msg)
        raise PaymentProcessingError(msg) from e

    return _finalize(key, buyer_id, products, result)
