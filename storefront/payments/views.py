import logging
from typing import Any, Dict

from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse

from storefront.utils.security import require_user
from storefront.utils.rate_limit import optional_rate_limit
from storefront.payments import service as payments_service
from storefront.payments.cart import CheckoutValidationError
from storefront.payments.gateway import PaymentGateway, get_gateway
from storefront.payments.service import (
    CheckoutConflictError,
    PaymentProcessingError,
    TokenGenerationError,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])

TOKEN_ERROR_MESSAGE = "Error generating payment token"
PAYMENT_ERROR_MESSAGE = "Error processing payment"

def _failure(status_code: int, message: str, error: str | None = None) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        body["error"] = error
    return JSONResponse(status_code=status_code, content=body)

# module storefront.payments.views
@router.get("/token")
async def payment_token(gateway: PaymentGateway = Depends(get_gateway)):
    """
    Jeton client de la passerelle (collecte carte côté navigateur).
    - Succès: payload passerelle renvoyé tel quel (200)
    - Erreur: 500 {success:false, message, error:<message d'origine>}
    """
    try:
        token = await payments_service.issue_client_token(gateway)
    except TokenGenerationError as e:
        return _failure(500, TOKEN_ERROR_MESSAGE, e.message)
    return JSONResponse(token)

@router.post("/payment", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def checkout_payment(
    request: Request,
    user: Dict[str, Any] = Depends(require_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    """
    Paiement du panier de l’utilisateur authentifié.
    - Entrée JSON: { "nonce": "<payment method>", "cart": [ {id, name, price, quantity}, ... ] }
    - En-tête optionnel Idempotency-Key: rejeu sans double débit
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Réponses:
      400 validation (nonce, panier), 409 clé d'idempotence en conflit,
      200 {"success": true, "message": "Payment done"},
      500 {"success": false, "message": "Error processing payment", "error": "..."}
    """
    try:
        try:
            body = await request.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            body = {}

        await payments_service.process_payment(
            gateway=gateway,
            buyer_id=user.get("id"),
            nonce=body.get("nonce"),
            cart=body.get("cart"),
            idempotency_key=request.headers.get("Idempotency-Key"),
        )
        return JSONResponse({"success": True, "message": "Payment done"})
    except CheckoutValidationError as e:
        return _failure(400, e.message)
    except CheckoutConflictError as e:
        return _failure(409, e.message)
    except PaymentProcessingError as e:
        return _failure(500, PAYMENT_ERROR_MESSAGE, e.message)
    except Exception as e:
        logger.exception("Erreur checkout_payment")
        return _failure(500, PAYMENT_ERROR_MESSAGE, str(e))
