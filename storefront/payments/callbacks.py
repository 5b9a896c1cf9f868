"""
Adaptateur pour les clients de paiement à callbacks `(error, result)`.

Expose le client derrière le port awaitable PaymentGateway: le service de
checkout reste du code séquentiel, sans callbacks imbriqués.
"""
import asyncio
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from .gateway import GatewayError, PaymentGateway


def _error_message(error: Any) -> str:
    if isinstance(error, BaseException):
        return str(error)
    if isinstance(error, dict):
        return str(error.get("message") or error)
    return str(getattr(error, "message", None) or error)


async def await_callback(fn: Callable[..., Any], *args: Any) -> Any:
    """
    Appelle fn(*args, callback) et attend le premier appel de callback(error, result).
    - error non nul -> GatewayError(message d'origine)
    - le callback peut être invoqué depuis un autre thread
    - une exception levée par fn de façon synchrone est propagée telle quelle
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _settle(error: Any, result: Any) -> None:
        if future.done():
            return
        if error:
            future.set_exception(GatewayError(_error_message(error), payload=error))
        else:
            future.set_result(result)

    def callback(error: Any = None, result: Any = None) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            _settle(error, result)
        else:
            loop.call_soon_threadsafe(_settle, error, result)

    fn(*args, callback)
    return await future


class CallbackGateway(PaymentGateway):
    """Client attendu: client.client_token.generate(params, cb) et client.transaction.sale(params, cb)."""

    def __init__(self, client: Any):
        self.client = client

    async def generate_client_token(self) -> Dict[str, Any]:
        return await await_callback(self.client.client_token.generate, {})

    async def sale(
        self,
        amount: Decimal,
        payment_method_nonce: str,
        *,
        submit_for_settlement: bool = True,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            "amount": f"{amount:.2f}",
            "paymentMethodNonce": payment_method_nonce,
            "options": {"submitForSettlement": submit_for_settlement},
        }
        return await await_callback(self.client.transaction.sale, params)
