"""Passerelle de paiement factice, configurable (dev/démo et tests).

Aucun appel externe: chaque appel est enregistré dans `calls`, le succès ou
l'échec se règle à chaud via configure().
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .gateway import GatewayError, PaymentGateway


class FakeGateway(PaymentGateway):

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: List[Dict[str, Any]] = []

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def sales(self) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["method"] == "sale"]

    async def generate_client_token(self) -> Dict[str, Any]:
        self.calls.append({"method": "generate_client_token"})
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)
        return {"clientToken": f"fake_token_{uuid4().hex[:12]}", "success": True}

    async def sale(
        self,
        amount: Decimal,
        payment_method_nonce: str,
        *,
        submit_for_settlement: bool = True,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.calls.append({
            "method": "sale",
            "amount": amount,
            "paymentMethodNonce": payment_method_nonce,
            "options": {"submitForSettlement": submit_for_settlement},
            "idempotency_key": idempotency_key,
        })
        if not self.should_succeed:
            raise GatewayError(self.failure_reason)
        return {
            "success": True,
            "transaction": {
                "id": f"fake_txn_{uuid4().hex[:12]}",
                "amount": f"{Decimal(amount):.2f}",
                "status": "submitted_for_settlement" if submit_for_settlement else "authorized",
            },
        }
