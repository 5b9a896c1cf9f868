# module storefront.orders.models
"""Modèle des commandes (table 'orders').
- OrderStatus: cycle de vie, valeurs stockées telles quelles en base.
- new_order_row: document initial d'une commande créée au checkout.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List

from pydantic import BaseModel


class OrderStatus(str, Enum):
    NOT_PROCESS = "Not Process"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "deliverd"
    CANCEL = "cancel"


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()

def new_order_row(*, buyer: str, products: List[str], payment: Dict[str, Any]) -> Dict[str, Any]:
    """Statut initial fixe (Not Process), indépendant du succès du paiement."""
    now = utcnow_iso()
    return {
        "buyer": buyer,
        "products": list(products),
        "payment": payment,
        "status": OrderStatus.NOT_PROCESS.value,
        "created_at": now,
        "updated_at": now,
    }
