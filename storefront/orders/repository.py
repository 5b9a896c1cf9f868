"""
Accès aux données pour la feature 'orders' (table 'orders').
Écritures via le client service-role; create_order lève en cas d'échec
(le checkout doit connaître le message d'erreur exact).
"""
from typing import Any, Dict, List, Optional
import logging
import storefront.infra.supabase_client as supabase_client
from .models import new_order_row, utcnow_iso

logger = logging.getLogger(__name__)

ORDERS_TABLE = "orders"


class OrderPersistenceError(Exception):
    """La commande n'a pas pu être enregistrée."""


def create_order(*, buyer: str, products: List[str], payment: Dict[str, Any]) -> Dict[str, Any]:
    """
    Insère une commande et retourne la ligne enregistrée.
    - Soulève OrderPersistenceError (message d'origine conservé) si l'insert échoue.
    """
    row = new_order_row(buyer=buyer, products=products, payment=payment)
    try:
        res = supabase_client.get_service_supabase().table(ORDERS_TABLE).insert(row).execute()
    except Exception as e:
        logger.exception("orders.repository.create_order failed buyer=%s", buyer)
        raise OrderPersistenceError(str(e)) from e
    rows = res.data or []
    if not rows:
        raise OrderPersistenceError("Order insert returned no row")
    return rows[0]

def get_order(order_id: Optional[str]) -> Optional[Dict[str, Any]]:
    if not order_id:
        return None
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("id", order_id)
            .limit(1)
            .execute()
        )
    except Exception:
        logger.exception("orders.repository.get_order failed order_id=%s", order_id)
        return None
    rows = res.data or []
    return rows[0] if rows else None

def list_buyer_orders(buyer: str) -> List[Dict[str, Any]]:
    """Commandes d'un acheteur, plus récentes d'abord. [] en cas d'erreur."""
    if not buyer:
        return []
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .eq("buyer", buyer)
            .order("created_at", desc=True)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_buyer_orders failed buyer=%s", buyer)
        return []

def list_all_orders(limit: int = 100) -> List[Dict[str, Any]]:
    """Toutes les commandes (admin), plus récentes d'abord."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ORDERS_TABLE)
            .select("*")
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return res.data or []
    except Exception:
        logger.exception("orders.repository.list_all_orders failed")
        return []

def update_order_status(order_id: str, status: str) -> Optional[Dict[str, Any]]:
    """Met à jour le statut (et updated_at). None si la commande n'existe pas."""
    res = (
        supabase_client.get_service_supabase()
        .table(ORDERS_TABLE)
        .update({"status": status, "updated_at": utcnow_iso()})
        .eq("id", order_id)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None
