from typing import Any, Dict, List, Optional
import logging
from . import repository
from storefront.payments import repository as payments_repository

logger = logging.getLogger(__name__)

def _hydrate(orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Remplace les ids produits par {id, name, price} quand le catalogue les connaît.
    - Un id absent du catalogue (produit supprimé) reste {id} seul.
    - Catalogue injoignable: les commandes sont renvoyées sans enrichissement.
    """
    ids = {str(pid) for o in orders for pid in (o.get("products") or [])}
    try:
        catalog = payments_repository.get_products_map(ids) if ids else {}
    except Exception:
        logger.warning("orders.service._hydrate: catalog unavailable, returning raw product ids")
        catalog = {}
    hydrated = []
    for o in orders:
        products = [catalog.get(str(pid)) or {"id": pid} for pid in (o.get("products") or [])]
        hydrated.append({**o, "products": products})
    return hydrated

def get_buyer_orders(buyer_id: str) -> List[Dict[str, Any]]:
    return _hydrate(repository.list_buyer_orders(buyer_id))

def get_all_orders(limit: int = 100) -> List[Dict[str, Any]]:
    return _hydrate(repository.list_all_orders(limit=limit))

def change_order_status(order_id: str, status: str) -> Optional[Dict[str, Any]]:
    updated = repository.update_order_status(order_id, status)
    if updated:
        logger.info("orders.service.change_order_status order=%s status=%s", order_id, status)
    return updated
