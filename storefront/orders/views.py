# module storefront.orders.views

"""Endpoints de l’user story Commandes.
- GET /api/v1/orders: commandes de l’utilisateur connecté.
- GET /api/v1/orders/all: toutes les commandes (admin).
- PUT /api/v1/orders/{order_id}/status: changement de statut (admin).
Les commandes sont créées uniquement par le checkout (payments).
"""
from typing import Any, Dict, List
import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.utils.security import require_user, require_admin
from .models import OrderStatusUpdate
from . import service as orders_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Orders API"])


@router.get("", response_model=List[Dict[str, Any]])
def my_orders(user: Dict[str, Any] = Depends(require_user)):
    """Commandes de l’acheteur courant, plus récentes d’abord."""
    user_id = user.get("id")
    if not user_id:
        raise HTTPException(status_code=403, detail="Invalid user")
    return orders_service.get_buyer_orders(user_id)


@router.get("/all", response_model=List[Dict[str, Any]], dependencies=[Depends(require_admin)])
def all_orders(limit: int = Query(100, ge=1, le=500)):
    return orders_service.get_all_orders(limit=limit)


@router.put("/{order_id}/status", dependencies=[Depends(require_admin)])
def update_order_status(order_id: str, body: OrderStatusUpdate):
    """Met à jour le statut d’une commande.
    - 422 si le statut ne fait pas partie de l’énumération (validation pydantic)
    - 404 si la commande n’existe pas, 500 si l’écriture échoue
    """
    try:
        updated = orders_service.change_order_status(order_id, body.status.value)
    except Exception as e:
        logger.exception("Erreur update_order_status")
        raise HTTPException(status_code=500, detail=f"Error updating order: {e}")
    if not updated:
        raise HTTPException(status_code=404, detail="Order not found")
    return updated
