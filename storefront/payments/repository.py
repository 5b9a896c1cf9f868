"""
Accès aux données pour la feature 'payments'.
- products: lecture du catalogue pour re-tarifer le panier
- checkout_attempts: trace du checkout en deux phases (clé d'idempotence)
"""
from typing import Any, Dict, Iterable, List, Optional
import logging
from postgrest.exceptions import APIError
import storefront.infra.supabase_client as supabase_client
from storefront.orders.models import utcnow_iso

logger = logging.getLogger(__name__)

PRODUCTS_TABLE = "products"
ATTEMPTS_TABLE = "checkout_attempts"

# Code Postgres d'une violation de contrainte unique
UNIQUE_VIOLATION = "23505"


class AttemptConflictError(Exception):
    """Une autre requête détient déjà cette clé d'idempotence."""

# Statuts d'une tentative de checkout
SUBMITTED = "submitted"
FAILED = "failed"
CAPTURE_UNRECORDED = "capture_unrecorded"
CONFIRMED = "confirmed"

# module storefront.payments.repository
def fetch_products_by_ids(ids: List[str]) -> List[dict]:
    """
    Récupère les produits par leurs IDs (table 'products').
    - Retourne [] si ids vide; laisse remonter les erreurs de connexion
      (un catalogue injoignable n'est pas un produit inconnu).
    """
    if not ids:
        return []
    try:
        res = (
            supabase_client.get_supabase()
            .table(PRODUCTS_TABLE)
            .select("id, name, price")
            .in_("id", sorted({str(i) for i in ids}))
            .execute()
        )
    except Exception:
        logger.exception("payments.repository.fetch_products_by_ids failed ids=%s", ids)
        raise
    return res.data or []

def get_products_map(ids: Iterable[str]) -> Dict[str, Dict[str, Any]]:
    """
    Retourne un dict {id: produit} à partir d’une liste d’IDs.
    """
    products = fetch_products_by_ids(list(ids))
    return {str(p.get("id")): p for p in products}

def get_attempt(idempotency_key: str) -> Optional[Dict[str, Any]]:
    res = (
        supabase_client.get_service_supabase()
        .table(ATTEMPTS_TABLE)
        .select("*")
        .eq("idempotency_key", idempotency_key)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if rows else None

def _pg_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if not code and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return code

def open_attempt(*, idempotency_key: str, buyer: str, amount: str, products: List[str]) -> Dict[str, Any]:
    """
    Phase 1: enregistre la tentative 'submitted' AVANT l'appel passerelle.
    - insert simple: la contrainte unique sur idempotency_key arbitre deux requêtes concurrentes
    - AttemptConflictError si la clé existe déjà
    - lève toute autre erreur: aucune vente ne doit partir sans trace
    """
    now = utcnow_iso()
    row = {
        "idempotency_key": idempotency_key,
        "attempt_no": 1,
        "buyer": buyer,
        "amount": amount,
        "products": list(products),
        "status": SUBMITTED,
        "payment": None,
        "order_id": None,
        "error": None,
        "created_at": now,
        "updated_at": now,
    }
    try:
        res = supabase_client.get_service_supabase().table(ATTEMPTS_TABLE).insert(row).execute()
    except APIError as e:
        if _pg_code(e) == UNIQUE_VIOLATION:
            raise AttemptConflictError(idempotency_key) from e
        raise
    rows = res.data or []
    return rows[0] if rows else row

def rearm_failed_attempt(attempt: Dict[str, Any]) -> Dict[str, Any]:
    """
    Repasse une tentative 'failed' en 'submitted' avec un nouveau numéro d'essai.
    Mise à jour conditionnelle (status = failed ET attempt_no inchangé):
    si une autre requête l'a ré-armée entre-temps, AttemptConflictError.
    """
    key = attempt["idempotency_key"]
    current = int(attempt.get("attempt_no") or 1)
    data = {
        "status": SUBMITTED,
        "attempt_no": current + 1,
        "payment": None,
        "order_id": None,
        "error": None,
        "updated_at": utcnow_iso(),
    }
    res = (
        supabase_client.get_service_supabase()
        .table(ATTEMPTS_TABLE)
        .update(data)
        .eq("idempotency_key", key)
        .eq("status", FAILED)
        .eq("attempt_no", current)
        .execute()
    )
    rows = res.data or []
    if not rows:
        raise AttemptConflictError(key)
    return rows[0]

def gateway_idempotency_key(attempt: Dict[str, Any]) -> str:
    """Clé transmise à la passerelle: une par essai, pour qu'un refus mémorisé ne soit pas rejoué."""
    return f"{attempt['idempotency_key']}:{int(attempt.get('attempt_no') or 1)}"

def mark_attempt(idempotency_key: str, status: str, **fields: Any) -> bool:
    """
    Phase 2: fait avancer la tentative (failed / capture_unrecorded / confirmed).
    - Best-effort: retourne False et journalise si l'écriture échoue.
    """
    data = {"status": status, "updated_at": utcnow_iso(), **fields}
    try:
        res = (
            supabase_client.get_service_supabase()
            .table(ATTEMPTS_TABLE)
            .update(data)
            .eq("idempotency_key", idempotency_key)
            .execute()
        )
        return bool(res.data)
    except Exception:
        logger.exception("payments.repository.mark_attempt failed key=%s status=%s", idempotency_key, status)
        return False
