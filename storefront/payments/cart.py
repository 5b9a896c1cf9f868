"""
Logique panier pure (pas de passerelle, pas de DB).
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List


class CheckoutValidationError(Exception):
    """Requête de paiement invalide (faute client, 400, aucun effet de bord)."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# module storefront.payments.cart
def validate_payment_request(nonce: Any, cart: Any) -> List[Dict[str, Any]]:
    """
    Vérifie la requête {nonce, cart} dans l'ordre, la première erreur l'emporte:
    1) nonce absent/vide, 2) cart absent, 3) cart vide, 4) cart mal formé.
    Retourne le panier (liste de lignes) si valide.
    """
    if not nonce:
        raise CheckoutValidationError("Payment nonce is required")
    if isinstance(cart, (list, tuple)):
        if len(cart) == 0:
            raise CheckoutValidationError("Shopping cart cannot be empty")
    elif not cart:
        raise CheckoutValidationError("Shopping cart is required")
    else:
        raise CheckoutValidationError("Shopping cart is invalid")
    for item in cart:
        if not isinstance(item, dict) or not str(item.get("id") or "").strip():
            raise CheckoutValidationError("Shopping cart is invalid")
    return list(cart)

def product_ids(cart: List[Dict[str, Any]]) -> List[str]:
    """Identifiants des lignes, dans l'ordre du panier (doublons conservés)."""
    return [str(item.get("id")).strip() for item in cart]

def parse_price(value: Any) -> Decimal:
    """
    Convertit un prix (int|float|str|Decimal) en Decimal.
    - Lève ValueError si absent, non numérique, négatif ou non fini.
    - Les booléens sont refusés (True n'est pas un prix).
    """
    if value is None or isinstance(value, bool):
        raise ValueError("missing price")
    try:
        price = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid price {value!r}")
    if not price.is_finite() or price < 0:
        raise ValueError(f"invalid price {value!r}")
    return price

def client_line_prices(cart: List[Dict[str, Any]]) -> List[Decimal]:
    """Prix annoncés par le client, une ligne = une unité."""
    prices: List[Decimal] = []
    for item in cart:
        try:
            prices.append(parse_price(item.get("price")))
        except ValueError:
            raise CheckoutValidationError(f"Invalid price for cart item {item.get('id')}")
    return prices

def catalog_line_prices(cart: List[Dict[str, Any]], products_by_id: Dict[str, Dict[str, Any]]) -> List[Decimal]:
    """
    Prix relus depuis le catalogue pour chaque ligne.
    - Soulève CheckoutValidationError si l'id est inconnu du catalogue.
    - Un prix catalogue illisible est une erreur de données, pas du client: ValueError.
    """
    prices: List[Decimal] = []
    for pid in product_ids(cart):
        product = products_by_id.get(pid)
        if not product:
            raise CheckoutValidationError(f"Unknown product in cart: {pid}")
        prices.append(parse_price(product.get("price")))
    return prices

def cart_total(prices: List[Decimal]) -> Decimal:
    """Somme des prix de ligne (indépendante de l'ordre)."""
    return sum(prices, Decimal("0"))
