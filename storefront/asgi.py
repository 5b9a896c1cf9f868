"""
Entrée ASGI pour les process managers: `uvicorn storefront.asgi:app`.
La passerelle de paiement est choisie par PAYMENT_GATEWAY au moment de create_app().
"""
from storefront.app import app

__all__ = ["app"]
