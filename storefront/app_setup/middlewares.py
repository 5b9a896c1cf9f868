"""
Middlewares transverses de l’API checkout.
- register_basic_middlewares: CORS, TrustedHost et en-têtes X-Forwarded-* du proxy.
- register_security_middleware: en-têtes de sécurité, aussi sur les réponses d’erreur.
- register_no_store_middleware: pas de cache pour les jetons, paiements et commandes.
L’ordre d’ajout compte: le dernier middleware ajouté s’exécute en premier.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
try:
    from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
except ImportError:
    ProxyHeadersMiddleware = None
from storefront.config import COOKIE_SECURE, CORS_ORIGINS, ALLOWED_HOSTS

NO_STORE_PREFIXES = ("/api/v1/payments", "/api/v1/orders")

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "no-referrer",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

def register_basic_middlewares(app: FastAPI) -> None:
    # Le front (formulaire carte) appelle l'API depuis une autre origine en dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Idempotency-Key"],
    )
    hosts = list(ALLOWED_HOSTS)
    if "*" in CORS_ORIGINS:
        hosts.append("*")
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=hosts)
    if ProxyHeadersMiddleware:
        app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

def register_security_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if COOKIE_SECURE:
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        return response

def register_no_store_middleware(app: FastAPI) -> None:
    """
    Empêche la mise en cache des réponses sensibles:
    - jeton client passerelle, résultat de paiement, commandes de l’acheteur.
    """
    @app.middleware("http")
    async def no_store_for_checkout(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
            response.headers["Pragma"] = "no-cache"
        return response
