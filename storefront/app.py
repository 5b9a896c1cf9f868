# module storefront.app
from typing import Optional
from fastapi import FastAPI

from storefront.app_setup.middlewares import (
    register_basic_middlewares,
    register_no_store_middleware,
    register_security_middleware,
)
from storefront.app_setup.exception_handlers import register_exception_handlers
from storefront.app_setup.lifespan import lifespan as app_lifespan
from storefront.app_setup.routers import register_routers
from storefront.payments.gateway import PaymentGateway, build_gateway

def create_app(gateway: Optional[PaymentGateway] = None) -> FastAPI:
    """
    Crée et configure l’instance FastAPI de l’application.
    Étapes et ordre:
      1) passerelle de paiement: injectée ou construite selon PAYMENT_GATEWAY, stockée dans app.state
      2) register_basic_middlewares: CORS, TrustedHost, ProxyHeaders.
      3) register_security_middleware / register_no_store_middleware: en-têtes de réponse.
      4) register_exception_handlers: JSON pour HTTPException et erreurs non gérées.
      5) register_routers: payments, orders, health.
    Retourne:
      - FastAPI: l’application prête à être servie (ASGI).
    """
    app = FastAPI(title="Storefront API", lifespan=app_lifespan)
    app.state.payment_gateway = gateway or build_gateway()
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_no_store_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    return app

# App globale
app = create_app()
