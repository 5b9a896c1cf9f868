# storefront.config
"""
Configuration centrale de l'API checkout.

- Charge BASE_DIR/.env (les valeurs du fichier priment sur l'environnement)
- Supabase (catalogue, commandes, tentatives), Stripe, passerelle, tarification
- Sécurité HTTP: cookie secure, CORS, hôtes autorisés
"""
from pathlib import Path
from typing import List
import os
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(dotenv_path=BASE_DIR / ".env", override=True)

def _clean_env(v: str) -> str:
    """Retire espaces, guillemets et backticks copiés depuis un dashboard; jamais None."""
    return (v or "").strip().strip("'").strip('"').strip("`")

def _env(*names: str, default: str = "") -> str:
    for name in names:
        value = _clean_env(os.getenv(name) or "")
        if value:
            return value
    return default

def _csv(name: str, default: str) -> List[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]

def _normalize_url(url: str) -> str:
    # URL de projet collée sans schéma ou avec un slash final
    if url and not url.startswith("http"):
        url = "https://" + url
    return url.rstrip("/")

# Supabase
SUPABASE_URL = _normalize_url(_env("SUPABASE_URL"))
SUPABASE_ANON = _env("SUPABASE_ANON_KEY", "SUPABASE_KEY")
SUPABASE_SERVICE_KEY = _env("SUPABASE_SERVICE_KEY")

# Sécurité HTTP
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() == "true"
CORS_ORIGINS = _csv("CORS_ORIGINS", "*")
ALLOWED_HOSTS = _csv("ALLOWED_HOSTS", "localhost,127.0.0.1")

# Stripe
STRIPE_SECRET_KEY = _env("STRIPE_SECRET_KEY")
STRIPE_CURRENCY = _env("STRIPE_CURRENCY", default="usd").lower()

# Passerelle: "stripe" (prod) ou "fake" (dev/démo)
PAYMENT_GATEWAY = _env("PAYMENT_GATEWAY", default="stripe").lower()

# Tarification du panier: "catalog" (prix relus en base) ou "client" (prix du panier validés)
CHECKOUT_PRICING = _env("CHECKOUT_PRICING", default="catalog").lower()
