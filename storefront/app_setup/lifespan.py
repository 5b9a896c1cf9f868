"""
Lifespan FastAPI: ressources partagées au démarrage.
- Passerelle de paiement: déjà posée sur app.state par create_app(), seulement journalisée ici.
- Rate limiting du checkout: FastAPILimiter sur Redis.
  Variables:
  - DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS=1: pas d'init (tests)
  - USE_FAKE_REDIS_FOR_TESTS=1: fakeredis à la place de Redis
  - RATE_LIMIT_REDIS_URL: URL Redis (défaut redis://127.0.0.1:6379/0)
  - LOCAL_RATE_LIMIT_FALLBACK=1: compteur mémoire si Redis est injoignable
"""
import os
import logging
import redis.asyncio as redis
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi_limiter import FastAPILimiter

try:
    from fakeredis.aioredis import FakeRedis  # tests only
except ImportError:
    FakeRedis = None

logger = logging.getLogger("uvicorn.error")

DEFAULT_REDIS_URL = "redis://127.0.0.1:6379/0"


def _redis_connection():
    if os.getenv("USE_FAKE_REDIS_FOR_TESTS") == "1":
        if FakeRedis is None:
            raise RuntimeError("USE_FAKE_REDIS_FOR_TESTS=1 requires the fakeredis package")
        return FakeRedis(decode_responses=True)
    url = os.getenv("RATE_LIMIT_REDIS_URL", DEFAULT_REDIS_URL)
    return redis.from_url(url, encoding="utf-8", decode_responses=True)


async def _init_rate_limiter() -> bool:
    """Retourne l'état effectif du rate limiting (True = actif, Redis ou mémoire)."""
    if os.getenv("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS") == "1":
        logger.info("checkout rate limit: init skipped (DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS)")
        return False
    try:
        await FastAPILimiter.init(_redis_connection())
    except Exception as e:
        if os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1":
            logger.warning("checkout rate limit: Redis unavailable (%s), using in-memory counters", e)
            return True
        logger.warning("checkout rate limit: disabled, Redis unavailable (%s)", e)
        return False
    logger.info("checkout rate limit: enabled (redis)")
    return True


@asynccontextmanager
async def lifespan(app: FastAPI):
    gateway = getattr(app.state, "payment_gateway", None)
    logger.info("payment gateway: %s", type(gateway).__name__)
    app.state.rate_limit_enabled = await _init_rate_limiter()
    yield
