"""
Rate limiting optionnel des routes sensibles (paiement).

- Redis (fastapi-limiter) quand le lifespan a pu l'initialiser.
- Compteur mémoire par processus avec LOCAL_RATE_LIMIT_FALLBACK=1 (dev, tests).
- Rien sinon: une panne Redis ne doit pas bloquer les paiements.
Clé: hash du jeton de session (Bearer ou cookie) sinon IP, puis chemin.
"""
from typing import Dict, Any, List
from urllib.parse import urlparse
from fastapi import Request, Response, HTTPException
from fastapi_limiter import FastAPILimiter
from fastapi_limiter.depends import RateLimiter
import os
import time
import hashlib
from storefront.utils.security import token_from_request

def _memory_fallback_enabled() -> bool:
    return os.getenv("LOCAL_RATE_LIMIT_FALLBACK") == "1"

def _user_key_from_request(req: Request) -> str:
    token = token_from_request(req)
    if token:
        digest = hashlib.sha256(token.encode("utf-8")).hexdigest()[:16]
        return f"user:{digest}:{req.url.path}"
    ip = req.client.host if req.client else "local"
    return f"ip:{ip}:{req.url.path}"

def _memory_hit(request: Request, times: int, seconds: int) -> None:
    now = time.time()
    store: Dict[str, List[float]] = getattr(request.app.state, "_rl_store", None) or {}
    key = _user_key_from_request(request)
    window = [t for t in store.get(key, []) if now - t < seconds]
    if len(window) >= times:
        raise HTTPException(status_code=429, detail="Too Many Requests")
    window.append(now)
    store[key] = window
    request.app.state._rl_store = store

def optional_rate_limit(times: int, seconds: int):
    async def _identifier(req: Request) -> str:
        return _user_key_from_request(req)

    limiter = RateLimiter(times=times, seconds=seconds, identifier=_identifier)

    async def _dep(request: Request, response: Response):
        if _memory_fallback_enabled():
            _memory_hit(request, times, seconds)
            return
        if getattr(request.app.state, "rate_limit_enabled", None) is not True:
            return
        try:
            await limiter(request, response)
        except HTTPException:
            raise
        except Exception:
            # Redis perdu en cours de route: on laisse passer
            return
    return _dep

def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    enabled = getattr(request.app.state, "rate_limit_enabled", None)
    ready = getattr(FastAPILimiter, "redis", None) is not None

    info: Dict[str, Any] = {
        "enabled": None if enabled is None else bool(enabled),
        "ready": ready,
        "backend": "redis" if ready else None,
    }
    if _memory_fallback_enabled():
        info["backend"] = "memory"
    elif ready and os.getenv("RATE_LIMIT_REDIS_URL"):
        p = urlparse(os.getenv("RATE_LIMIT_REDIS_URL"))
        info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
    return info
