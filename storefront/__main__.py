"""
Lancement local de l'API checkout: `python -m storefront`.

Variables lues:
- HOST / PORT: adresse d'écoute (0.0.0.0:8000)
- UVICORN_RELOAD: reload auto ("1", "true", "yes")
- LOG_LEVEL: niveau uvicorn, appliqué aussi aux loggers storefront.*
"""
import logging
import os
import uvicorn


def main() -> None:
    log_level = os.environ.get("LOG_LEVEL", "info").lower()
    logging.basicConfig(level=log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "storefront.asgi:app",
        host=os.environ.get("HOST", "0.0.0.0"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=log_level,
    )


if __name__ == "__main__":
    main()
