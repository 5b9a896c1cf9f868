from typing import Any, Dict, Optional
from fastapi import Request, HTTPException, Depends

# Cookie de session Supabase posé par le front (fallback du header Bearer)
COOKIE_NAME = "sb_access"

def token_from_request(request: Request) -> Optional[str]:
    """Jeton d'accès: header `Authorization: Bearer` prioritaire, sinon cookie sb_access."""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
        if token:
            return token
    return request.cookies.get(COOKIE_NAME) or None

def get_current_user(request: Request) -> Dict[str, Any]:
    token = token_from_request(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    # Import tardif: le service auth tire le client Supabase
    from storefront.auth import service as auth_service
    try:
        user = auth_service.get_user_from_token(token)
    except Exception:
        user = {}
    if not user.get("id"):
        raise HTTPException(status_code=401, detail="Session expired, please sign in again")
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user

def require_admin(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    if user.get("role") != "admin":
        raise HTTPException(status_code=403, detail="Forbidden")
    return user
