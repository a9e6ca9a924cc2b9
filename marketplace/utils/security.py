from typing import Any, Dict
import logging

from fastapi import Depends, Request

from marketplace.checkout.errors import Unauthenticated

logger = logging.getLogger(__name__)

COOKIE_NAME = "sb_access"

def get_access_token(request: Request) -> str:
    # Hybride: priorité au Bearer, fallback cookie
    token = ""
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(COOKIE_NAME) or ""
    return token

def get_current_user(request: Request) -> Dict[str, Any]:
    token = get_access_token(request)
    if not token:
        raise Unauthenticated()

    try:
        # Délégué au service Auth
        from marketplace.auth.service import get_user_from_token as _svc_get_user_from_token
        user = _svc_get_user_from_token(token)
    except Exception:
        logger.info("auth.get_current_user token rejected", exc_info=True)
        raise Unauthenticated()
    if not user.get("id"):
        raise Unauthenticated()
    return user

def require_user(user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
    return user
