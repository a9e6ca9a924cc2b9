from typing import Any, Dict

from .repository import get_user_from_access_token as _repo_get_user_from_token

def get_user_from_token(access_token: str) -> Dict[str, Any]:
    """Normalise user issu de supabase.auth.get_user(access_token):
    - Retourne {id, email, metadata, token}
    - token est conservé pour ouvrir un client Supabase au nom de l'acheteur (RLS)
    """
    raw = _repo_get_user_from_token(access_token)
    return {
        "id": raw.get("id"),
        "email": raw.get("email"),
        "metadata": raw.get("user_metadata") or {},
        "token": access_token,
    }
