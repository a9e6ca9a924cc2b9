"""
Accès aux données pour la feature 'checkout'.

Toutes les fonctions reçoivent le client Supabase à utiliser:
- client utilisateur (RLS) pour le checkout: get_user_supabase(token)
- client service-role pour le webhook: get_service_supabase()
Lectures et RPC: lèvent PersistenceError / ReconciliationError.
Écritures: retournent les lignes insérées (ou None) / un booléen, après log.
"""
from typing import Any, Dict, List, Optional
import logging

from .errors import PersistenceError, ReconciliationError

logger = logging.getLogger(__name__)

# module marketplace.checkout.repository
CART_ITEMS_SELECT = (
    "id, cart_id, tenant_id, product_id, quantity, unit_price, currency_code, metadata, "
    "product:products(id, tenant_id, name, slug, sku, vat_rate, currency_code)"
)

def _first_row(res) -> Optional[dict]:
    """maybe_single() peut renvoyer None (aucune ligne) ou une réponse avec data=None."""
    if res is None:
        return None
    data = getattr(res, "data", None)
    if isinstance(data, list):
        return data[0] if data else None
    return data or None

def get_profile(client, user_id: str) -> Optional[dict]:
    """
    Profil acheteur (full_name, default_locale), lecture best-effort.
    - Retourne None si absent ou en cas d'erreur.
    """
    try:
        res = (
            client.table("profiles")
            .select("full_name, default_locale")
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )
        return _first_row(res)
    except Exception:
        logger.exception("checkout.repository.get_profile failed user_id=%s", user_id)
        return None

def get_cart_for_user(client, user_id: str) -> Optional[dict]:
    """Panier de l'acheteur (id, currency_code, metadata) ou None s'il n'en a pas."""
    try:
        res = (
            client.table("carts")
            .select("id, currency_code, metadata")
            .eq("user_id", user_id)
            .maybe_single()
            .execute()
        )
    except Exception:
        logger.exception("checkout.repository.get_cart_for_user failed user_id=%s", user_id)
        raise PersistenceError("Unable to load cart.")
    return _first_row(res)

def get_cart_items(client, cart_id: str) -> List[dict]:
    """Lignes du panier jointes avec le snapshot produit (clé 'product')."""
    try:
        res = (
            client.table("cart_items")
            .select(CART_ITEMS_SELECT)
            .eq("cart_id", cart_id)
            .execute()
        )
    except Exception:
        logger.exception("checkout.repository.get_cart_items failed cart_id=%s", cart_id)
        raise PersistenceError("Unable to load cart items.")
    return res.data or []

def insert_order_group(client, row: Dict[str, Any]) -> Optional[dict]:
    try:
        res = client.table("order_groups").insert(row).execute()
        return _first_row(res)
    except Exception:
        logger.exception("checkout.repository.insert_order_group failed buyer=%s", row.get("buyer_user_id"))
        return None

def insert_orders(client, rows: List[Dict[str, Any]]) -> Optional[List[dict]]:
    """Insertion en lot des commandes vendeur; retourne les lignes créées (id, tenant_id)."""
    try:
        res = client.table("orders").insert(rows).execute()
        return res.data or []
    except Exception:
        logger.exception("checkout.repository.insert_orders failed count=%s", len(rows))
        return None

def insert_order_items(client, rows: List[Dict[str, Any]]) -> Optional[List[dict]]:
    try:
        res = client.table("order_items").insert(rows).execute()
        return res.data or []
    except Exception:
        logger.exception("checkout.repository.insert_order_items failed count=%s", len(rows))
        return None

def update_order_group(client, order_group_id: str, values: Dict[str, Any]) -> bool:
    try:
        client.table("order_groups").update(values).eq("id", order_group_id).execute()
        return True
    except Exception:
        logger.exception("checkout.repository.update_order_group failed id=%s", order_group_id)
        return False

def update_orders_for_group(client, order_group_id: str, values: Dict[str, Any]) -> bool:
    try:
        client.table("orders").update(values).eq("order_group_id", order_group_id).execute()
        return True
    except Exception:
        logger.exception("checkout.repository.update_orders_for_group failed group=%s", order_group_id)
        return False

def reconcile_order_group_payment(client, params: Dict[str, Any]) -> Any:
    """
    Appelle la procédure stockée reconcile_order_group_payment (idempotente par p_webhook_event_id).
    Retourne le payload brut de la procédure (dict, liste ou None).
    """
    try:
        res = client.rpc("reconcile_order_group_payment", params).execute()
    except Exception:
        logger.exception(
            "checkout.repository.reconcile_order_group_payment failed group=%s event=%s",
            params.get("p_order_group_id"), params.get("p_webhook_event_id"),
        )
        raise ReconciliationError()
    return getattr(res, "data", None)

def get_order_group_with_orders(client, order_group_id: str, buyer_user_id: str) -> Optional[dict]:
    """
    Groupe de commandes de l'acheteur avec ses commandes vendeur (clé 'orders').
    - None si introuvable ou appartenant à un autre acheteur.
    """
    try:
        res = (
            client.table("order_groups")
            .select(
                "id, status, currency_code, total_amount, items_count, seller_count, "
                "orders(id, tenant_id, status, total_amount)"
            )
            .eq("id", order_group_id)
            .eq("buyer_user_id", buyer_user_id)
            .maybe_single()
            .execute()
        )
    except Exception:
        logger.exception("checkout.repository.get_order_group_with_orders failed id=%s", order_group_id)
        raise PersistenceError("Unable to load order group.")
    return _first_row(res)
