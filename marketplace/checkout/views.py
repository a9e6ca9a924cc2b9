import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

import marketplace.infra.supabase_client as supabase_client
from marketplace import config
from marketplace.utils.rate_limit import optional_rate_limit
from marketplace.utils.security import require_user

from . import repository as checkout_repo
from . import service as checkout_service
from . import webhook as checkout_webhook
from .errors import MissingSignature, OrderGroupNotFound, PersistenceError
from .schemas import CheckoutPayload

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/checkout", tags=["Checkout API"])
webhook_router = APIRouter(prefix="/payments", tags=["Payments webhook"])

# module marketplace.checkout.views
def _request_origin(request: Request) -> str:
    if config.SITE_URL:
        return config.SITE_URL
    return str(request.base_url).rstrip("/")

def _buyer_client(user: Dict[str, Any]):
    try:
        return supabase_client.get_user_supabase(user.get("token") or "")
    except Exception:
        logger.exception("checkout.views buyer client unavailable user=%s", user.get("id"))
        raise PersistenceError()

@router.post("/session", dependencies=[Depends(optional_rate_limit(times=10, seconds=60))])
async def create_checkout_session(request: Request, user: dict = Depends(require_user)):
    """
    Transforme le panier de l'acheteur en groupe de commandes et ouvre la session Stripe.
    - Entrée JSON (optionnelle): { locale, shippingAddress, billingAddress, contactPhone, buyerNote }
      Un body absent ou invalide est traité comme {}.
    - Sécurité: require_user + rate limit (10 req / 60s)
    - Réponse: { sessionId, url, orderGroupId }
    - Erreurs: {"error": ...} en 400 / 401 / 500 / 502 (voir checkout.errors)
    """
    try:
        body = await request.json()
    except Exception:
        body = None
    payload = CheckoutPayload.from_body(body)
    # SDK Supabase/Stripe synchrones: hors de la boucle d'événements
    return await run_in_threadpool(
        checkout_service.create_checkout_session,
        client=_buyer_client(user),
        user=user,
        payload=payload,
        origin=_request_origin(request),
    )

@router.get("/order-groups/{order_group_id}")
def get_order_group(order_group_id: str, user: dict = Depends(require_user)):
    """
    Statut d'un groupe de commandes de l'acheteur (pages succès/annulation).
    - 404 si introuvable ou appartenant à un autre acheteur
    """
    group = checkout_repo.get_order_group_with_orders(_buyer_client(user), order_group_id, str(user.get("id")))
    if not group:
        raise OrderGroupNotFound()
    return {
        "orderGroupId": group.get("id"),
        "status": group.get("status"),
        "currencyCode": group.get("currency_code"),
        "totalAmount": group.get("total_amount"),
        "itemsCount": group.get("items_count"),
        "sellerCount": group.get("seller_count"),
        "orders": [
            {
                "id": o.get("id"),
                "tenantId": o.get("tenant_id"),
                "status": o.get("status"),
                "totalAmount": o.get("total_amount"),
            }
            for o in group.get("orders") or []
        ],
    }

@webhook_router.post("/webhook", include_in_schema=False)
async def stripe_webhook(request: Request):
    """
    Webhook Stripe: réconcilie les sessions Checkout payées.
    - Signature: en-tête stripe-signature vérifié avant toute lecture du body
    - Réponses: {"received": true} ou {"received": true, "orderGroupId", "applied"}
    - Erreurs: 400 signature/payload, 500 réconciliation
    """
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise MissingSignature()
    payload = await request.body()
    return await run_in_threadpool(checkout_webhook.handle_webhook, payload, signature)
