"""
Réconciliation des paiements Stripe (webhook).

Seuls les événements de session Checkout payée déclenchent la procédure
reconcile_order_group_payment, idempotente par identifiant d'événement:
une relivraison Stripe ne modifie jamais deux fois le même groupe.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging

from pydantic import ValidationError

import marketplace.infra.supabase_client as supabase_client

from . import repository
from . import stripe_client
from .errors import ConfigurationError, InvalidEventPayload, InvalidSignature, MissingSignature, ReconciliationError
from .money import format_amount, to_major_units
from .schemas import CheckoutSessionObject, StripeEvent

logger = logging.getLogger(__name__)

# module marketplace.checkout.webhook
RECONCILIATION_EVENT_TYPES = frozenset({
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
})

def deep_compact(value: Any) -> Any:
    """
    Supprime récursivement None et conteneurs vides.
    Retourne None si plus rien ne reste (0, False et "" sont conservés).
    """
    if isinstance(value, (list, tuple)):
        items = [c for c in (deep_compact(v) for v in value) if c is not None]
        return items or None
    if isinstance(value, dict):
        entries = {}
        for key, val in value.items():
            compacted = deep_compact(val)
            if compacted is not None:
                entries[key] = compacted
        return entries or None
    return value

def build_event_metadata(session: CheckoutSessionObject) -> Optional[Dict[str, Any]]:
    return deep_compact({
        "stripeSessionId": session.id,
        "clientReferenceId": session.client_reference_id,
        "metadata": session.metadata,
        "mode": session.mode,
        "paymentStatus": session.payment_status,
        "locale": session.locale,
        "customerEmail": session.buyer_email,
    })

def resolve_order_group_id(session: CheckoutSessionObject) -> Optional[str]:
    """metadata.order_group_id en priorité, sinon client_reference_id."""
    ref = (session.metadata or {}).get("order_group_id")
    if isinstance(ref, str) and ref:
        return ref
    if session.client_reference_id:
        return session.client_reference_id
    return None

def event_created_iso(created: Optional[int]) -> Optional[str]:
    if created is None:
        return None
    instant = datetime.fromtimestamp(created, tz=timezone.utc)
    return instant.isoformat(timespec="milliseconds").replace("+00:00", "Z")

def verify_event(payload: bytes, signature: Optional[str]) -> StripeEvent:
    """
    Vérifie la signature puis valide la forme de l'événement.
    - MissingSignature / InvalidSignature / InvalidEventPayload (400)
    - ConfigurationError (500) si STRIPE_WEBHOOK_SECRET absent
    """
    if not signature:
        raise MissingSignature()
    try:
        stripe_client.require_webhook_secret()
    except RuntimeError:
        logger.error("webhook.verify STRIPE_WEBHOOK_SECRET is not configured")
        raise ConfigurationError()
    try:
        raw = stripe_client.construct_event(payload, signature)
    except Exception:
        logger.warning("webhook.verify signature verification failed", exc_info=True)
        raise InvalidSignature()
    try:
        return StripeEvent.model_validate(raw)
    except ValidationError:
        logger.warning("webhook.verify malformed event payload", exc_info=True)
        raise InvalidEventPayload()

def reconciliation_params(event: StripeEvent, session: CheckoutSessionObject, order_group_id: str) -> Dict[str, Any]:
    amount = to_major_units(session.amount_total)
    return {
        "p_order_group_id": order_group_id,
        "p_payment_intent": session.payment_intent_id,
        "p_webhook_event_id": event.id,
        "p_webhook_created": event_created_iso(event.created),
        "p_amount_total": format_amount(amount) if amount is not None else None,
        "p_currency_code": session.currency.upper() if session.currency else None,
        "p_event_type": event.type,
        "p_event_metadata": build_event_metadata(session),
    }

def _applied_flag(data: Any) -> Optional[bool]:
    if isinstance(data, list):
        data = data[0] if data else None
    if isinstance(data, dict):
        return data.get("applied")
    return None

def reconcile_event(event: StripeEvent) -> Dict[str, Any]:
    if event.type not in RECONCILIATION_EVENT_TYPES:
        logger.debug("webhook.ignored type=%s event=%s", event.type, event.id)
        return {"received": True}

    try:
        session = event.checkout_session()
    except ValidationError:
        logger.warning("webhook.reconcile malformed session object event=%s", event.id, exc_info=True)
        raise InvalidEventPayload()

    order_group_id = resolve_order_group_id(session)
    if not order_group_id:
        logger.error("webhook.reconcile missing order group reference event=%s session=%s", event.id, session.id)
        return {"received": True}

    try:
        client = supabase_client.get_service_supabase()
    except Exception:
        logger.exception("webhook.reconcile service client unavailable event=%s", event.id)
        raise ReconciliationError()

    data = repository.reconcile_order_group_payment(client, reconciliation_params(event, session, order_group_id))
    applied = _applied_flag(data)
    logger.info("webhook.reconciled group=%s event=%s type=%s applied=%s", order_group_id, event.id, event.type, applied)
    return {"received": True, "orderGroupId": order_group_id, "applied": applied}

def handle_webhook(payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
    """
    Traite un webhook Stripe brut.
    Retour: {"received": True} ou {"received": True, "orderGroupId", "applied"}.
    """
    event = verify_event(payload, signature)
    return reconcile_event(event)
