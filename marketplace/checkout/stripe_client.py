"""
Adaptateur Stripe: centralise les appels et la configuration Stripe.
"""
from typing import Any, Dict, List, Optional

import stripe

from marketplace import config

# module marketplace.checkout.stripe_client
def require_stripe():
    """
    Prépare et retourne le module stripe prêt à l'emploi.
    - Configure stripe.api_key via STRIPE_SECRET_KEY si disponible.
    - En absence de clé, les appels Stripe échoueront côté SDK (ex: No API key provided).
    """
    if config.STRIPE_SECRET_KEY:
        stripe.api_key = config.STRIPE_SECRET_KEY
    return stripe

def require_webhook_secret() -> str:
    """Secret de signature des webhooks; RuntimeError si non configuré."""
    if not config.STRIPE_WEBHOOK_SECRET:
        raise RuntimeError("STRIPE_WEBHOOK_SECRET manquant")
    return config.STRIPE_WEBHOOK_SECRET

def _as_dict(obj: Any) -> Dict[str, Any]:
    # StripeObject => dict récursif selon la version du SDK
    for name in ("to_dict_recursive", "to_dict"):
        method = getattr(obj, name, None)
        if callable(method):
            return method()
    return dict(obj)

def create_session(
    *,
    line_items: List[Dict[str, Any]],
    mode: str,
    success_url: str,
    cancel_url: str,
    metadata: Dict[str, Any],
    client_reference_id: str,
    customer_email: Optional[str] = None,
    locale: Optional[str] = None,
    payment_method_types: Optional[List[str]] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Crée une session Stripe Checkout.
    - idempotency_key: rejouer la même tentative ne crée pas de seconde session
    Retour: dict session (ex: {"id": "cs_test_...", "url": "https://...", "payment_intent": ...})
    """
    require_stripe()
    params: Dict[str, Any] = {
        "line_items": line_items,
        "mode": mode,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "client_reference_id": client_reference_id,
        "payment_method_types": payment_method_types or list(config.STRIPE_PAYMENT_METHOD_TYPES),
    }
    if customer_email:
        params["customer_email"] = customer_email
    if locale:
        params["locale"] = locale
    if idempotency_key:
        params["idempotency_key"] = idempotency_key
    session = stripe.checkout.Session.create(**params)
    return _as_dict(session)

def construct_event(payload: bytes, sig_header: str) -> Dict[str, Any]:
    """
    Valide la signature d'un événement webhook (Stripe-Signature + STRIPE_WEBHOOK_SECRET).
    - Lève stripe.SignatureVerificationError / ValueError si invalide.
    Retour: l'événement sous forme de dict.
    """
    secret = require_webhook_secret()
    require_stripe()
    event = stripe.Webhook.construct_event(payload, sig_header, secret)
    return _as_dict(event)
