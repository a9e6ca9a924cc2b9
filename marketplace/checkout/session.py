"""
Construction de la session de paiement Stripe pour un groupe de commandes.
"""
from typing import Any, Dict, List, Optional, Tuple
import logging

from .errors import PaymentSessionError
from .models import GroupAggregation, NormalizedItem, PaymentSession
from . import stripe_client

logger = logging.getLogger(__name__)

# module marketplace.checkout.session
def build_line_items(items: List[NormalizedItem]) -> List[Dict[str, Any]]:
    """
    Une ligne Stripe par ligne de panier normalisée.
    - unit_amount = prix unitaire TTC en unités mineures
    - product_data.metadata: product_id, tenant_id, vat_rate ("23.00")
    """
    return [
        {
            "quantity": item.quantity,
            "price_data": {
                "currency": item.currency_code.lower(),
                "unit_amount": item.unit_gross.minor_units,
                "product_data": {
                    "name": item.product_name,
                    "metadata": {
                        "product_id": item.product_id,
                        "tenant_id": item.tenant_id,
                        "vat_rate": item.vat_rate_label,
                    },
                },
            },
        }
        for item in items
    ]

def build_return_urls(origin: str, locale: str, order_group_id: str) -> Tuple[str, str]:
    base = f"{origin.rstrip('/')}/{locale}/checkout"
    return (
        f"{base}/success?order={order_group_id}",
        f"{base}/cancel?order={order_group_id}",
    )

def session_metadata(order_group_id: str, aggregation: GroupAggregation, currency_code: str) -> Dict[str, str]:
    return {
        "order_group_id": order_group_id,
        "seller_count": str(aggregation.seller_count),
        "item_count": str(aggregation.item_count),
        "currency_code": currency_code,
    }

def start_payment_session(
    *,
    order_group_id: str,
    items: List[NormalizedItem],
    aggregation: GroupAggregation,
    currency_code: str,
    origin: str,
    locale: str,
    customer_email: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> PaymentSession:
    """
    Ouvre une session Checkout Stripe (mode payment) pour le groupe.
    - Toute erreur Stripe/transport => PaymentSessionError (pas de nouvel essai)
    - Une réponse sans id est traitée comme un échec
    """
    success_url, cancel_url = build_return_urls(origin, locale, order_group_id)
    try:
        session = stripe_client.create_session(
            line_items=build_line_items(items),
            mode="payment",
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=session_metadata(order_group_id, aggregation, currency_code),
            client_reference_id=order_group_id,
            customer_email=customer_email,
            locale=locale,
            idempotency_key=idempotency_key,
        )
    except Exception as e:
        logger.exception("checkout.session stripe create failed group=%s", order_group_id)
        raise PaymentSessionError() from e

    session_id = (session or {}).get("id")
    if not session_id:
        logger.error("checkout.session stripe returned no session id group=%s", order_group_id)
        raise PaymentSessionError()

    intent = session.get("payment_intent")
    if isinstance(intent, dict):
        intent = intent.get("id")
    return PaymentSession(id=session_id, url=session.get("url"), payment_intent_id=intent or None)
