"""
Module 'checkout' (feature-first): point d'entrée public.
Réunit montants, normalisation du panier, découpage par vendeur,
écriture du groupe de commandes, session Stripe et réconciliation webhook.
"""

from .money import Money, round_amount, format_amount, to_minor_units, to_major_units
from .cart import normalize_cart_items, normalize_cart_item, parse_vat_rate
from .aggregation import aggregate_by_tenant, ensure_single_currency
from .session import build_line_items, build_return_urls, start_payment_session
from .service import CheckoutAttempt, create_checkout_session
from .webhook import handle_webhook, resolve_order_group_id, build_event_metadata, deep_compact

__all__ = [
    # money
    "Money",
    "round_amount",
    "format_amount",
    "to_minor_units",
    "to_major_units",
    # cart
    "normalize_cart_items",
    "normalize_cart_item",
    "parse_vat_rate",
    # aggregation
    "aggregate_by_tenant",
    "ensure_single_currency",
    # stripe session
    "build_line_items",
    "build_return_urls",
    "start_payment_session",
    # services
    "CheckoutAttempt",
    "create_checkout_session",
    # webhook
    "handle_webhook",
    "resolve_order_group_id",
    "build_event_metadata",
    "deep_compact",
]
