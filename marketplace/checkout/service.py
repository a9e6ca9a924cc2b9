"""
Cas d'usage 'checkout': transforme le panier de l'acheteur en un groupe de commandes
(une commande par vendeur) puis ouvre la session de paiement Stripe.

Pas de transaction multi-tables côté PostgREST: chaque écriture réussie est suivie,
et un échec ultérieur déclenche une compensation (statut 'cancelled' + metadata.error).
"""
from typing import Any, Dict, List, Optional
from uuid import uuid4
import logging

from marketplace import config

from . import repository
from .aggregation import aggregate_by_tenant, ensure_single_currency
from .cart import cart_snapshot, normalize_cart_items
from .errors import EmptyCart, InvalidCart, PersistenceError, UnsupportedCurrency
from .models import (
    GROUP_AWAITING_PAYMENT,
    GROUP_CANCELLED,
    GROUP_PENDING,
    ORDER_AWAITING_PAYMENT,
    ORDER_CANCELLED,
    ORDER_PENDING,
    GroupAggregation,
    NormalizedItem,
    PaymentSession,
)
from .money import ZERO, InvalidAmount, format_amount
from .sanitize import sanitize_locale
from .schemas import CheckoutPayload
from .session import start_payment_session

logger = logging.getLogger(__name__)

# module marketplace.checkout.service
# Etats d'une tentative de checkout
STARTED = "started"
VALIDATED = "validated"
GROUP_CREATED = "group_created"
ORDERS_CREATED = "orders_created"
ITEMS_CREATED = "items_created"
SESSION_CREATED = "session_created"
AWAITING_PAYMENT = "awaiting_payment"
CANCELLED = "cancelled"

# Codes d'erreur posés dans order_groups.metadata.error
ORDERS_INSERT_FAILED = "orders_insert_failed"
ORDER_ITEMS_INSERT_FAILED = "order_items_insert_failed"
STRIPE_SESSION_FAILED = "stripe_session_failed"

METADATA_SOURCE = "stripe_checkout_session"


class CheckoutAttempt:
    """
    Une exécution du protocole d'écriture du checkout.

    started -> validated -> group_created -> orders_created -> items_created
            -> session_created -> awaiting_payment
    Toute étape après group_created peut finir en 'cancelled' (compensation).
    attempt_id sert de clé d'idempotence Stripe et est tracé dans la metadata du groupe.
    """

    def __init__(self, *, client, user: Dict[str, Any], payload: CheckoutPayload, origin: str):
        self.client = client
        self.user = user
        self.payload = payload
        self.origin = origin
        self.attempt_id = uuid4().hex
        self.state = STARTED

        self.profile: Optional[dict] = None
        self.locale: str = config.DEFAULT_LOCALE
        self.cart: Dict[str, Any] = {}
        self.items: List[NormalizedItem] = []
        self.aggregation: Optional[GroupAggregation] = None
        self.order_group_id: Optional[str] = None
        self.group_metadata: Dict[str, Any] = {}
        self.session: Optional[PaymentSession] = None

    # --- propriétés acheteur ---

    @property
    def user_id(self) -> str:
        return str(self.user.get("id") or "")

    @property
    def buyer_email(self) -> Optional[str]:
        return self.user.get("email") or None

    @property
    def buyer_full_name(self) -> Optional[str]:
        name = (self.profile or {}).get("full_name")
        if name:
            return name
        return (self.user.get("metadata") or {}).get("full_name") or None

    @property
    def currency_code(self) -> str:
        return self.cart.get("currency_code") or config.DEFAULT_CURRENCY

    # --- étapes ---

    def load(self) -> None:
        """Profil (best-effort), locale, panier et lignes."""
        self.profile = repository.get_profile(self.client, self.user_id)
        requested = self.payload.locale
        if requested is None:
            requested = (self.profile or {}).get("default_locale")
        self.locale = sanitize_locale(requested if requested is not None else config.DEFAULT_LOCALE)

        cart = repository.get_cart_for_user(self.client, self.user_id)
        if not cart:
            raise EmptyCart()
        if cart.get("currency_code") != config.DEFAULT_CURRENCY:
            raise UnsupportedCurrency()
        self.cart = cart

        rows = repository.get_cart_items(self.client, cart["id"])
        if not rows:
            raise EmptyCart("Cart does not contain any items.")

        try:
            self.items = normalize_cart_items(rows)
            ensure_single_currency(self.items, cart.get("currency_code"))
        except InvalidCart as e:
            logger.warning("checkout.validate cart rejected attempt=%s reason=%s", self.attempt_id, e)
            raise InvalidCart()

        try:
            self.aggregation = aggregate_by_tenant(self.items)
        except InvalidAmount as e:
            # totaux vendeur hors précision décimale
            logger.warning("checkout.validate totals out of range attempt=%s reason=%s", self.attempt_id, e)
            raise InvalidCart()
        self.state = VALIDATED

    def create_group(self) -> None:
        agg = self.aggregation
        self.group_metadata = {
            "locale": self.locale,
            "seller_count": agg.seller_count,
            "item_count": agg.item_count,
            "currency_code": self.currency_code,
            "source": METADATA_SOURCE,
            "checkout_attempt_id": self.attempt_id,
        }
        note = self.payload.buyer_note
        row = {
            "buyer_user_id": self.user_id,
            "buyer_email": self.buyer_email,
            "buyer_full_name": self.buyer_full_name,
            "currency_code": self.currency_code,
            "billing_address": self.payload.billing_address.as_row(),
            "shipping_address": self.payload.shipping_address.as_row(),
            "contact_phone": self.payload.contact_phone,
            "notes": {"buyer_note": note} if note else {},
            "metadata": self.group_metadata,
            "cart_snapshot": cart_snapshot(self.cart, self.items),
            "items_subtotal_amount": format_amount(agg.subtotal),
            "items_tax_amount": format_amount(agg.tax),
            "shipping_amount": format_amount(ZERO),
            "discount_amount": format_amount(ZERO),
            "total_amount": format_amount(agg.total),
            "items_count": agg.item_count,
            "seller_count": agg.seller_count,
            "status": GROUP_PENDING,
        }
        inserted = repository.insert_order_group(self.client, row)
        if not inserted or not inserted.get("id"):
            raise PersistenceError("Unable to create order group.")
        self.order_group_id = str(inserted["id"])
        self.state = GROUP_CREATED
        logger.info("checkout.group created id=%s attempt=%s sellers=%s", self.order_group_id, self.attempt_id, agg.seller_count)

    def create_orders(self) -> Dict[str, str]:
        """Une commande par vendeur; retourne {tenant_id: order_id}."""
        rows = [
            {
                "order_group_id": self.order_group_id,
                "tenant_id": tenant_id,
                "buyer_user_id": self.user_id,
                "buyer_email": self.buyer_email,
                "buyer_full_name": self.buyer_full_name,
                "buyer_note": self.payload.buyer_note,
                "currency_code": self.currency_code,
                "billing_address": self.payload.billing_address.as_row(),
                "shipping_address": self.payload.shipping_address.as_row(),
                "metadata": {"cart_item_ids": seller.cart_item_ids},
                "items_subtotal_amount": format_amount(seller.subtotal),
                "items_tax_amount": format_amount(seller.tax),
                "shipping_amount": format_amount(ZERO),
                "discount_amount": format_amount(ZERO),
                "total_amount": format_amount(seller.total),
                "items_count": seller.item_count,
                "status": ORDER_PENDING,
            }
            for tenant_id, seller in self.aggregation.sellers.items()
        ]
        inserted = repository.insert_orders(self.client, rows)
        if inserted is None:
            self.compensate(ORDERS_INSERT_FAILED, cancel_orders=False)
            raise PersistenceError("Unable to create seller orders.")
        self.state = ORDERS_CREATED
        return {str(o.get("tenant_id")): str(o.get("id")) for o in inserted if o.get("id")}

    def create_items(self, order_ids: Dict[str, str]) -> None:
        rows = []
        for item in self.items:
            order_id = order_ids.get(item.tenant_id)
            if not order_id:
                logger.error("checkout.items missing order for tenant=%s group=%s", item.tenant_id, self.order_group_id)
                rows = None
                break
            rows.append({
                "order_id": order_id,
                "tenant_id": item.tenant_id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "product_slug": item.product_slug,
                "product_sku": item.product_sku,
                "quantity": item.quantity,
                "unit_price": format_amount(item.unit_net),
                "vat_rate": item.vat_rate_label,
                "currency_code": item.currency_code,
                "metadata": {"cart_item_id": item.cart_item_id, "original_metadata": item.metadata},
            })

        if rows is None or repository.insert_order_items(self.client, rows) is None:
            self.compensate(ORDER_ITEMS_INSERT_FAILED)
            raise PersistenceError("Unable to finalise order items.")
        self.state = ITEMS_CREATED

    def open_session(self) -> None:
        try:
            self.session = start_payment_session(
                order_group_id=self.order_group_id,
                items=self.items,
                aggregation=self.aggregation,
                currency_code=self.currency_code,
                origin=self.origin,
                locale=self.locale,
                customer_email=self.buyer_email,
                idempotency_key=self.attempt_id,
            )
        except Exception:
            self.compensate(STRIPE_SESSION_FAILED)
            raise
        self.state = SESSION_CREATED

    def finalize(self) -> None:
        """Passage en awaiting_payment; best-effort, un échec est seulement journalisé."""
        metadata = dict(self.group_metadata)
        metadata.update({
            "stripe_session_id": self.session.id,
            "stripe_checkout_url": self.session.url,
            "stripe_payment_intent": self.session.payment_intent_id,
        })
        group_ok = repository.update_order_group(
            self.client, self.order_group_id, {"status": GROUP_AWAITING_PAYMENT, "metadata": metadata}
        )
        orders_ok = repository.update_orders_for_group(
            self.client, self.order_group_id, {"status": ORDER_AWAITING_PAYMENT}
        )
        if not (group_ok and orders_ok):
            logger.warning(
                "checkout.finalize status update incomplete group=%s attempt=%s group_ok=%s orders_ok=%s",
                self.order_group_id, self.attempt_id, group_ok, orders_ok,
            )
        self.state = AWAITING_PAYMENT

    def compensate(self, error_code: str, cancel_orders: bool = True) -> None:
        """Annule ce qui a été écrit; les échecs de compensation sont journalisés, jamais propagés."""
        logger.warning(
            "checkout.compensate group=%s attempt=%s state=%s error=%s",
            self.order_group_id, self.attempt_id, self.state, error_code,
        )
        if cancel_orders and not repository.update_orders_for_group(
            self.client, self.order_group_id, {"status": ORDER_CANCELLED}
        ):
            logger.error("checkout.compensate orders not cancelled group=%s attempt=%s", self.order_group_id, self.attempt_id)
        metadata = dict(self.group_metadata, error=error_code)
        if not repository.update_order_group(
            self.client, self.order_group_id, {"status": GROUP_CANCELLED, "metadata": metadata}
        ):
            logger.error("checkout.compensate group not cancelled group=%s attempt=%s", self.order_group_id, self.attempt_id)
        self.state = CANCELLED

    def run(self) -> Dict[str, Any]:
        self.load()
        self.create_group()
        order_ids = self.create_orders()
        self.create_items(order_ids)
        self.open_session()
        self.finalize()
        return {
            "sessionId": self.session.id,
            "url": self.session.url,
            "orderGroupId": self.order_group_id,
        }

def create_checkout_session(*, client, user: Dict[str, Any], payload: CheckoutPayload, origin: str) -> Dict[str, Any]:
    """
    Point d'entrée du checkout (POST /checkout/session).
    - client: client Supabase de l'acheteur (RLS)
    - origin: origine publique pour les URLs de retour Stripe
    Retour: {"sessionId", "url", "orderGroupId"}; lève une CheckoutError sinon.
    """
    attempt = CheckoutAttempt(client=client, user=user, payload=payload, origin=origin)
    logger.info("checkout.start user=%s attempt=%s", attempt.user_id, attempt.attempt_id)
    return attempt.run()
