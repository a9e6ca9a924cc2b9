"""Types du pipeline checkout (éphémères, jamais persistés tels quels).
- NormalizedItem: ligne de panier validée avec montants unitaires et de ligne.
- SellerAggregation / GroupAggregation: découpage par vendeur (tenant) et totaux.
- PaymentSession: résultat de la création de session Stripe.
Les statuts persistés (order_groups / orders) sont des constantes de ce module.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .money import Money, ZERO

# module marketplace.checkout.models
# Statuts order_groups
GROUP_PENDING = "pending"
GROUP_AWAITING_PAYMENT = "awaiting_payment"
GROUP_CANCELLED = "cancelled"

# Statuts orders (phase paiement)
ORDER_PENDING = "pending"
ORDER_AWAITING_PAYMENT = "awaiting_payment"
ORDER_CANCELLED = "cancelled"


@dataclass(frozen=True)
class NormalizedItem:
    cart_item_id: str
    tenant_id: str
    product_id: str
    product_name: str
    product_slug: Optional[str]
    product_sku: Optional[str]
    quantity: int
    unit_net: Money
    unit_tax: Money
    unit_gross: Money
    subtotal_net: Money
    tax_amount: Money
    total_gross: Money
    vat_rate: Decimal
    currency_code: str
    metadata: Any = None

    @property
    def vat_rate_label(self) -> str:
        return f"{self.vat_rate:.2f}"


@dataclass
class SellerAggregation:
    tenant_id: str
    items: List[NormalizedItem] = field(default_factory=list)
    subtotal: Money = ZERO
    tax: Money = ZERO
    total: Money = ZERO
    item_count: int = 0

    @property
    def cart_item_ids(self) -> List[str]:
        return [item.cart_item_id for item in self.items]


@dataclass
class GroupAggregation:
    sellers: Dict[str, SellerAggregation]
    subtotal: Money
    tax: Money
    total: Money
    item_count: int

    @property
    def seller_count(self) -> int:
        return len(self.sellers)


@dataclass(frozen=True)
class PaymentSession:
    id: str
    url: Optional[str]
    payment_intent_id: Optional[str] = None
