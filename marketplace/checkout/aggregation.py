"""
Découpage du panier normalisé par vendeur (tenant) et totaux de groupe.
"""
from decimal import Decimal
from typing import Dict, List, Optional

from .errors import EmptySellerSet, MixedCurrencyCart
from .models import GroupAggregation, NormalizedItem, SellerAggregation
from .money import Money

# module marketplace.checkout.aggregation
def aggregate_by_tenant(items: List[NormalizedItem]) -> GroupAggregation:
    """
    Regroupe les lignes par tenant_id (ordre de première apparition).
    - Cumul par vendeur sans arrondi intermédiaire, un seul arrondi en fin de vendeur.
    - Totaux de groupe = somme des totaux vendeurs déjà arrondis.
    - Lignes sans tenant_id ignorées; EmptySellerSet si des lignes existent mais aucun vendeur n'en ressort.
    """
    sums: Dict[str, Dict[str, Decimal]] = {}
    sellers: Dict[str, SellerAggregation] = {}

    for item in items:
        if not item.tenant_id:
            continue
        seller = sellers.get(item.tenant_id)
        if seller is None:
            seller = SellerAggregation(tenant_id=item.tenant_id)
            sellers[item.tenant_id] = seller
            sums[item.tenant_id] = {"subtotal": Decimal(0), "tax": Decimal(0), "total": Decimal(0)}
        seller.items.append(item)
        seller.item_count += item.quantity
        acc = sums[item.tenant_id]
        acc["subtotal"] += item.subtotal_net.amount
        acc["tax"] += item.tax_amount.amount
        acc["total"] += item.total_gross.amount

    if items and not sellers:
        raise EmptySellerSet()

    subtotal = tax = total = Decimal(0)
    item_count = 0
    for tenant_id, seller in sellers.items():
        acc = sums[tenant_id]
        seller.subtotal = Money(acc["subtotal"])
        seller.tax = Money(acc["tax"])
        seller.total = Money(acc["total"])
        subtotal += seller.subtotal.amount
        tax += seller.tax.amount
        total += seller.total.amount
        item_count += seller.item_count

    return GroupAggregation(
        sellers=sellers,
        subtotal=Money(subtotal),
        tax=Money(tax),
        total=Money(total),
        item_count=item_count,
    )

def ensure_single_currency(items: List[NormalizedItem], cart_currency: Optional[str] = None) -> None:
    """
    Refuse les paniers multi-devises (pas de règlement multi-devises).
    - Deux lignes de devises différentes => MixedCurrencyCart
    - Une ligne dont la devise diffère de celle déclarée par le panier => MixedCurrencyCart
    """
    expected = (cart_currency or "").strip().upper() or None
    for item in items:
        if expected is None:
            expected = item.currency_code
            continue
        if item.currency_code != expected:
            raise MixedCurrencyCart()
