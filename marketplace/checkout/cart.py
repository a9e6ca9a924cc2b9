"""
Normalisation du panier (pas de Stripe, pas de DB).

Entrée: lignes cart_items jointes avec leur snapshot produit (clé "product").
Sortie: NormalizedItem avec montants unitaires et de ligne, ordre conservé.
Une seule ligne invalide invalide tout le panier (InvalidCartLine).
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional
import logging

from .errors import InvalidCartLine
from .models import NormalizedItem
from .money import InvalidAmount, Money, to_decimal

logger = logging.getLogger(__name__)

# module marketplace.checkout.cart
HUNDRED = Decimal(100)

def _parse_number(value: Any) -> Optional[Decimal]:
    """Nombre fini depuis int/float/Decimal/str, sinon None."""
    try:
        return to_decimal(value)
    except InvalidAmount:
        return None

def parse_quantity(value: Any) -> Optional[int]:
    """
    Quantité entière strictement positive.
    - 2, "2" et 2.0 sont acceptés; 2.5, 0, -1, True sont refusés (None).
    """
    number = _parse_number(value)
    if number is None or number != number.to_integral_value():
        return None
    qty = int(number)
    return qty if qty > 0 else None

def parse_vat_rate(value: Any) -> Decimal:
    """
    Taux de TVA en pourcentage (>= 0).
    Valeur absente ou invalide => 0 (taux zéro), sans erreur.
    """
    rate = _parse_number(value)
    if rate is None or rate < 0:
        if value is not None:
            logger.debug("checkout.cart invalid vat_rate=%r, defaulting to 0", value)
        return Decimal(0)
    return rate

def normalize_cart_item(row: Dict[str, Any]) -> NormalizedItem:
    """
    Valide une ligne de panier et calcule ses montants.
    Ordre de calcul (à conserver pour retrouver les totaux attendus):
      unit_net = round(unit_price)
      unit_tax = round(unit_net * vat / 100)
      unit_gross = round(unit_net + unit_tax)
      subtotal_net = round(unit_net * qty)
      tax_amount = round(unit_tax * qty)
      total_gross = round(subtotal_net + tax_amount)
    """
    tenant_id = row.get("tenant_id")
    if not tenant_id:
        raise InvalidCartLine("Cart item is missing tenant context.")

    product_id = row.get("product_id")
    if not product_id:
        raise InvalidCartLine("Cart item is missing product reference.")

    product = row.get("product")
    if not product:
        raise InvalidCartLine("Cart item product snapshot is unavailable.")

    quantity = parse_quantity(row.get("quantity"))
    if quantity is None:
        raise InvalidCartLine("Cart item quantity is invalid.")

    unit_price = _parse_number(row.get("unit_price"))
    if unit_price is None or unit_price <= 0:
        raise InvalidCartLine("Cart item price is invalid.")

    vat_rate = parse_vat_rate(product.get("vat_rate"))

    try:
        unit_net = Money(unit_price)
        unit_tax = unit_net * (vat_rate / HUNDRED)
        unit_gross = unit_net + unit_tax
        subtotal_net = unit_net * quantity
        tax_amount = unit_tax * quantity
        total_gross = subtotal_net + tax_amount
    except InvalidAmount:
        logger.warning("checkout.cart amount out of range cart_item=%s", row.get("id"))
        raise InvalidCartLine("Cart item price is invalid.")

    currency = row.get("currency_code") or product.get("currency_code") or ""

    return NormalizedItem(
        cart_item_id=str(row.get("id") or ""),
        tenant_id=str(tenant_id),
        product_id=str(product_id),
        product_name=product.get("name") or "",
        product_slug=product.get("slug"),
        product_sku=product.get("sku"),
        quantity=quantity,
        unit_net=unit_net,
        unit_tax=unit_tax,
        unit_gross=unit_gross,
        subtotal_net=subtotal_net,
        tax_amount=tax_amount,
        total_gross=total_gross,
        vat_rate=vat_rate,
        currency_code=str(currency).strip().upper(),
        metadata=row.get("metadata"),
    )

def normalize_cart_items(rows: List[Dict[str, Any]]) -> List[NormalizedItem]:
    return [normalize_cart_item(row) for row in rows or []]

def cart_snapshot(cart: Dict[str, Any], items: List[NormalizedItem]) -> Dict[str, Any]:
    """Copie figée du panier normalisé, stockée dans order_groups.cart_snapshot."""
    return {
        "cart_id": cart.get("id"),
        "currency_code": cart.get("currency_code"),
        "metadata": cart.get("metadata"),
        "items": [
            {
                "cart_item_id": item.cart_item_id,
                "tenant_id": item.tenant_id,
                "product_id": item.product_id,
                "quantity": item.quantity,
                "unit_net": str(item.unit_net),
                "vat_rate": item.vat_rate_label,
                "subtotal_net": str(item.subtotal_net),
                "tax_amount": str(item.tax_amount),
                "total_gross": str(item.total_gross),
            }
            for item in items
        ],
    }
