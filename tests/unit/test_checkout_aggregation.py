from dataclasses import replace

import pytest

from marketplace.checkout.aggregation import aggregate_by_tenant, ensure_single_currency
from marketplace.checkout.cart import normalize_cart_items
from marketplace.checkout.errors import EmptySellerSet, MixedCurrencyCart
from marketplace.checkout.money import Money


def test_partitions_by_tenant_in_first_seen_order(cart_line_factory):
    items = normalize_cart_items([
        cart_line_factory("tB", "p1", "120.00", 2),
        cart_line_factory("tA", "p2", "10.00", 1, vat_rate="8"),
        cart_line_factory("tB", "p3", "1.00", 3, vat_rate="0"),
    ])
    agg = aggregate_by_tenant(items)

    assert list(agg.sellers) == ["tB", "tA"]
    seller_b = agg.sellers["tB"]
    assert seller_b.item_count == 5
    assert seller_b.subtotal == Money("243.00")
    assert seller_b.tax == Money("55.20")
    assert seller_b.total == Money("298.20")
    assert agg.sellers["tA"].total == Money("10.80")

    assert agg.seller_count == 2
    assert agg.item_count == 6
    assert agg.total == Money("309.00")
    assert agg.subtotal + agg.tax == agg.total

def test_seller_cart_item_ids(cart_line_factory):
    rows = [dict(cart_line_factory("t1", "p1", "1", 1), id="a"), dict(cart_line_factory("t1", "p2", "1", 1), id="b")]
    agg = aggregate_by_tenant(normalize_cart_items(rows))
    assert agg.sellers["t1"].cart_item_ids == ["a", "b"]

def test_empty_input_gives_zero_totals():
    agg = aggregate_by_tenant([])
    assert agg.sellers == {}
    assert agg.total == Money(0)

def test_items_without_any_seller_raise(cart_line_factory):
    item = normalize_cart_items([cart_line_factory("t1", "p1", "1", 1)])[0]
    with pytest.raises(EmptySellerSet) as exc:
        aggregate_by_tenant([replace(item, tenant_id="")])
    assert exc.value.message == "Unable to create order without seller data."

def test_single_currency_accepts_consistent_cart(cart_line_factory):
    items = normalize_cart_items([cart_line_factory("t1", "p1", "1", 1), cart_line_factory("t2", "p2", "1", 1)])
    ensure_single_currency(items, "PLN")

def test_mixed_currencies_are_rejected(cart_line_factory):
    eur = cart_line_factory("t2", "p2", "1", 1)
    eur["currency_code"] = "EUR"
    items = normalize_cart_items([cart_line_factory("t1", "p1", "1", 1, currency_code="PLN"), eur])
    with pytest.raises(MixedCurrencyCart):
        ensure_single_currency(items)

def test_item_currency_must_match_cart(cart_line_factory):
    items = normalize_cart_items([cart_line_factory("t1", "p1", "1", 1, currency_code="EUR")])
    with pytest.raises(MixedCurrencyCart):
        ensure_single_currency(items, "PLN")
