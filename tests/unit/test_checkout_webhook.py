import json

import pytest

from marketplace.checkout.errors import (
    ConfigurationError,
    InvalidEventPayload,
    InvalidSignature,
    MissingSignature,
    ReconciliationError,
)
from marketplace.checkout.schemas import CheckoutSessionObject, StripeEvent
from marketplace.checkout.webhook import (
    build_event_metadata,
    deep_compact,
    event_created_iso,
    handle_webhook,
    reconciliation_params,
    resolve_order_group_id,
    verify_event,
)

VALID = "t=1,v1=valid"


def _event(**session):
    obj = {"id": "cs_test_1", "amount_total": 29520, "currency": "pln", "payment_intent": "pi_1"}
    obj.update(session)
    return {"id": "evt_1", "type": "checkout.session.completed", "created": 1700000000, "data": {"object": obj}}


def test_deep_compact():
    assert deep_compact({"a": None, "b": {}, "c": [None, {}], "d": 0, "e": {"f": "x"}}) == {"d": 0, "e": {"f": "x"}}
    assert deep_compact({"a": None}) is None
    assert deep_compact([1, None]) == [1]

def test_resolve_order_group_id_prefers_metadata():
    s = CheckoutSessionObject(metadata={"order_group_id": "g-meta"}, client_reference_id="g-ref")
    assert resolve_order_group_id(s) == "g-meta"
    assert resolve_order_group_id(CheckoutSessionObject(client_reference_id="g-ref")) == "g-ref"
    assert resolve_order_group_id(CheckoutSessionObject(metadata={})) is None

def test_build_event_metadata_compacts_session():
    s = CheckoutSessionObject(
        id="cs_1",
        metadata={"order_group_id": "g"},
        payment_status="paid",
        customer_email="fallback@example.com",
        customer_details={"email": "buyer@example.com"},
    )
    assert build_event_metadata(s) == {
        "stripeSessionId": "cs_1",
        "metadata": {"order_group_id": "g"},
        "paymentStatus": "paid",
        "customerEmail": "buyer@example.com",
    }
    assert build_event_metadata(CheckoutSessionObject()) is None

def test_event_created_iso():
    assert event_created_iso(1700000000) == "2023-11-14T22:13:20.000Z"
    assert event_created_iso(None) is None

def test_reconciliation_params_converts_units():
    event = StripeEvent.model_validate(_event(metadata={"order_group_id": "g-1"}))
    params = reconciliation_params(event, event.checkout_session(), "g-1")
    assert params["p_amount_total"] == "295.20"
    assert params["p_currency_code"] == "PLN"
    assert params["p_payment_intent"] == "pi_1"
    assert params["p_webhook_event_id"] == "evt_1"
    assert params["p_event_type"] == "checkout.session.completed"

def test_reconciliation_params_handle_missing_amount():
    event = StripeEvent.model_validate(_event(amount_total=None, currency=None, payment_intent={"id": "pi_9"}))
    params = reconciliation_params(event, event.checkout_session(), "g-1")
    assert params["p_amount_total"] is None
    assert params["p_currency_code"] is None
    assert params["p_payment_intent"] == "pi_9"

def test_verify_event_errors(monkeypatch):
    with pytest.raises(MissingSignature):
        verify_event(b"{}", None)
    with pytest.raises(InvalidSignature):
        verify_event(json.dumps(_event()).encode(), "t=1,v1=forged")
    with pytest.raises(InvalidEventPayload):
        verify_event(json.dumps({"type": "checkout.session.completed"}).encode(), VALID)
    monkeypatch.setattr("marketplace.config.STRIPE_WEBHOOK_SECRET", "")
    with pytest.raises(ConfigurationError):
        verify_event(b"{}", VALID)

def test_ignored_event_type(fake_db):
    body = json.dumps(dict(_event(), type="payment_intent.created")).encode()
    assert handle_webhook(body, VALID) == {"received": True}
    assert fake_db.rpc_calls == []

def test_missing_reference_is_acknowledged(fake_db):
    body = json.dumps(_event()).encode()
    assert handle_webhook(body, VALID) == {"received": True}
    assert fake_db.rpc_calls == []

def test_applied_flag_from_list_payload(monkeypatch):
    monkeypatch.setattr(
        "marketplace.checkout.repository.reconcile_order_group_payment",
        lambda client, params: [{"order_group_id": params["p_order_group_id"], "applied": True}],
    )
    body = json.dumps(_event(client_reference_id="g-1")).encode()
    assert handle_webhook(body, VALID) == {"received": True, "orderGroupId": "g-1", "applied": True}

def test_rpc_failure_raises_reconciliation_error(fake_db):
    fake_db.fail_rpc("reconcile_order_group_payment")
    body = json.dumps(_event(client_reference_id="g-1")).encode()
    with pytest.raises(ReconciliationError):
        handle_webhook(body, VALID)
