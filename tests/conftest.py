import os

# Pas de Redis pendant les tests (lifespan)
os.environ.setdefault("DISABLE_FASTAPI_LIMITER_INIT_FOR_TESTS", "1")

import copy
import itertools
from typing import Any, Dict, Generator, List

import pytest
from fastapi.testclient import TestClient

from marketplace.app import app as fastapi_app
from marketplace.utils.security import require_user

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "tests/unit/" in nodeid:
            item.add_marker(pytest.mark.unit)
        elif "tests/integration/" in nodeid:
            item.add_marker(pytest.mark.integration)


# --- Supabase en mémoire ---

class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    """Sous-ensemble du query builder postgrest utilisé par checkout.repository."""

    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.columns = "*"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.single = False

    def select(self, columns: str = "*"):
        self.columns = columns
        return self

    def insert(self, payload):
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, values):
        self.op = "update"
        self.payload = values
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def maybe_single(self):
        self.single = True
        return self

    def matches(self, row: Dict[str, Any]) -> bool:
        return all(row.get(col) == val for col, val in self.filters)

    def execute(self):
        return self.db.execute(self)


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        return self.db.execute_rpc(self.name, self.params)


class FakeSupabase:
    """
    Base en mémoire: tables (listes de dicts), filtres eq, insert/update,
    procédure reconcile_order_group_payment idempotente par identifiant d'événement.
    fail(table, op) / fail_rpc(name) simulent une erreur PostgREST.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.failures = set()
        self.calls: List[tuple] = []
        self.rpc_calls: List[tuple] = []
        self.processed_events: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1)

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    def fail(self, table: str, op: str) -> None:
        self.failures.add((table, op))

    def fail_rpc(self, name: str) -> None:
        self.failures.add(("rpc", name))

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def execute(self, q: FakeQuery) -> FakeResponse:
        self.calls.append((q.table_name, q.op, copy.deepcopy(q.payload), list(q.filters)))
        if (q.table_name, q.op) in self.failures:
            raise RuntimeError(f"simulated {q.op} failure on {q.table_name}")
        rows = self.rows(q.table_name)

        if q.op == "insert":
            batch = q.payload if isinstance(q.payload, list) else [q.payload]
            inserted = []
            for row in batch:
                stored = copy.deepcopy(row)
                stored.setdefault("id", f"{q.table_name}-{next(self._ids)}")
                rows.append(stored)
                inserted.append(copy.deepcopy(stored))
            return FakeResponse(inserted)

        if q.op == "update":
            updated = []
            for row in rows:
                if q.matches(row):
                    row.update(copy.deepcopy(q.payload))
                    updated.append(copy.deepcopy(row))
            return FakeResponse(updated)

        selected = [copy.deepcopy(r) for r in rows if q.matches(r)]
        if q.table_name == "order_groups" and "orders(" in q.columns:
            for group in selected:
                group["orders"] = [copy.deepcopy(o) for o in self.rows("orders") if o.get("order_group_id") == group["id"]]
        if q.single:
            # supabase-py: maybe_single() sans ligne => None
            return FakeResponse(selected[0]) if selected else None
        return FakeResponse(selected)

    def execute_rpc(self, name: str, params: Dict[str, Any]) -> FakeResponse:
        self.rpc_calls.append((name, copy.deepcopy(params)))
        if ("rpc", name) in self.failures:
            raise RuntimeError(f"simulated rpc failure {name}")
        event_id = params["p_webhook_event_id"]
        group_id = params["p_order_group_id"]
        if event_id in self.processed_events:
            return FakeResponse({"order_group_id": group_id, "applied": False})

        orders_updated = 0
        for group in self.rows("order_groups"):
            if group["id"] == group_id:
                group["status"] = "paid"
        for order in self.rows("orders"):
            if order.get("order_group_id") == group_id:
                order["status"] = "paid"
                orders_updated += 1
        self.processed_events[event_id] = copy.deepcopy(params)
        return FakeResponse({"order_group_id": group_id, "applied": True, "orders_updated": orders_updated})

    # --- jeux de données ---

    def seed_cart(self, user_id: str, items: List[Dict[str, Any]], currency_code: str = "PLN", cart_id: str = "cart-1"):
        self.rows("carts").append({"id": cart_id, "user_id": user_id, "currency_code": currency_code, "metadata": {"channel": "web"}})
        for idx, item in enumerate(items, start=1):
            row = {"id": f"ci-{idx}", "cart_id": cart_id, "currency_code": currency_code, "metadata": None}
            row.update(item)
            self.rows("cart_items").append(row)

    def seed_profile(self, user_id: str, full_name=None, default_locale=None):
        self.rows("profiles").append({"user_id": user_id, "full_name": full_name, "default_locale": default_locale})


def cart_line(tenant_id: str, product_id: str, unit_price, quantity, vat_rate="23", name=None, **extra) -> Dict[str, Any]:
    line = {
        "tenant_id": tenant_id,
        "product_id": product_id,
        "quantity": quantity,
        "unit_price": unit_price,
        "product": {
            "id": product_id,
            "tenant_id": tenant_id,
            "name": name or f"Produit {product_id}",
            "slug": f"produit-{product_id}",
            "sku": f"SKU-{product_id}",
            "vat_rate": vat_rate,
            "currency_code": "PLN",
        },
    }
    line.update(extra)
    return line


@pytest.fixture
def cart_line_factory():
    return cart_line


@pytest.fixture(scope="function", autouse=True)
def fake_db(monkeypatch) -> FakeSupabase:
    """Tous les clients Supabase (anon, utilisateur, service-role) pointent sur la même base en mémoire."""
    db = FakeSupabase()
    monkeypatch.setattr("marketplace.infra.supabase_client.get_supabase", lambda: db)
    monkeypatch.setattr("marketplace.infra.supabase_client.get_service_supabase", lambda: db)
    monkeypatch.setattr("marketplace.infra.supabase_client.get_user_supabase", lambda token: db)
    return db


class StripeStub:
    """Remplace l'adaptateur Stripe: enregistre les sessions créées, vérifie une signature fixe."""

    VALID_SIGNATURE = "t=1,v1=valid"

    def __init__(self):
        self.sessions: List[Dict[str, Any]] = []
        self.fail_create = False
        self.payment_intent = None

    def create_session(self, **params):
        if self.fail_create:
            raise RuntimeError("stripe unavailable")
        self.sessions.append(params)
        sid = f"cs_test_{len(self.sessions)}"
        return {"id": sid, "url": f"https://checkout.stripe.test/c/pay/{sid}", "payment_intent": self.payment_intent}

    def construct_event(self, payload, sig_header):
        import json
        if sig_header != self.VALID_SIGNATURE:
            raise ValueError("No signatures found matching the expected signature for payload")
        return json.loads(payload)


@pytest.fixture(autouse=True)
def stripe_stub(monkeypatch) -> StripeStub:
    stub = StripeStub()
    monkeypatch.setattr("marketplace.checkout.stripe_client.create_session", stub.create_session)
    monkeypatch.setattr("marketplace.checkout.stripe_client.construct_event", stub.construct_event)
    monkeypatch.setattr("marketplace.config.STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setattr("marketplace.config.SITE_URL", "")
    return stub


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    with TestClient(app) as c:
        yield c

@pytest.fixture
def fake_user() -> Dict[str, Any]:
    return {
        "id": "test-user",
        "email": "test@example.com",
        "metadata": {"full_name": "Test User"},
        "token": "fake-token",
    }

# Simuler un utilisateur authentifié pour les endpoints protégés
@pytest.fixture(autouse=True)
def _override_require_user(app, fake_user):
    app.dependency_overrides[require_user] = lambda: fake_user
    try:
        yield
    finally:
        app.dependency_overrides.pop(require_user, None)
