from fastapi import Depends, FastAPI, Request
from fastapi.testclient import TestClient

from marketplace.utils.rate_limit import optional_rate_limit, rate_limit_health_info


def _make_app(times=2, seconds=60):
    app = FastAPI()

    @app.get("/limitedA", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_a():
        return {"ok": True}

    @app.get("/limitedB", dependencies=[Depends(optional_rate_limit(times, seconds))])
    def limited_b():
        return {"ok": True}

    @app.get("/rl_info")
    def rl_info(request: Request):
        return rate_limit_health_info(request)

    return app


def test_rate_limit_fallback_blocks_after_limit(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=2, seconds=60))

    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 200
    assert client.get("/limitedA").status_code == 429

def test_rate_limit_is_per_path_and_token(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    client = TestClient(_make_app(times=1, seconds=60))
    headers = {"Authorization": "Bearer buyer-1"}

    assert client.get("/limitedA", headers=headers).status_code == 200
    assert client.get("/limitedA", headers=headers).status_code == 429
    # Autre chemin: compteur séparé
    assert client.get("/limitedB", headers=headers).status_code == 200
    # Autre acheteur: compteur séparé
    assert client.get("/limitedA", headers={"Authorization": "Bearer buyer-2"}).status_code == 200

def test_rate_limit_disabled_flag_lets_requests_through(monkeypatch):
    monkeypatch.delenv("LOCAL_RATE_LIMIT_FALLBACK", raising=False)
    app = _make_app(times=1, seconds=60)
    app.state.rate_limit_enabled = False
    client = TestClient(app)
    assert all(client.get("/limitedA").status_code == 200 for _ in range(3))

def test_health_info_reports_state(monkeypatch):
    monkeypatch.setenv("LOCAL_RATE_LIMIT_FALLBACK", "1")
    app = _make_app()
    app.state.rate_limit_enabled = True
    info = TestClient(app).get("/rl_info").json()
    assert info["enabled"] is True
    assert info["backend"] == "memory"
