from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt

from services.wallet_service.app import settings as wallet_settings_module
from services.wallet_service.app.dependencies import get_wallet_gateway
from services.wallet_service.app.luxor import LuxorError
from services.wallet_service.app.main import create_app


def _token(user_id: str, role: str = "CUSTOMER", secret: str | None = None) -> str:
    settings = wallet_settings_module.wallet_settings()
    payload = {"sub": user_id, "role": role, "iss": settings.jwt_issuer, "aud": settings.jwt_audience}
    return jwt.encode(payload, secret or settings.secret_key, algorithm="HS256")


def _auth(user_id: str, role: str = "CUSTOMER") -> dict[str, str]:
    return {"Authorization": f"Bearer {_token(user_id, role)}"}


@pytest_asyncio.fixture()
async def api(monkeypatch, gateway):
    wallet_settings_module.wallet_settings.cache_clear()
    monkeypatch.setattr("services.wallet_service.app.main.setup_instrumentation", lambda app: None)

    app = create_app()
    app.dependency_overrides[get_wallet_gateway] = lambda: gateway
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    wallet_settings_module.wallet_settings.cache_clear()


@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(api, luxor):
    response = await api.get("/api/v1/wallet/settings")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "UNAUTHORIZED"
    assert luxor.calls == []


@pytest.mark.asyncio
async def test_token_signed_with_wrong_key_is_rejected(api):
    headers = {"Authorization": f"Bearer {_token('u2', secret='not-the-key')}"}
    response = await api.get("/api/v1/wallet/settings", headers=headers)
    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token"


@pytest.mark.asyncio
async def test_returns_settings_with_cache_headers(api, luxor, payment_settings):
    luxor.queue(payment_settings())

    response = await api.get("/api/v1/wallet/settings", params={"currency": "BTC"}, headers=_auth("u2"))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["stale"] is False
    assert body["data"]["addresses"][0]["external_address"] == "bc1qcustomer"
    assert response.headers["cache-control"] == "max-age=600, private"
    assert response.headers["x-request-id"]


@pytest.mark.asyncio
async def test_token_cookie_is_accepted_and_currency_defaults_to_btc(api, luxor, payment_settings):
    luxor.queue(payment_settings())
    response = await api.get("/api/v1/wallet/settings", headers={"Cookie": f"token={_token('u2')}"})

    assert response.status_code == 200
    assert luxor.calls == [("BTC", "acme-mining")]


@pytest.mark.asyncio
async def test_customer_cannot_read_other_users_settings(api, luxor):
    response = await api.get("/api/v1/wallet/settings", params={"customerId": "u2"}, headers=_auth("u9"))
    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"
    assert luxor.calls == []


@pytest.mark.asyncio
async def test_admin_can_read_customer_settings(api, luxor, payment_settings):
    luxor.queue(payment_settings())
    response = await api.get(
        "/api/v1/wallet/settings",
        params={"customerId": "u2"},
        headers=_auth("admin-1", "SUPER_ADMIN"),
    )
    assert response.status_code == 200
    assert luxor.calls == [("BTC", "acme-mining")]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("user_id", "status", "code"),
    [
        ("u1", 422, "NO_LUXOR_CONFIG"),
        ("ghost", 404, "USER_NOT_FOUND"),
    ],
)
async def test_directory_failures_map_to_statuses(api, luxor, user_id, status, code):
    response = await api.get("/api/v1/wallet/settings", headers=_auth(user_id))
    assert response.status_code == status
    assert response.json()["code"] == code
    assert response.headers["cache-control"] == "no-store, no-cache, must-revalidate"
    assert luxor.calls == []


@pytest.mark.asyncio
async def test_rate_limit_without_cache_returns_retry_after(api, luxor, rate_limited):
    luxor.queue(rate_limited())

    response = await api.get("/api/v1/wallet/settings", headers=_auth("u2"))

    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"
    body = response.json()
    assert body["code"] == "LUXOR_RATE_LIMIT"
    assert body["retry_after"] == 60


@pytest.mark.asyncio
async def test_rate_limit_with_stale_cache_returns_stale_settings(api, luxor, clock, payment_settings, rate_limited):
    luxor.queue(payment_settings(), rate_limited())

    await api.get("/api/v1/wallet/settings", headers=_auth("u2"))
    clock.advance(601)
    response = await api.get("/api/v1/wallet/settings", headers=_auth("u2"))

    assert response.status_code == 200
    assert response.json()["stale"] is True
    assert response.headers["cache-control"] == "max-age=60, private"
    assert response.headers["retry-after"] == "60"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("upstream_status", "status", "code"),
    [
        (403, 403, "LUXOR_FORBIDDEN"),
        (502, 503, "LUXOR_UNAVAILABLE"),
        (404, 404, "LUXOR_ERROR"),
    ],
)
async def test_upstream_errors_map_to_statuses(api, luxor, upstream_status, status, code):
    luxor.queue(LuxorError(upstream_status, "upstream failure"))

    response = await api.get("/api/v1/wallet/settings", headers=_auth("u2"))

    assert response.status_code == status
    assert response.json()["code"] == code


@pytest.mark.asyncio
async def test_unexpected_client_failure_maps_to_service_unavailable(api, luxor):
    luxor.queue(RuntimeError("socket closed"))

    response = await api.get("/api/v1/wallet/settings", headers=_auth("u2"))

    assert response.status_code == 503
    body = response.json()
    assert body["code"] == "LUXOR_UNAVAILABLE"
    assert "socket closed" not in response.text


@pytest.mark.asyncio
async def test_currency_must_be_a_plain_ticker(api, luxor):
    response = await api.get("/api/v1/wallet/settings", params={"currency": "BT_C"}, headers=_auth("u2"))
    assert response.status_code == 422
    assert luxor.calls == []

    invalidate = await api.post(
        "/api/v1/wallet/settings/invalidate",
        json={"userId": "u2", "currency": "B_TC"},
        headers=_auth("admin-1", "ADMIN"),
    )
    assert invalidate.status_code == 422


@pytest.mark.asyncio
async def test_invalidate_requires_admin(api):
    response = await api.post(
        "/api/v1/wallet/settings/invalidate",
        json={"userId": "u2", "currency": "BTC"},
        headers=_auth("u2"),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_invalidate_forces_refetch(api, luxor, payment_settings):
    luxor.queue(payment_settings("bc1qold"), payment_settings("bc1qnew"))
    await api.get("/api/v1/wallet/settings", headers=_auth("u2"))

    response = await api.post(
        "/api/v1/wallet/settings/invalidate",
        json={"userId": "u2", "currency": "BTC"},
        headers=_auth("admin-1", "ADMIN"),
    )
    assert response.status_code == 200
    assert response.json()["message"] == "Cache invalidated for wallet_u2_BTC"

    refreshed = await api.get("/api/v1/wallet/settings", headers=_auth("u2"))
    assert refreshed.json()["data"]["addresses"][0]["external_address"] == "bc1qnew"
    assert len(luxor.calls) == 2


@pytest.mark.asyncio
async def test_admin_invalidate_without_currency_clears_all_currencies(api, luxor, payment_settings):
    luxor.queue(payment_settings(), payment_settings())
    await api.get("/api/v1/wallet/settings", params={"currency": "BTC"}, headers=_auth("u2"))
    await api.get("/api/v1/wallet/settings", params={"currency": "DOGE"}, headers=_auth("u2"))

    response = await api.post(
        "/api/v1/wallet/settings/invalidate",
        json={"userId": "u2"},
        headers=_auth("admin-1", "ADMIN"),
    )
    assert response.status_code == 200
    assert response.json()["removed"] == 2

    stats = await api.get("/api/v1/wallet/settings/cache", headers=_auth("admin-1", "ADMIN"))
    assert stats.json() == {"size": 0, "keys": [], "ttl_seconds": 600}


@pytest.mark.asyncio
async def test_invalidate_requires_user_id(api):
    response = await api.post(
        "/api/v1/wallet/settings/invalidate",
        json={"currency": "BTC"},
        headers=_auth("admin-1", "ADMIN"),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_healthz_and_metrics(api, luxor, payment_settings):
    health = await api.get("/api/v1/healthz")
    assert health.status_code == 200
    assert health.json()["service"] == "wallet-service"

    luxor.queue(payment_settings())
    await api.get("/api/v1/wallet/settings", headers=_auth("u2"))
    metrics = await api.get("/api/v1/metrics")
    assert "wallet_settings_outcomes_total" in metrics.text
