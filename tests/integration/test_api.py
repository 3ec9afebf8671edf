from __future__ import annotations

import time

import jwt
import pytest
from fastapi.testclient import TestClient

from order_sync.api.deps.conversions import get_purchase_dedupe
from order_sync.api.deps.db import get_db
from order_sync.infrastructure.conversions.fake import FakeConversionsAdapter
from order_sync.infrastructure.db.models import Sale

PAID = {
    "event": "order.paid",
    "data": {"order_id": "1001", "customer_email": "ana@example.com", "total_amount": "50.00"},
}


@pytest.fixture
def conversions() -> FakeConversionsAdapter:
    return FakeConversionsAdapter()


@pytest.fixture
def client(session_factory, settings, conversions):
    from order_sync.api.main import create_app

    app = create_app()
    app.state.settings = settings
    app.state.conversions = conversions

    def _db():
        s = session_factory()
        try:
            yield s
        finally:
            s.close()

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_purchase_dedupe] = lambda: None
    with TestClient(app) as c:
        yield c


def _bearer(settings, **claims) -> dict[str, str]:
    now = int(time.time())
    base = {"iss": settings.jwt_issuer, "sub": "ops@demo", "iat": now, "exp": now + 60}
    base.update(claims)
    return {"Authorization": "Bearer " + jwt.encode(base, settings.jwt_secret, algorithm="HS256")}


class TestAppmaxWebhook:
    def test_paid_order_dispatches_purchase(self, client, signed, conversions, fetch) -> None:
        raw, headers = signed(PAID)
        resp = client.post("/v1/webhooks/appmax", content=raw, headers=headers)

        assert resp.status_code == 200
        assert resp.json() == {"success": True, "status": "paid", "order_id": "1001"}
        assert [e.order_id for e in conversions.sent] == ["1001"]
        assert fetch(Sale)[0].status == "paid"
        assert resp.headers["X-Correlation-Id"]

    def test_bad_signature_is_401(self, client, conversions) -> None:
        resp = client.post(
            "/v1/webhooks/appmax", content=b'{"event":"order.paid"}', headers={"X-Appmax-Signature": "00"}
        )
        assert resp.status_code == 401
        assert resp.json()["detail"]["detail"] == "invalid signature"
        assert conversions.sent == []

    def test_invalid_json_is_400(self, client, signed) -> None:
        raw, headers = signed(b"{oops")
        resp = client.post("/v1/webhooks/appmax", content=raw, headers=headers)
        assert resp.status_code == 400

    def test_ignored_event_is_acknowledged(self, client, signed) -> None:
        raw, headers = signed({"event": "customer.created"})
        resp = client.post("/v1/webhooks/appmax", content=raw, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["message"] == "event ignored"

    def test_failing_conversions_do_not_fail_the_webhook(self, client, signed, fetch) -> None:
        client.app.state.conversions = FakeConversionsAdapter(fail=True)
        raw, headers = signed(PAID)
        resp = client.post("/v1/webhooks/appmax", content=raw, headers=headers)
        assert resp.status_code == 200
        assert len(fetch(Sale)) == 1


class TestWebhookLogs:
    def test_requires_token(self, client) -> None:
        assert client.get("/v1/webhook-logs").status_code == 401

    def test_requires_permission(self, client, settings) -> None:
        resp = client.get("/v1/webhook-logs", headers=_bearer(settings, perms=["other"]))
        assert resp.status_code == 403

    def test_lists_deliveries(self, client, settings, signed) -> None:
        raw, headers = signed(PAID)
        client.post("/v1/webhooks/appmax", content=raw, headers=headers)
        client.post("/v1/webhooks/appmax", content=b"{}", headers={"X-Appmax-Signature": "bad"})

        resp = client.get(
            "/v1/webhook-logs",
            params={"endpoint": "/v1/webhooks/appmax"},
            headers=_bearer(settings, perms=["webhooks:read"]),
        )
        assert resp.status_code == 200
        statuses = sorted(entry["response_status"] for entry in resp.json())
        assert statuses == [200, 401]

    def test_limit_is_bounded(self, client, settings) -> None:
        resp = client.get("/v1/webhook-logs?limit=500", headers=_bearer(settings, roles=["admin"]))
        assert resp.status_code == 422


class TestOps:
    def test_healthz(self, client) -> None:
        assert client.get("/healthz").json() == {"status": "ok"}

    def test_metrics(self, client, signed) -> None:
        raw, headers = signed({"event": "test"})
        client.post("/v1/webhooks/appmax", content=raw, headers=headers)
        body = client.get("/metrics").text
        assert "webhook_deliveries_total" in body
