import pytest
from conftest import url_prefix

pytestmark = pytest.mark.asyncio


async def test_health(ac_client):
    resp = await ac_client.get(f"{url_prefix}/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert resp.headers.get("X-Request-ID")
    assert body["request_id"] == resp.headers["X-Request-ID"]


async def test_request_id_is_echoed(ac_client):
    resp = await ac_client.get(f"{url_prefix}/health", headers={"X-Request-ID": "trace-abc-123"})
    assert resp.headers["X-Request-ID"] == "trace-abc-123"


async def test_unknown_route_uses_error_envelope(ac_client, buyer):
    resp = await ac_client.get(f"{url_prefix}/nowhere", headers=buyer["headers"])
    assert resp.status_code == 404
    assert resp.json()["status"] == "error"
