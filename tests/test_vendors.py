import pytest
from conftest import new_user, url_prefix

pytestmark = pytest.mark.asyncio


async def test_register_vendor_promotes_buyer(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/vendors", headers=buyer["headers"],
                                json={"business_name": "Tidy Corner", "business_type": "company",
                                      "business_email": "Hello@TidyCorner.com"})
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["refresh_required"] is True
    assert data["vendor"]["business_email"] == "hello@tidycorner.com"

    # the old token is stale after the role change, a refresh picks up the new role
    resp = await ac_client.get(f"{url_prefix}/vendors/me", headers=buyer["headers"])
    assert resp.status_code == 401

    resp = await ac_client.post(f"{url_prefix}/auth/refresh", headers={"X-Refresh-Token": buyer["refresh_token"]})
    assert resp.status_code == 200
    headers = {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}

    resp = await ac_client.get(f"{url_prefix}/vendors/me", headers=headers)
    assert [v["business_name"] for v in resp.json()["data"]] == ["Tidy Corner"]


async def test_second_vendor_profile_conflicts(ac_client, vendor):
    resp = await ac_client.post(f"{url_prefix}/vendors", headers=vendor["headers"], json={"business_name": "Again"})
    assert resp.status_code == 409


async def test_public_vendor_listing(ac_client, vendor):
    resp = await ac_client.get(f"{url_prefix}/vendors")
    assert resp.status_code == 200
    assert vendor["vendor_public_id"] in [v["public_id"] for v in resp.json()["data"]]

    resp = await ac_client.get(f"{url_prefix}/vendors/{vendor['vendor_public_id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["user"]["username"] == vendor["username"]

    resp = await ac_client.get(f"{url_prefix}/vendors/not-a-uuid")
    assert resp.status_code == 404


async def test_only_owner_updates_vendor(ac_client, vendor):
    resp = await ac_client.patch(f"{url_prefix}/vendors/{vendor['vendor_public_id']}", headers=vendor["headers"],
                                 json={"description": "Hand made goods"})
    assert resp.status_code == 200
    assert resp.json()["data"]["description"] == "Hand made goods"

    stranger = await new_user(ac_client, "stranger")
    resp = await ac_client.patch(f"{url_prefix}/vendors/{vendor['vendor_public_id']}", headers=stranger["headers"],
                                 json={"description": "Hijacked"})
    assert resp.status_code == 404

    resp = await ac_client.patch(f"{url_prefix}/vendors/{vendor['vendor_public_id']}", headers=vendor["headers"],
                                 json={})
    assert resp.status_code == 400


async def test_admin_verifies_vendor(ac_client, vendor, admin):
    resp = await ac_client.patch(f"{url_prefix}/admin/vendors/{vendor['vendor_public_id']}/verify",
                                 headers=vendor["headers"], json={"is_verified": True})
    assert resp.status_code == 403

    resp = await ac_client.patch(f"{url_prefix}/admin/vendors/{vendor['vendor_public_id']}/verify",
                                 headers=admin["headers"], json={"is_verified": True})
    assert resp.status_code == 200
    assert resp.json()["data"]["is_verified"] is True


async def test_deactivated_vendor_hidden(ac_client, vendor, admin):
    resp = await ac_client.patch(f"{url_prefix}/admin/vendors/{vendor['vendor_public_id']}/verify",
                                 headers=admin["headers"], json={"is_verified": False, "is_active": False})
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/vendors/{vendor['vendor_public_id']}")
    assert resp.status_code == 404
