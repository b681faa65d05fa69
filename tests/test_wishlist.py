import pytest
from conftest import create_product, url_prefix

pytestmark = pytest.mark.asyncio


async def test_wishlist_add_list_remove(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])

    resp = await ac_client.post(f"{url_prefix}/wishlist", headers=buyer["headers"],
                                json={"product_public_id": product["public_id"], "notes": "birthday"})
    assert resp.status_code == 201
    item_id = resp.json()["data"]["id"]

    resp = await ac_client.post(f"{url_prefix}/wishlist", headers=buyer["headers"],
                                json={"product_public_id": product["public_id"]})
    assert resp.status_code == 409

    resp = await ac_client.get(f"{url_prefix}/wishlist", headers=buyer["headers"])
    data = resp.json()["data"]
    assert data["count"] == 1
    assert data["items"][0]["notes"] == "birthday"
    assert data["items"][0]["product"]["slug"] == product["slug"]

    resp = await ac_client.delete(f"{url_prefix}/wishlist/{item_id}", headers=buyer["headers"])
    assert resp.status_code == 200

    resp = await ac_client.delete(f"{url_prefix}/wishlist/{item_id}", headers=buyer["headers"])
    assert resp.status_code == 404


async def test_wishlist_shows_unavailable_products(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    await ac_client.post(f"{url_prefix}/wishlist", headers=buyer["headers"],
                         json={"product_public_id": product["public_id"]})

    await ac_client.delete(f"{url_prefix}/admin/products/{product['public_id']}", headers=vendor["headers"])

    resp = await ac_client.get(f"{url_prefix}/wishlist", headers=buyer["headers"])
    item = resp.json()["data"]["items"][0]
    assert item["product"]["is_available"] is False
