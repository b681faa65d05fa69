import pytest
from bazaar.products.constants import MAX_PAGE_SIZE
from conftest import create_product, new_user, url_prefix

pytestmark = pytest.mark.asyncio


async def test_review_needs_approval(ac_client, vendor, buyer, admin):
    product = await create_product(ac_client, vendor["headers"])
    url = f"{url_prefix}/products/{product['slug']}/reviews"

    resp = await ac_client.post(url, headers=buyer["headers"],
                                json={"rating": 4, "title": " Solid <b>lamp</b> ", "content": "Bright enough"})
    assert resp.status_code == 201
    review = resp.json()["data"]
    assert review["is_approved"] is False
    assert review["is_verified_purchase"] is False
    assert review["title"] == "Solid blamp/b"
    assert review["reviewer"]["first_name"] == "Test"

    resp = await ac_client.get(url)
    assert resp.json()["data"]["count"] == 0

    resp = await ac_client.get(f"{url_prefix}/admin/reviews/pending", headers=admin["headers"], params={"limit": MAX_PAGE_SIZE})
    assert review["public_id"] in [r["public_id"] for r in resp.json()["data"]["data"]]

    resp = await ac_client.patch(f"{url_prefix}/admin/reviews/{review['public_id']}", headers=admin["headers"],
                                 json={"is_approved": True})
    assert resp.status_code == 200
    assert resp.json()["data"]["is_approved"] is True

    resp = await ac_client.get(url)
    body = resp.json()["data"]
    assert body["count"] == 1
    assert body["data"][0]["public_id"] == review["public_id"]


async def test_one_review_per_product(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    url = f"{url_prefix}/products/{product['slug']}/reviews"

    resp = await ac_client.post(url, headers=buyer["headers"], json={"rating": 5})
    assert resp.status_code == 201
    resp = await ac_client.post(url, headers=buyer["headers"], json={"rating": 1})
    assert resp.status_code == 409


async def test_review_rating_bounds(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    resp = await ac_client.post(f"{url_prefix}/products/{product['slug']}/reviews", headers=buyer["headers"],
                                json={"rating": 6})
    assert resp.status_code == 422


async def test_verified_purchase_review(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    await ac_client.post(f"{url_prefix}/cart/items", headers=buyer["headers"],
                         json={"product_public_id": product["public_id"]})
    resp = await ac_client.post(f"{url_prefix}/orders", headers=buyer["headers"], json={})
    order_pid = resp.json()["data"]["public_id"]

    resp = await ac_client.post(f"{url_prefix}/products/{product['slug']}/reviews", headers=buyer["headers"],
                                json={"rating": 5, "order_public_id": order_pid})
    assert resp.status_code == 201
    assert resp.json()["data"]["is_verified_purchase"] is True

    other = await new_user(ac_client, "faker")
    resp = await ac_client.post(f"{url_prefix}/products/{product['slug']}/reviews", headers=other["headers"],
                                json={"rating": 5, "order_public_id": order_pid})
    assert resp.status_code == 404


async def test_delete_own_review_only(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    resp = await ac_client.post(f"{url_prefix}/products/{product['slug']}/reviews", headers=buyer["headers"],
                                json={"rating": 3})
    review_pid = resp.json()["data"]["public_id"]

    other = await new_user(ac_client, "vandal")
    resp = await ac_client.delete(f"{url_prefix}/reviews/{review_pid}", headers=other["headers"])
    assert resp.status_code == 404

    resp = await ac_client.delete(f"{url_prefix}/reviews/{review_pid}", headers=buyer["headers"])
    assert resp.status_code == 200

    # a deleted review frees the slot
    resp = await ac_client.post(f"{url_prefix}/products/{product['slug']}/reviews", headers=buyer["headers"],
                                json={"rating": 4})
    assert resp.status_code == 201


async def test_deleted_verified_review_frees_the_slot(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    await ac_client.post(f"{url_prefix}/cart/items", headers=buyer["headers"],
                         json={"product_public_id": product["public_id"]})
    resp = await ac_client.post(f"{url_prefix}/orders", headers=buyer["headers"], json={})
    order_pid = resp.json()["data"]["public_id"]
    url = f"{url_prefix}/products/{product['slug']}/reviews"

    resp = await ac_client.post(url, headers=buyer["headers"], json={"rating": 2, "order_public_id": order_pid})
    assert resp.status_code == 201
    review_pid = resp.json()["data"]["public_id"]

    resp = await ac_client.post(url, headers=buyer["headers"], json={"rating": 3, "order_public_id": order_pid})
    assert resp.status_code == 409

    resp = await ac_client.delete(f"{url_prefix}/reviews/{review_pid}", headers=buyer["headers"])
    assert resp.status_code == 200

    resp = await ac_client.post(url, headers=buyer["headers"], json={"rating": 4, "order_public_id": order_pid})
    assert resp.status_code == 201
    assert resp.json()["data"]["is_verified_purchase"] is True


async def test_moderation_requires_permission(ac_client, buyer):
    resp = await ac_client.get(f"{url_prefix}/admin/reviews/pending", headers=buyer["headers"])
    assert resp.status_code == 403


async def test_rating_upsert_and_summary(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    url = f"{url_prefix}/products/{product['slug']}/rating"

    resp = await ac_client.put(url, headers=buyer["headers"], json={"rating": 2})
    assert resp.status_code == 201
    assert resp.json()["data"]["summary"] == {"average": 2.0, "count": 1}

    resp = await ac_client.put(url, headers=buyer["headers"], json={"rating": 4})
    assert resp.status_code == 200
    assert resp.json()["data"]["created"] is False

    other = await new_user(ac_client, "rater")
    await ac_client.put(url, headers=other["headers"], json={"rating": 5})

    resp = await ac_client.get(url)
    assert resp.json()["data"] == {"average": 4.5, "count": 2}

    resp = await ac_client.get(f"{url_prefix}/products/{product['slug']}")
    assert resp.json()["data"]["rating"]["count"] == 2


async def test_rating_requires_auth(ac_client, vendor):
    product = await create_product(ac_client, vendor["headers"])
    resp = await ac_client.put(f"{url_prefix}/products/{product['slug']}/rating", json={"rating": 3})
    assert resp.status_code == 401
