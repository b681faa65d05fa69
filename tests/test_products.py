import uuid
import pytest
from conftest import create_product, new_user, url_prefix

pytestmark = pytest.mark.asyncio


async def test_vendor_creates_product_with_stock(ac_client, vendor):
    product = await create_product(ac_client, vendor["headers"], compare_price=3000, tags=["lamp", "wood"])

    assert product["vendor"]["public_id"] == vendor["vendor_public_id"]
    assert product["base_price"] == 2500
    assert product["inventory"][0]["quantity"] == 10
    assert product["inventory"][0]["available"] == 10

    resp = await ac_client.get(f"{url_prefix}/products/{product['slug']}")
    assert resp.status_code == 200
    detail = resp.json()["data"]
    assert detail["tags"] == ["lamp", "wood"]
    assert detail["rating"] == {"average": None, "count": 0}


async def test_product_listing_filters(ac_client, vendor):
    tag = uuid.uuid4().hex[:8]
    featured = await create_product(ac_client, vendor["headers"], name=f"Featured Rug {tag}", is_featured=True)
    await create_product(ac_client, vendor["headers"], name=f"Plain Rug {tag}")

    resp = await ac_client.get(f"{url_prefix}/products", params={"search": f"rug {tag}"})
    body = resp.json()["data"]
    assert body["count"] == 2
    assert body["total_pages"] == 1

    resp = await ac_client.get(f"{url_prefix}/products", params={"search": tag, "is_featured": True})
    assert [p["slug"] for p in resp.json()["data"]["data"]] == [featured["slug"]]

    resp = await ac_client.get(f"{url_prefix}/products", params={"vendor_id": vendor["vendor_public_id"], "limit": 1})
    body = resp.json()["data"]
    assert body["limit"] == 1
    assert len(body["data"]) == 1
    assert body["total_pages"] == body["count"] >= 2

    resp = await ac_client.get(f"{url_prefix}/products", params={"vendor_id": "garbage"})
    assert resp.json()["data"]["count"] == 0


async def test_search_treats_wildcards_literally(ac_client, vendor):
    tag = uuid.uuid4().hex[:8]
    await create_product(ac_client, vendor["headers"], name=f"Percent {tag}")

    resp = await ac_client.get(f"{url_prefix}/products", params={"search": f"%{tag}_"})
    assert resp.json()["data"]["count"] == 0


async def test_product_category_filter(ac_client, vendor, admin):
    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": f"Rugs {uuid.uuid4().hex[:6]}"})
    category_id = resp.json()["data"]["id"]

    product = await create_product(ac_client, vendor["headers"], category_id=category_id)
    resp = await ac_client.get(f"{url_prefix}/products", params={"category_id": category_id})
    body = resp.json()["data"]
    assert [p["public_id"] for p in body["data"]] == [product["public_id"]]
    assert body["data"][0]["category"]["id"] == category_id


async def test_product_needs_vendor_profile(ac_client):
    seller = await new_user(ac_client, "novendor", role="seller")
    resp = await ac_client.post(f"{url_prefix}/admin/products", headers=seller["headers"],
                                json={"name": "Orphan", "base_price": 100})
    assert resp.status_code == 409


async def test_buyer_cannot_create_products(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/admin/products", headers=buyer["headers"],
                                json={"name": "Nope", "base_price": 100})
    assert resp.status_code == 403


async def test_compare_price_validation(ac_client, vendor):
    resp = await ac_client.post(f"{url_prefix}/admin/products", headers=vendor["headers"],
                                json={"name": "Cheap", "base_price": 500, "compare_price": 100})
    assert resp.status_code == 422


async def test_update_and_delete_product(ac_client, vendor):
    product = await create_product(ac_client, vendor["headers"])
    pid = product["public_id"]

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"],
                                 json={"base_price": 1999, "short_description": "Now cheaper"})
    assert resp.status_code == 200
    assert resp.json()["data"]["product"]["base_price"] == 1999

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"], json={})
    assert resp.status_code == 400

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"],
                                 json={"vendor_id": 1})
    assert resp.status_code == 422

    resp = await ac_client.delete(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"])
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/products/{product['slug']}")
    assert resp.status_code == 404

    resp = await ac_client.delete(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"])
    assert resp.status_code == 404


async def test_product_patch_rejects_nulls_for_required_fields(ac_client, vendor):
    product = await create_product(ac_client, vendor["headers"], compare_price=3000)
    pid = product["public_id"]

    for body in ({"base_price": None}, {"name": None}, {"is_active": None, "description": "x"}):
        resp = await ac_client.patch(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"], json=body)
        assert resp.status_code == 422, body

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{pid}", headers=vendor["headers"],
                                 json={"compare_price": None, "sku": None})
    assert resp.status_code == 200
    assert resp.json()["data"]["product"]["compare_price"] is None


async def test_product_patch_duplicate_sku_conflicts(ac_client, vendor):
    sku = f"SKU-{uuid.uuid4().hex[:8]}"
    await create_product(ac_client, vendor["headers"], sku=sku)
    other = await create_product(ac_client, vendor["headers"])

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{other['public_id']}", headers=vendor["headers"],
                                 json={"sku": sku})
    assert resp.status_code == 409
    assert resp.json()["error"]["code"] == "HTTP_409"

    resp = await ac_client.get(f"{url_prefix}/products/{other['slug']}")
    assert resp.json()["data"]["sku"] is None


async def test_explicit_product_slug_must_be_free(ac_client, vendor):
    slug = f"oak-shelf-{uuid.uuid4().hex[:6]}"
    first = await create_product(ac_client, vendor["headers"], slug=slug)
    assert first["slug"] == slug

    resp = await ac_client.post(f"{url_prefix}/admin/products", headers=vendor["headers"],
                                json={"name": "Oak Shelf", "slug": slug, "base_price": 900})
    assert resp.status_code == 409

    name = f"Oak Shelf {uuid.uuid4().hex[:6]}"
    a = await create_product(ac_client, vendor["headers"], name=name)
    b = await create_product(ac_client, vendor["headers"], name=name)
    assert a["slug"] != b["slug"]


async def test_vendor_cannot_manage_foreign_product(ac_client, vendor):
    product = await create_product(ac_client, vendor["headers"])

    other = await new_user(ac_client, "othershop")
    resp = await ac_client.post(f"{url_prefix}/vendors", headers=other["headers"], json={"business_name": "Other"})
    assert resp.status_code == 201
    resp = await ac_client.post(f"{url_prefix}/auth/refresh", headers={"X-Refresh-Token": other["refresh_token"]})
    headers = {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}

    resp = await ac_client.patch(f"{url_prefix}/admin/products/{product['public_id']}", headers=headers,
                                 json={"base_price": 1})
    assert resp.status_code == 404

    resp = await ac_client.get(f"{url_prefix}/admin/products", headers=headers)
    assert resp.json()["data"]["count"] == 0


async def test_admin_sees_all_products(ac_client, vendor, admin):
    product = await create_product(ac_client, vendor["headers"])
    resp = await ac_client.patch(f"{url_prefix}/admin/products/{product['public_id']}", headers=admin["headers"],
                                 json={"is_featured": True})
    assert resp.status_code == 200


async def test_variants_and_inventory(ac_client, vendor):
    product = await create_product(ac_client, vendor["headers"], stock_qty=None)
    pid = product["public_id"]

    resp = await ac_client.post(f"{url_prefix}/admin/products/{pid}/variants", headers=vendor["headers"],
                                json={"name": "Large", "price": 3200, "attributes": {"size": "L"}, "stock_qty": 4})
    assert resp.status_code == 201
    variant = resp.json()["data"]
    assert variant["attributes"] == {"size": "L"}

    resp = await ac_client.put(f"{url_prefix}/admin/products/{pid}/inventory", headers=vendor["headers"],
                               json={"variant_id": variant["id"], "quantity": 2, "low_stock_threshold": 3})
    assert resp.status_code == 200
    inv = resp.json()["data"]
    assert inv["quantity"] == 2
    assert inv["low_stock"] is True

    resp = await ac_client.put(f"{url_prefix}/admin/products/{pid}/inventory", headers=vendor["headers"],
                               json={"quantity": 1, "reserved_quantity": 5})
    assert resp.status_code == 422

    resp = await ac_client.put(f"{url_prefix}/admin/products/{pid}/inventory", headers=vendor["headers"],
                               json={"variant_id": 999999, "quantity": 1})
    assert resp.status_code == 404

    resp = await ac_client.get(f"{url_prefix}/products/{product['slug']}")
    detail = resp.json()["data"]
    assert [v["name"] for v in detail["variants"]] == ["Large"]
    assert detail["inventory"][0]["variant_id"] == variant["id"]


async def test_unknown_product(ac_client):
    resp = await ac_client.get(f"{url_prefix}/products/no-such-product")
    assert resp.status_code == 404
    assert resp.json()["status"] == "error"
