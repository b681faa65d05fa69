import re
from datetime import datetime, timezone
import pytest
from bazaar.orders.utils import can_transition, compute_order_totals, generate_order_number
from conftest import create_product, new_user, url_prefix

pytestmark = pytest.mark.asyncio

ADDRESS = {"full_name": "Jo Buyer", "line1": "1 Market St", "city": "Springfield", "postal_code": "12345",
           "country": "US"}


def test_order_number_format():
    number = generate_order_number(datetime(2024, 3, 9, tzinfo=timezone.utc))
    assert re.fullmatch(r"BZ-20240309-[A-Z0-9]{8}", number)


def test_compute_order_totals():
    lines = [{"unit_price": 1250, "quantity": 2}, {"unit_price": 99, "quantity": 1}]
    totals = compute_order_totals(lines, tax_rate=0.1, shipping=500, discount=100)
    assert totals == {"subtotal": 2599, "tax_amount": 260, "shipping_amount": 500, "discount_amount": 100,
                      "total_amount": 3259}


def test_discount_never_goes_negative():
    totals = compute_order_totals([{"unit_price": 100, "quantity": 1}], discount=10_000)
    assert totals["total_amount"] == 0


@pytest.mark.parametrize("current,target,ok", [
    ("pending", "confirmed", True),
    ("pending", "shipped", False),
    ("shipped", "returned", True),
    ("delivered", "cancelled", False),
    ("refunded", "pending", False),
    (None, "pending", True),
])
def test_status_transitions(current, target, ok):
    assert can_transition(current, target) is ok


async def _stock(ac, slug):
    resp = await ac.get(f"{url_prefix}/products/{slug}")
    return resp.json()["data"]["inventory"][0]["quantity"]


async def _fill_cart(ac, headers, product, quantity=1):
    resp = await ac.post(f"{url_prefix}/cart/items", headers=headers,
                         json={"product_public_id": product["public_id"], "quantity": quantity})
    assert resp.status_code in (200, 201), resp.text


async def _place(ac, headers, **payload):
    resp = await ac.post(f"{url_prefix}/orders", headers=headers,
                         json={"shipping_address": ADDRESS, **payload})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def test_place_order_from_cart(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"], base_price=1200, stock_qty=5)
    await _fill_cart(ac_client, buyer["headers"], product, quantity=2)

    order = await _place(ac_client, buyer["headers"], notes="  leave at the door  ")

    assert order["status"]["name"] == "pending"
    assert order["subtotal"] == 2400
    assert order["total_amount"] == 2400
    assert order["currency"] == "USD"
    assert order["notes"] == "leave at the door"
    assert order["shipping_address"]["city"] == "Springfield"
    assert order["order_number"].startswith("BZ-")
    [item] = order["items"]
    assert item["quantity"] == 2
    assert item["unit_price"] == 1200
    assert item["product_snapshot"]["name"] == product["name"]
    assert item["vendor"]["public_id"] == vendor["vendor_public_id"]

    assert await _stock(ac_client, product["slug"]) == 3

    resp = await ac_client.get(f"{url_prefix}/cart", headers=buyer["headers"])
    assert resp.json()["data"]["items"] == []

    resp = await ac_client.get(f"{url_prefix}/orders", headers=buyer["headers"])
    assert [o["public_id"] for o in resp.json()["data"]["data"]] == [order["public_id"]]


async def test_empty_cart_cannot_order(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/orders", headers=buyer["headers"], json={})
    assert resp.status_code == 409


async def test_insufficient_stock_rejected(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"], stock_qty=1)
    await _fill_cart(ac_client, buyer["headers"], product, quantity=3)

    resp = await ac_client.post(f"{url_prefix}/orders", headers=buyer["headers"], json={})
    assert resp.status_code == 409
    errors = resp.json()["error"]["details"]["message"]["errors"]
    assert "available=1" in errors[0]["detail"]

    # nothing changed
    assert await _stock(ac_client, product["slug"]) == 1
    resp = await ac_client.get(f"{url_prefix}/cart", headers=buyer["headers"])
    assert len(resp.json()["data"]["items"]) == 1


async def test_unavailable_product_rejected(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    await _fill_cart(ac_client, buyer["headers"], product)
    await ac_client.patch(f"{url_prefix}/admin/products/{product['public_id']}", headers=vendor["headers"],
                          json={"is_active": False})

    resp = await ac_client.post(f"{url_prefix}/orders", headers=buyer["headers"], json={})
    assert resp.status_code == 409


async def test_invalid_payment_method(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/orders", headers=buyer["headers"], json={"payment_method": "barter"})
    assert resp.status_code == 422


async def test_customer_cancels_pending_order(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"], stock_qty=4)
    await _fill_cart(ac_client, buyer["headers"], product, quantity=3)
    order = await _place(ac_client, buyer["headers"])
    assert await _stock(ac_client, product["slug"]) == 1

    resp = await ac_client.post(f"{url_prefix}/orders/{order['public_id']}/cancel", headers=buyer["headers"],
                                json={"reason": "changed my mind"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"]["name"] == "cancelled"
    assert data["cancelled_reason"] == "changed my mind"
    assert await _stock(ac_client, product["slug"]) == 4

    resp = await ac_client.post(f"{url_prefix}/orders/{order['public_id']}/cancel", headers=buyer["headers"])
    assert resp.status_code == 409


async def test_orders_are_private(ac_client, vendor, buyer):
    product = await create_product(ac_client, vendor["headers"])
    await _fill_cart(ac_client, buyer["headers"], product)
    order = await _place(ac_client, buyer["headers"])

    other = await new_user(ac_client, "nosy")
    resp = await ac_client.get(f"{url_prefix}/orders/{order['public_id']}", headers=other["headers"])
    assert resp.status_code == 404
    resp = await ac_client.post(f"{url_prefix}/orders/{order['public_id']}/cancel", headers=other["headers"])
    assert resp.status_code == 404

    # the seller can read it but not cancel it
    resp = await ac_client.get(f"{url_prefix}/orders/{order['public_id']}", headers=vendor["headers"])
    assert resp.status_code == 200
    resp = await ac_client.post(f"{url_prefix}/orders/{order['public_id']}/cancel", headers=vendor["headers"])
    assert resp.status_code == 404


async def test_vendor_sees_only_own_lines(ac_client, vendor, buyer):
    mine = await create_product(ac_client, vendor["headers"], base_price=700)

    other = await new_user(ac_client, "rival")
    await ac_client.post(f"{url_prefix}/vendors", headers=other["headers"], json={"business_name": "Rival Goods"})
    resp = await ac_client.post(f"{url_prefix}/auth/refresh", headers={"X-Refresh-Token": other["refresh_token"]})
    rival_headers = {"Authorization": f"Bearer {resp.json()['data']['access_token']}"}
    theirs = await create_product(ac_client, rival_headers, base_price=900)

    await _fill_cart(ac_client, buyer["headers"], mine)
    await _fill_cart(ac_client, buyer["headers"], theirs)
    order = await _place(ac_client, buyer["headers"], billing_address=ADDRESS)
    assert len(order["items"]) == 2
    assert order["billing_address"]["city"] == "Springfield"

    resp = await ac_client.get(f"{url_prefix}/orders/vendor", headers=vendor["headers"])
    assert resp.status_code == 200
    [listed] = [o for o in resp.json()["data"]["data"] if o["public_id"] == order["public_id"]]
    assert [i["product"]["public_id"] for i in listed["items"]] == [mine["public_id"]]

    resp = await ac_client.get(f"{url_prefix}/orders/{order['public_id']}", headers=vendor["headers"])
    assert resp.status_code == 200
    detail = resp.json()["data"]
    assert [i["product"]["public_id"] for i in detail["items"]] == [mine["public_id"]]
    assert detail["billing_address"] is None
    assert detail["shipping_address"]["line1"] == "1 Market St"

    resp = await ac_client.get(f"{url_prefix}/orders/{order['public_id']}", headers=rival_headers)
    assert [i["product"]["public_id"] for i in resp.json()["data"]["items"]] == [theirs["public_id"]]

    resp = await ac_client.get(f"{url_prefix}/orders/{order['public_id']}", headers=buyer["headers"])
    assert len(resp.json()["data"]["items"]) == 2
    assert resp.json()["data"]["billing_address"] is not None

    resp = await ac_client.get(f"{url_prefix}/orders/vendor", headers=buyer["headers"])
    assert resp.status_code == 403


async def test_admin_walks_order_through_statuses(ac_client, vendor, buyer, admin):
    product = await create_product(ac_client, vendor["headers"], stock_qty=5)
    await _fill_cart(ac_client, buyer["headers"], product, quantity=2)
    order = await _place(ac_client, buyer["headers"])
    url = f"{url_prefix}/admin/orders/{order['public_id']}/status"

    for target in ("confirmed", "processing", "shipped", "delivered"):
        resp = await ac_client.patch(url, headers=admin["headers"], json={"status": target})
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["status"]["name"] == target

    resp = await ac_client.patch(url, headers=admin["headers"], json={"status": "pending"})
    assert resp.status_code == 409

    # a customer cannot cancel once it left pending
    resp = await ac_client.post(f"{url_prefix}/orders/{order['public_id']}/cancel", headers=buyer["headers"])
    assert resp.status_code == 409

    assert await _stock(ac_client, product["slug"]) == 3
    resp = await ac_client.patch(url, headers=admin["headers"], json={"status": "returned", "note": "damaged"})
    assert resp.status_code == 200
    assert await _stock(ac_client, product["slug"]) == 5

    resp = await ac_client.get(f"{url_prefix}/admin/orders", headers=admin["headers"], params={"status": "returned"})
    assert order["public_id"] in [o["public_id"] for o in resp.json()["data"]["data"]]


async def test_order_status_needs_permission(ac_client, vendor, buyer, admin):
    product = await create_product(ac_client, vendor["headers"])
    await _fill_cart(ac_client, buyer["headers"], product)
    order = await _place(ac_client, buyer["headers"])

    resp = await ac_client.patch(f"{url_prefix}/admin/orders/{order['public_id']}/status", headers=vendor["headers"],
                                 json={"status": "confirmed"})
    assert resp.status_code == 403

    resp = await ac_client.patch(f"{url_prefix}/admin/orders/{order['public_id']}/status", headers=admin["headers"],
                                 json={"status": "bogus"})
    assert resp.status_code == 422
