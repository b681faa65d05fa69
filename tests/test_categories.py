import uuid
import pytest
from bazaar.categories.utils import build_category_tree
from conftest import url_prefix

pytestmark = pytest.mark.asyncio


def test_build_category_tree_nests_and_drops_orphans():
    rows = [
        {"id": 1, "parent_id": None, "name": "Home"},
        {"id": 2, "parent_id": 1, "name": "Lighting"},
        {"id": 3, "parent_id": 2, "name": "Desk lamps"},
        {"id": 4, "parent_id": None, "name": "Garden"},
        {"id": 5, "parent_id": 99, "name": "Orphan"},
        {"id": 6, "parent_id": 5, "name": "Orphan child"},
    ]
    tree = build_category_tree(rows)

    assert [n["name"] for n in tree] == ["Home", "Garden"]
    assert tree[0]["children"][0]["name"] == "Lighting"
    assert tree[0]["children"][0]["children"][0]["name"] == "Desk lamps"
    assert tree[1]["children"] == []


def test_build_category_tree_keeps_sibling_order():
    rows = [{"id": 1, "parent_id": None}, {"id": 3, "parent_id": 1}, {"id": 2, "parent_id": 1}]
    tree = build_category_tree(rows)
    assert [c["id"] for c in tree[0]["children"]] == [3, 2]


def _find(nodes, slug):
    for node in nodes:
        if node["slug"] == slug:
            return node
        found = _find(node["children"], slug)
        if found:
            return found
    return None


async def test_category_crud_and_tree(ac_client, admin):
    tag = uuid.uuid4().hex[:6]
    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": f"Kitchen {tag}"})
    assert resp.status_code == 201
    parent = resp.json()["data"]
    assert parent["slug"] == f"kitchen-{tag}"

    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": f"Knives {tag}", "parent_id": parent["id"]})
    assert resp.status_code == 201
    child = resp.json()["data"]

    resp = await ac_client.get(f"{url_prefix}/categories")
    assert resp.status_code == 200
    node = _find(resp.json()["data"], parent["slug"])
    assert [c["slug"] for c in node["children"]] == [child["slug"]]

    resp = await ac_client.get(f"{url_prefix}/categories/{child['slug']}")
    assert resp.json()["data"]["parent_id"] == parent["id"]

    resp = await ac_client.patch(f"{url_prefix}/admin/categories/{child['id']}", headers=admin["headers"],
                                 json={"description": "Sharp things"})
    assert resp.status_code == 200
    assert resp.json()["data"]["description"] == "Sharp things"

    resp = await ac_client.delete(f"{url_prefix}/admin/categories/{parent['id']}", headers=admin["headers"])
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/categories")
    assert _find(resp.json()["data"], parent["slug"]) is None
    assert _find(resp.json()["data"], child["slug"]) is None


async def test_duplicate_explicit_slug_conflicts(ac_client, admin):
    slug = f"dupe-{uuid.uuid4().hex[:6]}"
    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": "First", "slug": slug})
    assert resp.status_code == 201

    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": "Second", "slug": slug})
    assert resp.status_code == 409


async def test_generated_slugs_are_made_unique(ac_client, admin):
    name = f"Outdoor {uuid.uuid4().hex[:6]}"
    first = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"], json={"name": name})
    second = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"], json={"name": name})
    assert first.status_code == second.status_code == 201
    assert first.json()["data"]["slug"] != second.json()["data"]["slug"]


async def test_category_parent_rules(ac_client, admin):
    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": "Lost", "parent_id": 987654})
    assert resp.status_code == 422

    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                json={"name": f"Self {uuid.uuid4().hex[:6]}"})
    cat_id = resp.json()["data"]["id"]
    resp = await ac_client.patch(f"{url_prefix}/admin/categories/{cat_id}", headers=admin["headers"],
                                 json={"parent_id": cat_id})
    assert resp.status_code == 400


async def test_category_cannot_move_under_descendant(ac_client, admin):
    tag = uuid.uuid4().hex[:6]
    ids = []
    parent_id = None
    for name in ("Top", "Middle", "Bottom"):
        resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=admin["headers"],
                                    json={"name": f"{name} {tag}", "parent_id": parent_id})
        assert resp.status_code == 201
        parent_id = resp.json()["data"]["id"]
        ids.append(parent_id)
    top, middle, bottom = ids

    resp = await ac_client.patch(f"{url_prefix}/admin/categories/{top}", headers=admin["headers"],
                                 json={"parent_id": bottom})
    assert resp.status_code == 400

    resp = await ac_client.patch(f"{url_prefix}/admin/categories/{middle}", headers=admin["headers"],
                                 json={"parent_id": None})
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/categories")
    assert _find(resp.json()["data"], f"top-{tag}")["children"] == []
    assert _find(resp.json()["data"], f"bottom-{tag}") is not None


async def test_category_admin_requires_permission(ac_client, buyer):
    resp = await ac_client.post(f"{url_prefix}/admin/categories", headers=buyer["headers"], json={"name": "Nope"})
    assert resp.status_code == 403

    resp = await ac_client.post(f"{url_prefix}/admin/categories", json={"name": "Nope"})
    assert resp.status_code == 401


async def test_unknown_category_slug(ac_client):
    resp = await ac_client.get(f"{url_prefix}/categories/no-such-category")
    assert resp.status_code == 404
