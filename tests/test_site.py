import uuid
import pytest
from bazaar.site.repository import group_preferences
from conftest import url_prefix

pytestmark = pytest.mark.asyncio


class _Row:
    def __init__(self, category, key, value):
        self.category, self.key, self.value = category, key, value


def test_group_preferences():
    rows = [_Row("store", "name", "Bazaar"), _Row("store", "currency", "USD"), _Row("mail", "from", "shop@x.io")]
    assert group_preferences(rows) == {"store": {"name": "Bazaar", "currency": "USD"}, "mail": {"from": "shop@x.io"}}


async def test_site_settings_lifecycle(ac_client, admin):
    category = f"store-{uuid.uuid4().hex[:6]}"

    resp = await ac_client.put(f"{url_prefix}/admin/site/settings", headers=admin["headers"],
                               json={"category": category, "key": "banner", "value": {"text": "Spring sale"}})
    assert resp.status_code == 201
    assert resp.json()["data"][category] == {"banner": {"text": "Spring sale"}}

    resp = await ac_client.put(f"{url_prefix}/admin/site/settings", headers=admin["headers"],
                               json={"category": category, "key": "banner", "value": None})
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/site/settings")
    assert resp.status_code == 200
    assert resp.json()["data"][category] == {"banner": None}

    resp = await ac_client.delete(f"{url_prefix}/admin/site/settings/{category}/banner", headers=admin["headers"])
    assert resp.status_code == 200
    assert category not in resp.json()["data"]

    resp = await ac_client.delete(f"{url_prefix}/admin/site/settings/{category}/banner", headers=admin["headers"])
    assert resp.status_code == 404


async def test_site_settings_admin_only(ac_client, buyer):
    resp = await ac_client.put(f"{url_prefix}/admin/site/settings", headers=buyer["headers"],
                               json={"category": "store", "key": "name", "value": "Mine"})
    assert resp.status_code == 403


async def test_setting_names_are_validated(ac_client, admin):
    resp = await ac_client.put(f"{url_prefix}/admin/site/settings", headers=admin["headers"],
                               json={"category": "Bad Category!", "key": "k", "value": 1})
    assert resp.status_code == 422


async def test_user_preferences_are_private(ac_client, buyer, admin):
    resp = await ac_client.put(f"{url_prefix}/users/me/preferences", headers=buyer["headers"],
                               json={"category": "ui", "key": "theme", "value": "dark"})
    assert resp.status_code == 201
    assert resp.json()["data"] == {"ui": {"theme": "dark"}}

    resp = await ac_client.put(f"{url_prefix}/users/me/preferences", headers=buyer["headers"],
                               json={"category": "ui", "key": "theme", "value": "light"})
    assert resp.status_code == 200

    resp = await ac_client.get(f"{url_prefix}/users/me/preferences", headers=admin["headers"])
    assert resp.json()["data"] == {}

    # user preferences never leak into site settings
    resp = await ac_client.get(f"{url_prefix}/site/settings")
    assert resp.json()["data"].get("ui", {}).get("theme") is None
