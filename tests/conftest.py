import asyncio
import os
import tempfile
import uuid

_db_dir = tempfile.mkdtemp(prefix="bazaar-tests-")

# settings objects are built at import time, so the environment goes first
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'bazaar_test.db')}"
os.environ["JWT_SECRET"] = "test-secret-do-not-use-in-prod"
os.environ["PASS_HASH_SCHEME"] = "pbkdf2_sha256"
os.environ["CACHE_ENABLED"] = "false"
os.environ["METRICS_ENABLED"] = "false"
os.environ["ENV"] = "dev"
os.environ["ENABLE_ADMIN"] = "true"

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select, update
from sqlmodel import SQLModel

from bazaar.db.connection import async_engine, async_session
from bazaar.db.roles_seed import seed_defaults
from bazaar.main import app
from bazaar.schema.full_schema import Role, Users

url_prefix = "/api/v1"

strong_pass = "Str0ng!Passw0rd"


async def _create_schema():
    async with async_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    async with async_session() as session:
        await seed_defaults(session)
    await async_engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def test_database():
    asyncio.run(_create_schema())
    yield


@pytest.fixture
async def ac_client():
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
async def db_session():
    async with async_session() as session:
        yield session


def unique_user(prefix: str = "user") -> dict:
    tag = uuid.uuid4().hex[:10]
    return {
        "username": f"{prefix}_{tag}",
        "email": f"{prefix}.{tag}@bazaarmail.com",
        "password": strong_pass,
        "confirm_password": strong_pass,
        "first_name": "Test",
        "last_name": prefix.capitalize(),
    }


async def signup(ac: AsyncClient, payload: dict) -> dict:
    resp = await ac.post(f"{url_prefix}/auth/signup", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def login(ac: AsyncClient, email_or_username: str, password: str = strong_pass, **extra) -> dict:
    resp = await ac.post(f"{url_prefix}/auth/login",
                         json={"email_or_username": email_or_username, "password": password, **extra})
    assert resp.status_code == 200, resp.text
    return resp.json()["data"]


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


async def set_role(email: str, role_name: str):
    async with async_session() as session:
        role_id = (await session.execute(select(Role.id).where(Role.name == role_name))).scalar_one()
        await session.execute(
            update(Users).where(Users.email == email).values(role_id=role_id, role_version=Users.role_version + 1)
        )
        await session.commit()


async def new_user(ac: AsyncClient, prefix: str = "user", role: str = None) -> dict:
    """Sign up, optionally change the role, and sign in. Returns the login payload plus the signup data."""
    payload = unique_user(prefix)
    created = await signup(ac, payload)
    if role:
        await set_role(payload["email"], role)
    tokens = await login(ac, payload["email"])
    return {**tokens, "email": payload["email"], "username": payload["username"], "signup": created,
            "headers": bearer(tokens)}


@pytest.fixture
async def buyer(ac_client):
    return await new_user(ac_client, "buyer")


@pytest.fixture
async def admin(ac_client):
    return await new_user(ac_client, "admin", role="admin")


@pytest.fixture
async def super_admin(ac_client):
    return await new_user(ac_client, "root", role="super_admin")


@pytest.fixture
async def vendor(ac_client):
    """A user with a registered vendor profile and a fresh token carrying the vendor role."""
    user = await new_user(ac_client, "seller")
    resp = await ac_client.post(f"{url_prefix}/vendors", headers=user["headers"],
                                json={"business_name": f"Shop {user['username']}", "business_type": "individual"})
    assert resp.status_code == 201, resp.text
    vendor_out = resp.json()["data"]["vendor"]

    tokens = await login(ac_client, user["email"])
    return {**user, **tokens, "headers": bearer(tokens), "vendor_public_id": vendor_out["public_id"]}


async def create_product(ac: AsyncClient, headers: dict, **overrides) -> dict:
    tag = uuid.uuid4().hex[:8]
    payload = {"name": f"Walnut Desk Lamp {tag}", "base_price": 2500, "description": "Warm light for late work",
               "stock_qty": 10}
    payload.update(overrides)
    resp = await ac.post(f"{url_prefix}/admin/products", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["product"]
