"""Bootstrap the first super admin.

    ADMIN_EMAIL=... ADMIN_PASSWORD=... python -m bazaar.seed_scripts.seed_admin
"""
import asyncio
import os
from dotenv import load_dotenv
from sqlmodel import select

from bazaar.auth.dependencies import normalize_email_address
from bazaar.auth.utils import hash_password, validate_password, verify_password
from bazaar.config.admin_config import admin_config
from bazaar.db.connection import async_session
from bazaar.db.roles_seed import seed_defaults
from bazaar.schema.full_schema import Credential, Role, Users

load_dotenv()


async def create_admin():
    admin_email = os.environ.get("ADMIN_EMAIL") or admin_config.SUPER_ADMIN_EMAIL
    admin_password = os.environ.get("ADMIN_PASSWORD")
    admin_username = os.environ.get("ADMIN_USERNAME", "superadmin")

    if not admin_email or not admin_password:
        raise SystemExit("Set ADMIN_EMAIL and ADMIN_PASSWORD environment variables before running")

    ok, detail = validate_password(admin_password)
    if not ok:
        raise SystemExit(f"ADMIN_PASSWORD rejected: {detail}")

    admin_email = normalize_email_address(admin_email)

    async with async_session() as session:
        await seed_defaults(session)

        q = await session.execute(select(Role).where(Role.name == "super_admin"))
        super_role = q.scalar_one_or_none()
        if not super_role:
            raise SystemExit("super_admin role missing. Run migrations first.")

        # 1) find or create user
        q = await session.execute(select(Users).where(Users.email == admin_email))
        user = q.scalar_one_or_none()

        if not user:
            user = Users(email=admin_email, username=admin_username, role_id=super_role.id, email_verified=True)
            session.add(user)
            await session.flush()
            print(f"Created user public_id={user.public_id}")
        else:
            print(f"Found existing user public_id={user.public_id}")
            if user.role_id != super_role.id:
                user.role_id = super_role.id
                user.role_version = user.role_version + 1
                session.add(user)
                print("Promoted user to super_admin")

        # 2) password credential
        q = await session.execute(select(Credential).where(Credential.user_id == user.id, Credential.type == "password"))
        cred = q.scalar_one_or_none()

        if not cred:
            session.add(Credential(user_id=user.id, type="password", provider="self",
                                   password_hash=hash_password(admin_password)))
            print("Created password credential for admin user")
        elif not verify_password(admin_password, cred.password_hash):
            raise SystemExit("Existing admin has a different password, refusing to overwrite it")

        await session.commit()

    print("Done.")

if __name__ == "__main__":
    asyncio.run(create_admin())
