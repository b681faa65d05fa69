from sqlalchemy import select
from sqlalchemy.ext.asyncio import  AsyncSession
from bazaar.schema.full_schema import OrderStatus, Permission, Role, RolePermission


DEFAULT_ROLES = [
    {"name": "super_admin", "description": "Full platform access"},
    {"name": "admin", "description": "Manages catalog, orders and non-admin users"},
    {"name": "vendor", "description": "Sells products through a vendor profile"},
    {"name": "seller", "description": "Individual seller, same rights as a vendor"},
    {"name": "buyer", "description": "Regular customer"},
    {"name": "visitor", "description": "Read-only account"},
]

DEFAULT_PERMISSIONS = [
    {"name": "product:create", "description": "Create and manage own products"},
    {"name": "category:manage", "description": "Create and edit categories"},
    {"name": "user:manage", "description": "Change user roles and state"},
    {"name": "order:manage", "description": "Change any order's status"},
    {"name": "review:moderate", "description": "Approve or hide reviews"},
    {"name": "maintenance:run", "description": "Run cleanup jobs and read security logs"},
]

ROLE_PERMISSIONS = {
    "super_admin": ["product:create", "category:manage", "user:manage", "order:manage", "review:moderate", "maintenance:run"],
    "admin": ["product:create", "category:manage", "user:manage", "order:manage", "review:moderate", "maintenance:run"],
    "vendor": ["product:create"],
    "seller": ["product:create"],
}

# name, description, color, sort_order
ORDER_STATUSES = [
    ("pending", "Order placed, awaiting confirmation", "#F59E0B", 1),
    ("confirmed", "Order confirmed by the store", "#3B82F6", 2),
    ("processing", "Order is being prepared", "#8B5CF6", 3),
    ("shipped", "Order handed to the carrier", "#06B6D4", 4),
    ("delivered", "Order delivered to the customer", "#10B981", 5),
    ("cancelled", "Order cancelled", "#EF4444", 6),
    ("refunded", "Payment refunded", "#6B7280", 7),
    ("returned", "Items returned", "#F97316", 8),
]


async def seed_roles(session: AsyncSession):
    for r in DEFAULT_ROLES:
        q = await session.execute(select(Role).where(Role.name == r["name"]))
        role = q.scalar_one_or_none()
        if not role:
            role = Role(name=r["name"], description=r["description"])
            session.add(role)
    await session.flush()


async def seed_permissions(session: AsyncSession):
    for p in DEFAULT_PERMISSIONS:
        q = await session.execute(select(Permission).where(Permission.name == p["name"]))
        if not q.scalar_one_or_none():
            session.add(Permission(name=p["name"], description=p["description"]))
    await session.flush()

    roles = {r.name: r.id for r in (await session.execute(select(Role))).scalars().all()}
    perms = {p.name: p.id for p in (await session.execute(select(Permission))).scalars().all()}

    for role_name, perm_names in ROLE_PERMISSIONS.items():
        for perm_name in perm_names:
            role_id, perm_id = roles[role_name], perms[perm_name]
            q = await session.execute(
                select(RolePermission.id).where(RolePermission.role_id == role_id, RolePermission.permission_id == perm_id)
            )
            if not q.scalar_one_or_none():
                session.add(RolePermission(role_id=role_id, permission_id=perm_id))
    await session.flush()


async def seed_order_statuses(session: AsyncSession):
    for name, description, color, sort_order in ORDER_STATUSES:
        q = await session.execute(select(OrderStatus).where(OrderStatus.name == name))
        if not q.scalar_one_or_none():
            session.add(OrderStatus(name=name, description=description, color=color, sort_order=sort_order))
    await session.flush()


async def seed_defaults(session: AsyncSession):
    """Idempotent: roles, permissions, role grants and order statuses."""
    await seed_roles(session)
    await seed_permissions(session)
    await seed_order_statuses(session)
    await session.commit()
