"""seed roles, permissions and order statuses

Revision ID: 7c2e5b8a4d21
Revises: 3a1f0c2d9b10
Create Date: 2026-10-19 10:31:07.552910

"""
from datetime import datetime,timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from bazaar.db.roles_seed import DEFAULT_PERMISSIONS, DEFAULT_ROLES, ORDER_STATUSES, ROLE_PERMISSIONS

now_ts = datetime.now(timezone.utc)

# revision identifiers, used by Alembic.
revision: str = '7c2e5b8a4d21'
down_revision: Union[str, Sequence[str], None] = '3a1f0c2d9b10'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    conn = op.get_bind()

    for r in DEFAULT_ROLES:
        conn.execute(sa.text("""
            INSERT INTO user_roles (name, description, is_active, created_at, updated_at)
            VALUES (:name, :description, true, :ts, :ts)
            ON CONFLICT (name) DO NOTHING
        """), {**r, "ts": now_ts})

    for p in DEFAULT_PERMISSIONS:
        conn.execute(sa.text("""
            INSERT INTO permissions (name, description)
            VALUES (:name, :description)
            ON CONFLICT (name) DO NOTHING
        """), p)

    for role_name, perm_names in ROLE_PERMISSIONS.items():
        for perm_name in perm_names:
            conn.execute(sa.text("""
                INSERT INTO role_permissions (role_id, permission_id)
                SELECT r.id, p.id FROM user_roles r, permissions p
                WHERE r.name = :role AND p.name = :perm
                ON CONFLICT (role_id, permission_id) DO NOTHING
            """), {"role": role_name, "perm": perm_name})

    for name, description, color, sort_order in ORDER_STATUSES:
        conn.execute(sa.text("""
            INSERT INTO order_status (name, description, color, sort_order, is_active)
            VALUES (:name, :description, :color, :sort_order, true)
            ON CONFLICT (name) DO NOTHING
        """), {"name": name, "description": description, "color": color, "sort_order": sort_order})


def downgrade() -> None:
    """Downgrade schema."""
    conn = op.get_bind()
    conn.execute(sa.text("DELETE FROM role_permissions"))
    conn.execute(sa.text("DELETE FROM order_status WHERE name = ANY(:names)"), {"names": [s[0] for s in ORDER_STATUSES]})
    conn.execute(sa.text("DELETE FROM permissions WHERE name = ANY(:names)"), {"names": [p["name"] for p in DEFAULT_PERMISSIONS]})
    conn.execute(sa.text("DELETE FROM user_roles WHERE name = ANY(:names)"), {"names": [r["name"] for r in DEFAULT_ROLES]})
