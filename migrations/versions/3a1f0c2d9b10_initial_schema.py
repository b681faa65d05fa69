"""initial schema

Revision ID: 3a1f0c2d9b10
Revises:
Create Date: 2026-10-19 10:12:44.118402

"""
from typing import Sequence, Union

from alembic import op
from sqlmodel import SQLModel

import bazaar.schema.full_schema  # noqa: F401

# revision identifiers, used by Alembic.
revision: str = '3a1f0c2d9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# baseline: later revisions must be written as explicit ops, not from the live metadata
def upgrade() -> None:
    """Upgrade schema."""
    SQLModel.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Downgrade schema."""
    SQLModel.metadata.drop_all(bind=op.get_bind(), checkfirst=True)
