"""time_entry_user_locks

Revision ID: e5a0b7d3c118
Revises: c2f94d61ab07
Create Date: 2026-10-19 10:02:44.517305

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'e5a0b7d3c118'
down_revision: Union[str, Sequence[str], None] = 'c2f94d61ab07'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "time_entry_user_locks",
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("locked_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.PrimaryKeyConstraint("company_id", "user_id"),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("time_entry_user_locks")
