"""unique_open_timer_index

Revision ID: c2f94d61ab07
Revises: 3b7e1c0d9a42
Create Date: 2026-10-12 09:31:07.880412

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c2f94d61ab07'
down_revision: Union[str, Sequence[str], None] = '3b7e1c0d9a42'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS uq_time_entries_open_timer
        ON time_entries(company_id, user_id)
        WHERE status IN ('running', 'paused');
        """
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP INDEX IF EXISTS uq_time_entries_open_timer;")
