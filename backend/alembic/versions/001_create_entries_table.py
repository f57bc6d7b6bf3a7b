"""Create entries table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  The `entries` table with a UNIQUE index on `norm` (dedup key) and an
       index on `created_at` for newest-first listing.

Rollback: downgrade() drops the table and all entries.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "entries",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("norm", sa.Text(), nullable=False),
        sa.Column("norm_version", sa.String(32), nullable=False),
        # Milliseconds since epoch, as returned to clients
        sa.Column("created_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # Concurrent duplicate creates rely on this index: INSERT ... ON CONFLICT (norm)
    op.create_index("uq_entries_norm", "entries", ["norm"], unique=True)
    op.create_index("idx_entries_created_at", "entries", ["created_at"])


def downgrade() -> None:
    op.drop_index("idx_entries_created_at", table_name="entries")
    op.drop_index("uq_entries_norm", table_name="entries")
    op.drop_table("entries")
