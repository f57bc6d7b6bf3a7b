"""
Jotter Backend — Entry SQLAlchemy Model
=======================================

What:  ORM model for the `entries` table (database backend).
Who:   SqlEntryStore for reads/writes; Alembic for schema management.

Table Design:
    - id: application-generated "<ms>_<hex>" string, same format as the file backend
    - norm: UNIQUE; the constraint is what makes concurrent duplicate creates safe
    - norm_version: policy that produced `norm`, used by the backfill
    - created_at: BIGINT milliseconds since epoch, indexed for "latest first"
"""

from sqlalchemy import BigInteger, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class Entry(Base):
    """
    A stored note.

    Lifecycle:
        Inserted by create; removed by delete-by-id. Only the backfill ever
        rewrites `norm` / `norm_version`.
    """

    __tablename__ = "entries"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    text: Mapped[str] = mapped_column(Text, nullable=False)

    norm: Mapped[str] = mapped_column(Text, nullable=False)

    norm_version: Mapped[str] = mapped_column(String(32), nullable=False)

    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    __table_args__ = (
        Index("uq_entries_norm", "norm", unique=True),
        # Ascending index; backward scans serve ORDER BY created_at DESC
        Index("idx_entries_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Entry(id={self.id!r}, norm={self.norm!r}, created_at={self.created_at})>"
