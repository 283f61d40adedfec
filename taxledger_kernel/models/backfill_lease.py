"""
Backfill lease model.

One row per company while a backfill is running.  The UNIQUE company_id
constraint is the mutual-exclusion primitive; ``expires_at`` lets a later
run take over from a process that died without releasing.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from taxledger_kernel.db.base import Base


class BackfillLease(Base):
    """Per-company backfill lock row."""

    __tablename__ = "backfill_leases"

    __table_args__ = (
        UniqueConstraint("company_id", name="uq_backfill_lease_company"),
    )

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    holder: Mapped[str] = mapped_column(String(100), nullable=False)
    acquired_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<BackfillLease company={self.company_id} holder={self.holder}>"
