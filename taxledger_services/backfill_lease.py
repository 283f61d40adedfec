"""
BackfillLeaseManager -- per-company mutual exclusion for backfill runs.

A lease is a row in ``backfill_leases`` keyed by company.  A live lease held
by someone else blocks acquisition; an expired one is taken over, so a
process that died mid-run never blocks a company forever.

The manager flushes but never commits.  ``BackfillOrchestrator`` commits the
acquisition before it starts writing so other processes can see the lease.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import timedelta
from typing import Generator
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from taxledger_kernel.db.types import ensure_utc
from taxledger_kernel.domain.clock import Clock, SystemClock
from taxledger_kernel.exceptions import BackfillAlreadyRunningError
from taxledger_kernel.logging_config import get_logger
from taxledger_kernel.models.backfill_lease import BackfillLease

logger = get_logger("services.backfill_lease")


class BackfillLeaseManager:
    """Acquire / release backfill leases."""

    def __init__(self, session: Session, clock: Clock | None = None, ttl_seconds: int = 3600):
        self._session = session
        self._clock = clock or SystemClock()
        self._ttl = timedelta(seconds=ttl_seconds)

    def acquire(self, company_id: UUID, holder: str) -> None:
        """
        Take the company's lease for ``holder``.

        Raises:
            BackfillAlreadyRunningError: another holder's lease has not expired.
        """
        now = ensure_utc(self._clock.now())
        existing = self._session.scalars(
            select(BackfillLease).where(BackfillLease.company_id == company_id).with_for_update()
        ).first()

        if existing is not None:
            expires_at = ensure_utc(existing.expires_at)
            if existing.holder != holder and expires_at > now:
                raise BackfillAlreadyRunningError(
                    str(company_id), existing.holder, expires_at.isoformat()
                )
            if existing.holder != holder:
                logger.warning(
                    "backfill_lease_taken_over",
                    extra={
                        "company_id": str(company_id),
                        "previous_holder": existing.holder,
                        "expired_at": expires_at.isoformat(),
                    },
                )
            existing.holder = holder
            existing.acquired_at = now
            existing.expires_at = now + self._ttl
            self._session.flush()
            return

        lease = BackfillLease(
            company_id=company_id,
            holder=holder,
            acquired_at=now,
            expires_at=now + self._ttl,
        )
        try:
            with self._session.begin_nested():
                self._session.add(lease)
                self._session.flush()
        except IntegrityError:
            # Lost the insert race to another process.
            raise BackfillAlreadyRunningError(str(company_id), "unknown", "unknown") from None

        logger.info(
            "backfill_lease_acquired",
            extra={"company_id": str(company_id), "holder": holder},
        )

    def release(self, company_id: UUID, holder: str) -> None:
        """Drop the lease if ``holder`` still owns it."""
        self._session.execute(
            delete(BackfillLease).where(
                BackfillLease.company_id == company_id,
                BackfillLease.holder == holder,
            )
        )
        self._session.flush()
        logger.info(
            "backfill_lease_released",
            extra={"company_id": str(company_id), "holder": holder},
        )

    @contextmanager
    def hold(self, company_id: UUID, holder: str) -> Generator[None, None, None]:
        """Hold the lease for the duration of the block."""
        self.acquire(company_id, holder)
        try:
            yield
        finally:
            self.release(company_id, holder)
