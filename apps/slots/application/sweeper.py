"""
Expiry Sweeper

Reclaims PENDING slots whose payment window lapsed. Each release is its
own guarded transition, so a failure part way through leaves every
other slot consistent and the next run picks up what is left.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List
import logging

from django.conf import settings
from django.utils import timezone

from apps.slots.application.engine import ReservationEngine, reservation_timeout
from apps.slots.domain.transitions import Outcome

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counts from one sweep run"""
    scanned: int = 0
    released: int = 0
    skipped: int = 0
    failed: int = 0
    released_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'scanned': self.scanned,
            'released': self.released,
            'skipped': self.skipped,
            'failed': self.failed,
        }


class ExpirySweeper:
    """
    Force-releases reservations older than the reservation timeout

    A slot reserved at T with a 30 minute timeout is still PENDING after
    a sweep at T+29m and AVAILABLE after a sweep at T+31m.
    """

    def __init__(self, engine: ReservationEngine | None = None, timeout: timedelta | None = None):
        self.engine = engine or ReservationEngine()
        self.timeout = timeout or reservation_timeout()

    def sweep(self, now: datetime | None = None) -> SweepReport:
        now = now or timezone.now()
        cutoff = now - self.timeout
        report = SweepReport()

        candidates = self.engine.store.list_stale_pending(cutoff)
        report.scanned = len(candidates)

        for slot in candidates:
            try:
                result = self.engine.force_release(slot.id, reserved_before=cutoff, reason='timeout')
            except Exception as e:
                report.failed += 1
                logger.error(f"Error releasing expired slot {slot.id}: {e}", exc_info=True)
                continue

            if result.outcome is Outcome.APPLIED:
                report.released += 1
                report.released_ids.append(str(slot.id))
                logger.debug(f"Released slot {slot.id} after {slot.reservation_age(now)}")
            else:
                # Confirmed or cancelled between the scan and the release
                report.skipped += 1

        if report.released or report.failed:
            logger.info(
                f"Sweep finished: {report.released} released, {report.skipped} skipped, "
                f"{report.failed} failed of {report.scanned} expired reservations"
            )
        return report


def purge_past_slots(today=None, retention_days: int | None = None) -> int:
    """
    Delete AVAILABLE slots older than the retention window

    Slots that were ever reserved stay, they are booking history.
    """
    today = today or timezone.localdate()
    if retention_days is None:
        retention_days = int(getattr(settings, 'SLOT_RETENTION_DAYS', 30))
    cutoff = today - timedelta(days=retention_days)

    deleted = ReservationEngine().store.purge_available_before(cutoff)
    if deleted:
        logger.info(f"Purged {deleted} unreserved slots dated before {cutoff}")
    return deleted
