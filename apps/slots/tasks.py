"""Celery tasks for the slots domain."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .application.sweeper import ExpirySweeper, purge_past_slots as purge

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (scheduled by Celery Beat, see config/celery.py)
# ============================================================================

@shared_task(name="slots.sweep_expired_reservations")
def sweep_expired_reservations() -> dict[str, int]:
    """
    Release PENDING slots whose reservation window has passed.

    Runs every SLOT_SWEEP_INTERVAL seconds. A failing run is logged and
    the next tick tries again.

    Returns:
        dict: {"scanned", "released", "skipped", "failed"}
    """
    try:
        return ExpirySweeper().sweep().to_dict()
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}", exc_info=True)
        return {"scanned": 0, "released": 0, "skipped": 0, "failed": 1}


@shared_task(name="slots.purge_past_slots")
def purge_past_slots() -> dict[str, int]:
    """
    Remove never-reserved slots older than SLOT_RETENTION_DAYS.

    Runs daily.

    Returns:
        dict: {"deleted": number of removed slots}
    """
    try:
        return {"deleted": purge()}
    except Exception as e:
        logger.error(f"Purging past slots failed: {e}", exc_info=True)
        return {"deleted": 0}
