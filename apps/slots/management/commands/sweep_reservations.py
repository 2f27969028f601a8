"""Run one expiry sweep from the command line."""

from __future__ import annotations

from datetime import timedelta

from django.core.management.base import BaseCommand  # type: ignore

from apps.slots.application.sweeper import ExpirySweeper


class Command(BaseCommand):
    help = "Release pending slot reservations whose payment window has expired"

    def add_arguments(self, parser):  # type: ignore
        parser.add_argument(
            "--timeout",
            type=int,
            default=None,
            help="Reservation timeout in minutes (defaults to SLOT_RESERVATION_TIMEOUT)",
        )

    def handle(self, *args, **options):  # type: ignore
        timeout = options.get("timeout")
        sweeper = ExpirySweeper(timeout=timedelta(minutes=timeout) if timeout else None)
        report = sweeper.sweep()
        self.stdout.write(
            self.style.SUCCESS(
                f"Scanned {report.scanned}, released {report.released}, "
                f"skipped {report.skipped}, failed {report.failed}"
            )
        )
