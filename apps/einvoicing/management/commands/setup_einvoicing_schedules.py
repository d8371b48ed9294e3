"""
Install the recurring Django-Q schedule that processes due retries.

Usage:
    python manage.py setup_einvoicing_schedules
    python manage.py setup_einvoicing_schedules --minutes 10
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandParser

from apps.einvoicing.tasks import RETRY_SCHEDULE_MINUTES, schedule_einvoicing_tasks


class Command(BaseCommand):
    """Setup e-Invoicing scheduled tasks."""

    help = "Create or update the Django-Q schedule for e-Invoicing retries"

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--minutes",
            type=int,
            default=RETRY_SCHEDULE_MINUTES,
            help="Interval in minutes between retry sweeps",
        )

    def handle(self, *args: object, **options: object) -> None:
        minutes = int(options.get("minutes") or RETRY_SCHEDULE_MINUTES)
        schedule = schedule_einvoicing_tasks(minutes=minutes)
        self.stdout.write(self.style.SUCCESS(f"✅ Schedule '{schedule.name}' runs every {minutes} min"))
