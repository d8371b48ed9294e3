"""
Re-run failed e-Invoicing submission jobs whose retry time has passed.

Usage:
    python manage.py process_einvoice_retries
    python manage.py process_einvoice_retries --limit 10
    python manage.py process_einvoice_retries --dry-run  # List due jobs only
"""

from __future__ import annotations

import logging

from django.core.management.base import BaseCommand, CommandParser

from apps.einvoicing.models import SubmissionJob
from apps.einvoicing.service import EInvoicingService
from apps.einvoicing.settings import einvoicing_settings

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Process due e-Invoicing retries."""

    help = "Re-submit failed e-Invoicing jobs whose next_retry_at has passed"

    def add_arguments(self, parser: CommandParser) -> None:
        parser.add_argument(
            "--limit",
            type=int,
            default=None,
            help="Maximum number of jobs to retry (defaults to EINVOICING_RETRY_BATCH_SIZE)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show due jobs without submitting",
        )

    def handle(self, *args: object, **options: object) -> None:
        limit = options.get("limit") or einvoicing_settings.retry_batch_size
        dry_run = options.get("dry_run", False)

        if dry_run:
            due = SubmissionJob.get_ready_for_retry(einvoicing_settings.max_attempts, int(limit))
            for job in due:
                self.stdout.write(
                    f"[DRY-RUN] Job {job.id} for invoice {job.invoice_id} "
                    f"(attempts: {job.attempt_count}, due: {job.next_retry_at:%Y-%m-%d %H:%M})"
                )
            self.stdout.write(f"{len(due)} job(s) due for retry")
            return

        service = EInvoicingService()
        recovered = service.recover_stale_processing()
        if recovered:
            self.stdout.write(self.style.WARNING(f"⚠️ Recovered {len(recovered)} stale processing job(s)"))

        results = service.process_due_retries(limit=int(limit))

        self.stdout.write(
            self.style.SUCCESS(
                f"✅ Retried {results['retried']} job(s): "
                f"{results['accepted']} accepted, {results['failed']} failed"
            )
        )
