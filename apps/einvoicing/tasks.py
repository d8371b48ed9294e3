"""
Async tasks for e-Invoicing operations.

These tasks are designed for use with Django-Q2:
- submit_invoice_task: Submit a single invoice
- process_due_retries_task: Recover stale jobs, then re-run failed jobs whose
  retry time has passed

Nothing is scheduled automatically; `setup_einvoicing_schedules` installs
the recurring retry schedule explicitly.

Usage:
    from django_q.tasks import async_task
    async_task('apps.einvoicing.tasks.submit_invoice_task', organization_id, invoice_id)
"""

from __future__ import annotations

import logging
from typing import Any

from django.utils import timezone
from django_q.models import Schedule
from django_q.tasks import async_task

from .service import EInvoicingService

logger = logging.getLogger(__name__)

# Task timeout in seconds
TASK_TIMEOUT = 120

RETRY_SCHEDULE_NAME = "einvoicing_process_due_retries"
RETRY_SCHEDULE_MINUTES = 5


def submit_invoice_task(organization_id: str, invoice_id: str) -> dict[str, Any]:
    """
    Submit a single invoice to the tax authority.

    Args:
        organization_id: UUID of the owning organization
        invoice_id: UUID of the invoice to submit

    Returns:
        Dict with result status and details
    """
    logger.info(f"[e-Invoicing Task] Starting submission for invoice {invoice_id}")

    outcome = EInvoicingService().submit_invoice(organization_id, invoice_id)

    if outcome.success:
        logger.info(f"[e-Invoicing Task] Invoice {invoice_id} validated (job {outcome.job_id})")
    else:
        logger.warning(f"[e-Invoicing Task] Submission of invoice {invoice_id} failed: {outcome.error}")

    return {
        **outcome.to_dict(),
        "invoice_id": str(invoice_id),
        "error_kind": str(outcome.error_kind) if outcome.error_kind else None,
    }


def process_due_retries_task() -> dict[str, Any]:
    """
    Recover jobs abandoned in processing, then re-run failed jobs that are due.

    This task should be scheduled to run periodically (e.g., every 5 minutes).

    Returns:
        Dict with summary of retried jobs
    """
    logger.info("[e-Invoicing Task] Processing due retries")

    service = EInvoicingService()
    recovered = service.recover_stale_processing()
    results = service.process_due_retries()

    logger.info(f"[e-Invoicing Task] Retries complete: {results} (recovered {len(recovered)} stale)")
    return {
        "success": True,
        "timestamp": timezone.now().isoformat(),
        "recovered": len(recovered),
        **results,
    }


# --- Task Scheduling Helpers ---


def schedule_einvoicing_tasks(minutes: int = RETRY_SCHEDULE_MINUTES) -> Schedule:
    """
    Install or update the recurring retry schedule.

    Args:
        minutes: Interval between retry sweeps

    Returns:
        The Schedule row
    """
    schedule, created = Schedule.objects.update_or_create(
        name=RETRY_SCHEDULE_NAME,
        defaults={
            "func": "apps.einvoicing.tasks.process_due_retries_task",
            "schedule_type": Schedule.MINUTES,
            "minutes": minutes,
        },
    )
    action = "created" if created else "updated"
    logger.info(f"[e-Invoicing Task] Retry schedule {action} (every {minutes} min)")
    return schedule


# --- Async Task Helpers ---


def queue_invoice_submission(organization_id: str, invoice_id: str) -> str | None:
    """
    Queue an invoice for submission.

    Args:
        organization_id: UUID of the owning organization
        invoice_id: UUID of the invoice

    Returns:
        Task ID if queued, None if failed
    """
    try:
        task_id = async_task(
            "apps.einvoicing.tasks.submit_invoice_task",
            str(organization_id),
            str(invoice_id),
            timeout=TASK_TIMEOUT,
        )
    except Exception as e:
        logger.error(f"🔥 [e-Invoicing] Failed to queue submission for invoice {invoice_id}: {e}")
        return None

    logger.info(f"[e-Invoicing Task] Queued submission for invoice {invoice_id}: task {task_id}")
    return str(task_id)
