"""
e-Invoicing models for tracking tax authority submissions.

SubmissionJob is the state machine subject for one invoice submission:
- created in `processing` before any external call
- `accepted` on authority validation (terminal, immutable)
- `failed` on authentication, rejection or transport errors (retryable)

AuditEvent is the append-only history of every job transition.
Neither model may be deleted; both are compliance evidence.
"""

from __future__ import annotations

import uuid
from datetime import timedelta
from enum import StrEnum
from typing import Any, ClassVar

from django.db import models
from django.db.models import Q
from django.utils import timezone


class SubmissionJobStatus(StrEnum):
    """Submission job status enumeration."""

    PENDING = "pending"
    PROCESSING = "processing"  # Claimed, external call in flight
    ACCEPTED = "accepted"  # Authority validated the document
    FAILED = "failed"  # Attempt failed, may be retried

    @classmethod
    def choices(cls) -> list[tuple[str, str]]:
        return [(status.value, status.name.title()) for status in cls]


class AuditEventType(StrEnum):
    """Audit event types recorded for job transitions."""

    PROCESSING = "processing"
    VALIDATED = "validated"
    ERROR = "error"

    @classmethod
    def choices(cls) -> list[tuple[str, str]]:
        return [(event.value, event.name.title()) for event in cls]


class JobTransitionError(Exception):
    """Raised when a transition would violate the job state machine."""


class ImmutableRecordError(Exception):
    """Raised on attempts to modify or delete compliance evidence."""


# ===============================================================================
# SUBMISSION JOB
# ===============================================================================


class SubmissionJob(models.Model):
    """
    One fiscal submission of an invoice to the tax authority.

    Invariants enforced at the database level:
    - at most one `processing` job per invoice
    - at most one `accepted` job per invoice
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice = models.ForeignKey(
        "billing.Invoice",
        on_delete=models.PROTECT,
        related_name="submission_jobs",
        help_text="The invoice being submitted",
    )
    organization = models.ForeignKey(
        "billing.Organization",
        on_delete=models.PROTECT,
        related_name="submission_jobs",
    )

    status = models.CharField(
        max_length=20,
        choices=SubmissionJobStatus.choices(),
        default=SubmissionJobStatus.PENDING.value,
        db_index=True,
    )

    # Payloads
    request_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Mapped fiscal document exactly as submitted",
    )
    response_payload = models.JSONField(
        default=dict,
        blank=True,
        help_text="Authority response on acceptance",
    )
    error_message = models.TextField(blank=True)

    # Retry tracking
    attempt_count = models.PositiveIntegerField(default=0)
    next_retry_at = models.DateTimeField(null=True, blank=True)

    environment = models.CharField(max_length=20, default="sandbox")

    processed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "einvoicing_submission_job"
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(
                fields=["status", "next_retry_at"],
                name="einv_job_retry_idx",
                condition=Q(status="failed", next_retry_at__isnull=False),
            ),
            models.Index(fields=["invoice", "-created_at"], name="einv_job_invoice_idx"),
        )
        constraints: ClassVar[tuple[models.BaseConstraint, ...]] = (
            models.UniqueConstraint(
                fields=["invoice"],
                condition=Q(status="processing"),
                name="unique_processing_job_per_invoice",
            ),
            models.UniqueConstraint(
                fields=["invoice"],
                condition=Q(status="accepted"),
                name="unique_accepted_job_per_invoice",
            ),
        )

    def __str__(self) -> str:
        return f"SubmissionJob {self.id} for invoice {self.invoice_id} [{self.status}]"

    def delete(self, *args: Any, **kwargs: Any) -> Any:
        raise ImmutableRecordError("Submission jobs are compliance evidence and cannot be deleted")

    # --- Status Transition Methods ---

    def _ensure_not_accepted(self) -> None:
        if self.status == SubmissionJobStatus.ACCEPTED.value:
            raise JobTransitionError(f"Job {self.id} is accepted and immutable")

    def set_request_payload(self, payload: dict[str, Any], save: bool = True) -> None:
        """Store the mapped document before it is sent."""
        self._ensure_not_accepted()
        self.request_payload = payload
        if save:
            self.save(update_fields=["request_payload", "updated_at"])

    def mark_accepted(self, response: dict[str, Any], save: bool = True) -> None:
        """Mark job as accepted by the authority."""
        self._ensure_not_accepted()
        if self.status != SubmissionJobStatus.PROCESSING.value:
            raise JobTransitionError(f"Job {self.id} cannot be accepted from {self.status}")
        self.status = SubmissionJobStatus.ACCEPTED.value
        self.response_payload = response
        self.error_message = ""
        self.next_retry_at = None
        self.processed_at = timezone.now()
        if save:
            self.save(
                update_fields=[
                    "status",
                    "response_payload",
                    "error_message",
                    "next_retry_at",
                    "processed_at",
                    "updated_at",
                ]
            )

    def mark_failed(self, error_message: str, retry_delay_seconds: int, save: bool = True) -> None:
        """Mark job as failed and schedule the next attempt."""
        self._ensure_not_accepted()
        self.status = SubmissionJobStatus.FAILED.value
        self.error_message = error_message
        self.attempt_count += 1
        self.next_retry_at = timezone.now() + timedelta(seconds=max(retry_delay_seconds, 1))
        if save:
            self.save(update_fields=["status", "error_message", "attempt_count", "next_retry_at", "updated_at"])

    @classmethod
    def reclaim_failed(cls, job_id: uuid.UUID) -> bool:
        """
        Atomically move a failed job back to processing for a new attempt.

        Returns False when the job is no longer failed (another caller won).
        May raise IntegrityError if another job for the invoice is processing.
        """
        updated = cls.objects.filter(id=job_id, status=SubmissionJobStatus.FAILED.value).update(
            status=SubmissionJobStatus.PROCESSING.value,
            request_payload={},
            next_retry_at=None,
            updated_at=timezone.now(),
        )
        return updated == 1

    # --- Query Methods ---

    @classmethod
    def latest_for_invoice(cls, invoice_id: Any) -> SubmissionJob | None:
        return cls.objects.filter(invoice_id=invoice_id).order_by("-created_at").first()

    @classmethod
    def get_ready_for_retry(cls, max_attempts: int, limit: int = 100) -> models.QuerySet[SubmissionJob]:
        """Get failed jobs whose retry time has come and that still have attempts left."""
        now = timezone.now()
        return cls.objects.filter(
            status=SubmissionJobStatus.FAILED.value,
            next_retry_at__isnull=False,
            next_retry_at__lte=now,
            attempt_count__lt=max_attempts,
        ).order_by("next_retry_at")[:limit]

    @classmethod
    def get_stale_processing(cls, minutes: int = 30) -> models.QuerySet[SubmissionJob]:
        """Get jobs stuck in processing, e.g. after a crashed worker."""
        cutoff = timezone.now() - timedelta(minutes=minutes)
        return cls.objects.filter(status=SubmissionJobStatus.PROCESSING.value, updated_at__lt=cutoff)

    # --- Business Logic ---

    @property
    def is_accepted(self) -> bool:
        return self.status == SubmissionJobStatus.ACCEPTED.value

    @property
    def can_retry(self) -> bool:
        return self.status == SubmissionJobStatus.FAILED.value


# ===============================================================================
# AUDIT EVENTS
# ===============================================================================


class AuditEventQuerySet(models.QuerySet["AuditEvent"]):
    def update(self, **kwargs: Any) -> int:
        raise ImmutableRecordError("Audit events cannot be updated")

    def delete(self) -> tuple[int, dict[str, int]]:
        raise ImmutableRecordError("Audit events cannot be deleted")


class AuditEvent(models.Model):
    """Immutable audit record of a submission job transition."""

    job = models.ForeignKey(SubmissionJob, on_delete=models.PROTECT, related_name="events")
    event_type = models.CharField(max_length=20, choices=AuditEventType.choices(), db_index=True)
    event_code = models.CharField(max_length=50, blank=True)
    event_message = models.TextField(blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now, editable=False)

    objects = AuditEventQuerySet.as_manager()

    class Meta:
        db_table = "einvoicing_audit_event"
        ordering: ClassVar[tuple[str, ...]] = ("created_at", "id")
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["job", "created_at"], name="einv_event_job_idx"),
        )

    def __str__(self) -> str:
        return f"{self.event_type} {self.event_code} for job {self.job_id}"

    def save(self, *args: Any, **kwargs: Any) -> None:
        if not self._state.adding:
            raise ImmutableRecordError("Audit events are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any) -> Any:
        raise ImmutableRecordError("Audit events cannot be deleted")
