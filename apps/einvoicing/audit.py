"""
Audit trail for e-Invoicing submission jobs.

Every job transition (claim, acceptance, failure) is written as an
append-only AuditEvent. Recording is best-effort: a failure to write the
event is logged and swallowed so it never undoes the transition it
describes.
"""

from __future__ import annotations

import logging
from typing import Any

from django.db import transaction

from .models import AuditEvent, AuditEventType, SubmissionJob

logger = logging.getLogger(__name__)

# Error codes attached to `error` events
AUTH_ERROR = "AUTH_ERROR"
SUBMISSION_REJECTED = "SUBMISSION_REJECTED"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
UNEXPECTED_ERROR = "UNEXPECTED_ERROR"
STALE_PROCESSING = "STALE_PROCESSING"


class AuditEventRecorder:
    """Appends audit events for submission jobs; never raises."""

    def record(
        self,
        job: SubmissionJob,
        event_type: AuditEventType | str,
        event_code: str = "",
        message: str = "",
        metadata: dict[str, Any] | None = None,
    ) -> AuditEvent | None:
        """
        Append one event for the job.

        Runs inside its own savepoint so a failed insert leaves any
        surrounding transaction usable.

        Returns:
            The stored AuditEvent, or None if it could not be written
        """
        try:
            with transaction.atomic():
                event = AuditEvent.objects.create(
                    job=job,
                    event_type=str(event_type),
                    event_code=event_code,
                    event_message=message,
                    metadata=metadata or {},
                )
            logger.debug(f"Audit: {event_type} {event_code} recorded for job {job.id}")
            return event
        except Exception:
            logger.exception(f"🔥 [e-Invoicing] Failed to record {event_type} audit event for job {job.id}")
            return None

    def processing(self, job: SubmissionJob) -> AuditEvent | None:
        return self.record(
            job,
            AuditEventType.PROCESSING,
            message=f"Submission attempt {job.attempt_count + 1} started",
            metadata={"environment": job.environment},
        )

    def validated(self, job: SubmissionJob, number: str, cufe: str, qr: str) -> AuditEvent | None:
        return self.record(
            job,
            AuditEventType.VALIDATED,
            message="Document validated by the tax authority",
            metadata={"number": number, "cufe": cufe, "qr": qr},
        )

    def error(
        self, job: SubmissionJob, event_code: str, message: str, metadata: dict[str, Any] | None = None
    ) -> AuditEvent | None:
        return self.record(job, AuditEventType.ERROR, event_code=event_code, message=message, metadata=metadata)


# Module-level recorder shared by the process
audit_recorder = AuditEventRecorder()
