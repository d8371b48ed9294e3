"""
e-Invoicing service managing the submission job lifecycle.

This service orchestrates:
- Precondition checks (identifiers, credentials, invoice, numbering range)
- Atomic job claiming with per-invoice exclusivity
- Document mapping
- Token acquisition and authority submission
- Job and invoice state transitions
- Audit logging

It is the single place where failures are classified. Every path that got
as far as claiming a job reports the job id back to the caller.

Usage:
    from apps.einvoicing.service import EInvoicingService

    outcome = EInvoicingService().submit_invoice(organization_id, invoice_id)
    return outcome.to_dict()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from types import SimpleNamespace
from typing import Any

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from apps.billing.models import Invoice, Municipality, NumberingRange

from .audit import (
    AUTH_ERROR,
    STALE_PROCESSING,
    SUBMISSION_REJECTED,
    TRANSPORT_ERROR,
    UNEXPECTED_ERROR,
    AuditEventRecorder,
    audit_recorder,
)
from .client import ClientErrorKind, SubmissionClient, SubmissionResult
from .mapper import FiscalDocument, MappingDefaults, map_invoice_to_fiscal_document
from .models import SubmissionJob, SubmissionJobStatus
from .settings import AuthorityCredentials, EInvoicingSettings, einvoicing_settings
from .token_cache import CredentialCache, credential_cache

logger = logging.getLogger(__name__)

# Authority replies meaning the bearer token is no longer accepted
TOKEN_REJECTED_STATUS_CODES = frozenset({401, 403})


class SubmissionErrorKind(StrEnum):
    """Classification of a failed submission request."""

    INVALID_REQUEST = "INVALID_REQUEST"
    NOT_CONFIGURED = "NOT_CONFIGURED"
    NOT_FOUND = "NOT_FOUND"
    NUMBERING_RANGE_MISSING = "NUMBERING_RANGE_MISSING"
    ALREADY_ACCEPTED = "ALREADY_ACCEPTED"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    AUTHENTICATION = "AUTHENTICATION"
    SUBMISSION_REJECTED = "SUBMISSION_REJECTED"
    TRANSPORT = "TRANSPORT"
    UNEXPECTED = "UNEXPECTED"


@dataclass
class SubmissionOutcome:
    """Result of one submission request, as returned to the caller."""

    success: bool
    job_id: str | None = None
    data: dict[str, Any] | None = None
    error: str = ""
    error_kind: SubmissionErrorKind | None = None

    @classmethod
    def ok(cls, job_id: str, data: dict[str, Any]) -> SubmissionOutcome:
        return cls(success=True, job_id=job_id, data=data)

    @classmethod
    def failure(cls, kind: SubmissionErrorKind, error: str, job_id: str | None = None) -> SubmissionOutcome:
        return cls(success=False, job_id=job_id, error=error, error_kind=kind)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, "jobId": self.job_id}
        if self.data is not None:
            result["data"] = self.data
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class InvoiceSubmissionStatus:
    """Fiscal status of an invoice and its latest submission job."""

    invoice_id: str
    invoice_status: str
    cufe: str = ""
    qr_code: str = ""
    fiscal_number: str = ""
    validated_at: str | None = None
    job: dict[str, Any] | None = field(default=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "invoiceId": self.invoice_id,
            "invoiceStatus": self.invoice_status,
            "cufe": self.cufe,
            "qrCode": self.qr_code,
            "fiscalNumber": self.fiscal_number,
            "validatedAt": self.validated_at,
            "job": self.job,
        }


class EInvoicingService:
    """
    High-level service for tax authority submissions.

    Collaborators are injectable; by default the process-wide credential
    cache, audit recorder and settings are used.
    """

    def __init__(
        self,
        client: SubmissionClient | None = None,
        token_cache: CredentialCache | None = None,
        recorder: AuditEventRecorder | None = None,
        settings: EInvoicingSettings | None = None,
    ):
        self._client = client or SubmissionClient()
        self._token_cache = token_cache or credential_cache
        self._recorder = recorder or audit_recorder
        self._settings = settings or einvoicing_settings

    @property
    def client(self) -> SubmissionClient:
        return self._client

    # --- Main Workflow ---

    def submit_invoice(self, organization_id: Any, invoice_id: Any) -> SubmissionOutcome:
        """
        Submit an invoice to the tax authority.

        This method:
        1. Validates identifiers and configuration
        2. Resolves the invoice and its numbering range
        3. Claims a job (new, or the latest failed one)
        4. Maps and stores the fiscal document
        5. Obtains a token and submits
        6. Records the outcome on the job, the invoice and the audit trail

        Args:
            organization_id: Tenant owning the invoice
            invoice_id: Invoice to submit

        Returns:
            SubmissionOutcome; never raises
        """
        if not organization_id or not invoice_id:
            return SubmissionOutcome.failure(
                SubmissionErrorKind.INVALID_REQUEST, "Both organization_id and invoice_id are required"
            )

        credentials = self._settings.credentials
        if not credentials.is_complete():
            logger.warning("⚠️ [e-Invoicing] Submission requested but credentials are not configured")
            return SubmissionOutcome.failure(
                SubmissionErrorKind.NOT_CONFIGURED, "e-Invoicing credentials are not configured"
            )

        invoice = self._get_invoice(organization_id, invoice_id)
        if invoice is None:
            return SubmissionOutcome.failure(SubmissionErrorKind.NOT_FOUND, f"Invoice {invoice_id} not found")

        numbering_range = NumberingRange.objects.active_for(organization_id, invoice.document_type)
        if numbering_range is None:
            logger.warning(f"⚠️ [e-Invoicing] No active numbering range for invoice {invoice.id} ({invoice.document_type})")
            return SubmissionOutcome.failure(
                SubmissionErrorKind.NUMBERING_RANGE_MISSING,
                f"No active numbering configuration for document type '{invoice.document_type}'",
            )

        claim = self._claim_job(invoice, credentials)
        if isinstance(claim, SubmissionOutcome):
            return claim

        return self._run_attempt(claim, invoice, numbering_range, credentials)

    def retry_job(self, job: SubmissionJob) -> SubmissionOutcome:
        """
        Run a new attempt for a failed job.

        Args:
            job: SubmissionJob in `failed` state

        Returns:
            SubmissionOutcome
        """
        if job.is_accepted:
            return SubmissionOutcome.failure(
                SubmissionErrorKind.ALREADY_ACCEPTED, "Job is already accepted", job_id=str(job.id)
            )
        if not job.can_retry:
            return SubmissionOutcome.failure(
                SubmissionErrorKind.DUPLICATE_SUBMISSION,
                f"Job cannot be retried from status {job.status}",
                job_id=str(job.id),
            )

        logger.info(f"🔄 [e-Invoicing] Retrying job {job.id} (attempt {job.attempt_count + 1})")
        return self.submit_invoice(job.organization_id, job.invoice_id)

    # --- Batch Operations ---

    def process_due_retries(self, limit: int | None = None) -> dict[str, int]:
        """
        Re-run failed jobs whose retry time has passed.

        Returns:
            Summary of processed jobs
        """
        limit = limit or self._settings.retry_batch_size
        due = list(SubmissionJob.get_ready_for_retry(self._settings.max_attempts, limit))
        results = {"retried": 0, "accepted": 0, "failed": 0}

        for job in due:
            outcome = self.retry_job(job)
            results["retried"] += 1
            if outcome.success:
                results["accepted"] += 1
            else:
                results["failed"] += 1

        if due:
            logger.info(f"🔄 [e-Invoicing] Processed {len(due)} due retries: {results}")
        return results

    def recover_stale_processing(self, minutes: int | None = None) -> list[str]:
        """
        Fail jobs left in `processing` by a crashed or killed attempt.

        Recovered jobs become ordinary failed jobs, so the retry sweep or a
        new submission picks them up again.

        Args:
            minutes: Age after which a processing job is considered abandoned

        Returns:
            IDs of the recovered jobs
        """
        minutes = minutes or self._settings.stale_processing_minutes
        recovered: list[str] = []

        for stale in SubmissionJob.get_stale_processing(minutes):
            with transaction.atomic():
                job = (
                    SubmissionJob.objects.select_for_update()
                    .filter(id=stale.id, status=SubmissionJobStatus.PROCESSING.value)
                    .first()
                )
                if job is None:
                    continue
                message = f"Attempt abandoned in processing for more than {minutes} minutes"
                job.mark_failed(message, self._settings.retry_delay_seconds)

            self._recorder.error(
                job,
                STALE_PROCESSING,
                message,
                metadata={"attempt": job.attempt_count, "stale_minutes": minutes},
            )
            logger.warning(f"⚠️ [e-Invoicing] Recovered stale job {job.id} for invoice {job.invoice_id}")
            recovered.append(str(job.id))

        return recovered

    # --- Queries ---

    def get_invoice_status(self, organization_id: Any, invoice_id: Any) -> InvoiceSubmissionStatus | None:
        """Get the fiscal status of an invoice and its latest job."""
        invoice = self._get_invoice(organization_id, invoice_id)
        if invoice is None:
            return None

        latest = SubmissionJob.latest_for_invoice(invoice.id)
        job_data = None
        if latest is not None:
            job_data = {
                "id": str(latest.id),
                "status": latest.status,
                "attemptCount": latest.attempt_count,
                "nextRetryAt": latest.next_retry_at.isoformat() if latest.next_retry_at else None,
                "errorMessage": latest.error_message,
                "updatedAt": latest.updated_at.isoformat(),
            }

        return InvoiceSubmissionStatus(
            invoice_id=str(invoice.id),
            invoice_status=invoice.status,
            cufe=invoice.cufe,
            qr_code=invoice.qr_code,
            fiscal_number=invoice.fiscal_number,
            validated_at=invoice.validated_at.isoformat() if invoice.validated_at else None,
            job=job_data,
        )

    def detect_payload_drift(self, job: SubmissionJob) -> list[str]:
        """
        Re-map the job's invoice from its current state and compare.

        Returns:
            Top-level payload keys whose values differ from `request_payload`;
            empty when the stored payload still matches
        """
        invoice = self._get_invoice(job.organization_id, job.invoice_id)
        if invoice is None:
            return sorted(job.request_payload)

        numbering_range = NumberingRange.objects.active_for(job.organization_id, invoice.document_type)
        if numbering_range is None:
            numbering_range = SimpleNamespace(authority_range_id=None)

        current = self._map_document(invoice, numbering_range).to_payload()
        stored = job.request_payload or {}
        return sorted(key for key in set(current) | set(stored) if current.get(key) != stored.get(key))

    # --- Helper Methods ---

    def _get_invoice(self, organization_id: Any, invoice_id: Any) -> Invoice | None:
        try:
            return Invoice.objects.select_related("organization", "branch", "customer").get(
                id=invoice_id, organization_id=organization_id
            )
        except (Invoice.DoesNotExist, ValidationError, ValueError):
            return None

    def _blocking_job(self, invoice: Invoice) -> SubmissionJob | None:
        """The accepted or in-flight job that prevents a new attempt, if any."""
        return (
            SubmissionJob.objects.filter(
                invoice=invoice,
                status__in=[SubmissionJobStatus.ACCEPTED.value, SubmissionJobStatus.PROCESSING.value],
            )
            .order_by("-created_at")
            .first()
        )

    def _refuse_claim(self, invoice: Invoice, blocking: SubmissionJob | None) -> SubmissionOutcome:
        if blocking is not None and blocking.is_accepted:
            return SubmissionOutcome.failure(
                SubmissionErrorKind.ALREADY_ACCEPTED,
                "Invoice has already been validated by the tax authority",
                job_id=str(blocking.id),
            )

        logger.warning(f"⚠️ [e-Invoicing] Duplicate submission rejected for invoice {invoice.id}")
        return SubmissionOutcome.failure(
            SubmissionErrorKind.DUPLICATE_SUBMISSION,
            "A submission for this invoice is already in progress",
            job_id=str(blocking.id) if blocking is not None else None,
        )

    def _claim_job(self, invoice: Invoice, credentials: AuthorityCredentials) -> SubmissionJob | SubmissionOutcome:
        """
        Claim the invoice for a new attempt.

        The invoice row is locked while accepted and in-flight jobs are
        re-checked, then the latest failed job is reused or a new one is
        created in `processing`.

        Returns:
            The claimed job, or a refusal outcome carrying the blocking job id
        """
        latest = SubmissionJob.latest_for_invoice(invoice.id)
        try:
            with transaction.atomic():
                Invoice.objects.select_for_update().get(pk=invoice.pk)

                blocking = self._blocking_job(invoice)
                if blocking is not None:
                    return self._refuse_claim(invoice, blocking)

                if latest is not None and latest.status == SubmissionJobStatus.FAILED.value:
                    if not SubmissionJob.reclaim_failed(latest.id):
                        return self._refuse_claim(invoice, self._blocking_job(invoice))
                    latest.refresh_from_db()
                    job = latest
                else:
                    job = SubmissionJob.objects.create(
                        invoice=invoice,
                        organization_id=invoice.organization_id,
                        status=SubmissionJobStatus.PROCESSING.value,
                        request_payload={},
                        environment=str(credentials.environment),
                    )
        except IntegrityError:
            return self._refuse_claim(invoice, self._blocking_job(invoice))

        self._recorder.processing(job)
        return job

    def _mapping_defaults(self) -> MappingDefaults:
        return MappingDefaults(
            reference_prefix=self._settings.reference_prefix,
            default_tax_rate=self._settings.default_tax_rate,
            default_municipality_code=self._settings.default_municipality_code,
        )

    def _map_document(self, invoice: Invoice, numbering_range: Any) -> FiscalDocument:
        municipality_code = Municipality.objects.authority_id_for(invoice.customer.municipality_code)
        return map_invoice_to_fiscal_document(
            invoice,
            list(invoice.items.all()),
            numbering_range,
            municipality_code,
            defaults=self._mapping_defaults(),
        )

    def _run_attempt(
        self,
        job: SubmissionJob,
        invoice: Invoice,
        numbering_range: NumberingRange,
        credentials: AuthorityCredentials,
    ) -> SubmissionOutcome:
        try:
            document = self._map_document(invoice, numbering_range)
            job.set_request_payload(document.to_payload())

            token_result = self._token_cache.get_valid_token(credentials)
            if token_result.is_err():
                auth_error = token_result.unwrap_err()
                return self._fail(
                    job,
                    AUTH_ERROR,
                    SubmissionErrorKind.AUTHENTICATION,
                    f"Authentication failed: {auth_error.message}",
                    {"status_code": auth_error.status_code},
                )

            result = self._client.submit(credentials.environment, token_result.unwrap().access_token, document)
            if result.is_err():
                error = result.unwrap_err()
                if error.kind == ClientErrorKind.REJECTED and error.status_code in TOKEN_REJECTED_STATUS_CODES:
                    logger.warning(f"⚠️ [e-Invoicing] Token refused (HTTP {error.status_code}), dropping cached token")
                    self._token_cache.invalidate(credentials.environment)
                if error.kind == ClientErrorKind.REJECTED:
                    code, kind = SUBMISSION_REJECTED, SubmissionErrorKind.SUBMISSION_REJECTED
                else:
                    code, kind = TRANSPORT_ERROR, SubmissionErrorKind.TRANSPORT
                return self._fail(
                    job, code, kind, error.message, {"status_code": error.status_code, "errors": error.errors}
                )

            return self._accept(job, invoice, result.unwrap())

        except Exception as e:
            logger.exception(f"🔥 [e-Invoicing] Unexpected error submitting invoice {invoice.id} (job {job.id})")
            job.refresh_from_db()
            return self._fail(job, UNEXPECTED_ERROR, SubmissionErrorKind.UNEXPECTED, f"Unexpected error: {e}")

    def _accept(self, job: SubmissionJob, invoice: Invoice, result: SubmissionResult) -> SubmissionOutcome:
        with transaction.atomic():
            job.mark_accepted(result.raw_response)
            invoice.mark_validated(result.cufe, result.qr, fiscal_number=result.number)

        self._recorder.validated(job, number=result.number, cufe=result.cufe, qr=result.qr)
        logger.info(f"✅ [e-Invoicing] Invoice {invoice.id} validated as {result.number} (job {job.id})")
        return SubmissionOutcome.ok(
            str(job.id),
            {"number": result.number, "cufe": result.cufe, "qr": result.qr, "message": result.message},
        )

    def _fail(
        self,
        job: SubmissionJob,
        event_code: str,
        kind: SubmissionErrorKind,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> SubmissionOutcome:
        job.mark_failed(message, self._settings.retry_delay_seconds)
        self._recorder.error(
            job,
            event_code,
            message,
            metadata={"attempt": job.attempt_count, **(metadata or {})},
        )
        logger.warning(f"⚠️ [e-Invoicing] Job {job.id} failed ({event_code}): {message}")
        return SubmissionOutcome.failure(kind, message, job_id=str(job.id))


def submit_invoice(organization_id: Any, invoice_id: Any) -> SubmissionOutcome:
    """
    Submit an invoice with the default collaborators.

    Convenience function for use in views and tasks.
    """
    return EInvoicingService().submit_invoice(organization_id, invoice_id)
