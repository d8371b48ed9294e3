"""
Tests for submission job and audit event models.
"""

from datetime import timedelta

from django.db import IntegrityError, transaction
from django.test import TestCase
from django.utils import timezone

from apps.billing.models import NumberingRange
from apps.einvoicing.models import (
    AuditEvent,
    AuditEventType,
    ImmutableRecordError,
    JobTransitionError,
    SubmissionJob,
    SubmissionJobStatus,
)
from tests.factories.billing_factories import (
    create_invoice,
    create_numbering_range,
    create_organization,
)


def create_job(invoice, status=SubmissionJobStatus.PROCESSING.value, **fields):
    return SubmissionJob.objects.create(
        invoice=invoice,
        organization=invoice.organization,
        status=status,
        **fields,
    )


class SubmissionJobConstraintTestCase(TestCase):
    def setUp(self):
        self.invoice = create_invoice(create_organization())

    def test_only_one_processing_job_per_invoice(self):
        create_job(self.invoice)
        with self.assertRaises(IntegrityError), transaction.atomic():
            create_job(self.invoice)

    def test_only_one_accepted_job_per_invoice(self):
        create_job(self.invoice, status=SubmissionJobStatus.ACCEPTED.value)
        with self.assertRaises(IntegrityError), transaction.atomic():
            create_job(self.invoice, status=SubmissionJobStatus.ACCEPTED.value)

    def test_failed_jobs_do_not_conflict(self):
        create_job(self.invoice, status=SubmissionJobStatus.FAILED.value)
        create_job(self.invoice, status=SubmissionJobStatus.FAILED.value)
        create_job(self.invoice)
        self.assertEqual(SubmissionJob.objects.filter(invoice=self.invoice).count(), 3)

    def test_jobs_cannot_be_deleted(self):
        job = create_job(self.invoice)
        with self.assertRaises(ImmutableRecordError):
            job.delete()


class SubmissionJobTransitionTestCase(TestCase):
    def setUp(self):
        self.invoice = create_invoice(create_organization())
        self.job = create_job(self.invoice)

    def test_mark_failed_increments_attempts_and_schedules_retry(self):
        before = timezone.now()
        self.job.mark_failed("Request timed out", retry_delay_seconds=300)
        self.job.refresh_from_db()

        self.assertEqual(self.job.status, SubmissionJobStatus.FAILED.value)
        self.assertEqual(self.job.attempt_count, 1)
        self.assertEqual(self.job.error_message, "Request timed out")
        self.assertGreaterEqual(self.job.next_retry_at, before + timedelta(seconds=300))

    def test_attempt_count_is_monotonic(self):
        self.job.mark_failed("first", 300)
        SubmissionJob.reclaim_failed(self.job.id)
        self.job.refresh_from_db()
        self.job.mark_failed("second", 300)

        self.assertEqual(self.job.attempt_count, 2)

    def test_mark_accepted_clears_retry(self):
        self.job.mark_accepted({"data": {"bill": {"cufe": "x"}}})
        self.job.refresh_from_db()

        self.assertTrue(self.job.is_accepted)
        self.assertIsNone(self.job.next_retry_at)
        self.assertIsNotNone(self.job.processed_at)
        self.assertEqual(self.job.response_payload["data"]["bill"]["cufe"], "x")

    def test_accepted_job_is_immutable(self):
        self.job.mark_accepted({})
        with self.assertRaises(JobTransitionError):
            self.job.mark_failed("late failure", 300)
        with self.assertRaises(JobTransitionError):
            self.job.set_request_payload({"changed": True})

    def test_cannot_accept_failed_job_directly(self):
        self.job.mark_failed("boom", 300)
        with self.assertRaises(JobTransitionError):
            self.job.mark_accepted({})

    def test_reclaim_failed_is_conditional(self):
        self.job.mark_failed("boom", 300)

        self.assertTrue(SubmissionJob.reclaim_failed(self.job.id))
        self.assertFalse(SubmissionJob.reclaim_failed(self.job.id))

        self.job.refresh_from_db()
        self.assertEqual(self.job.status, SubmissionJobStatus.PROCESSING.value)
        self.assertIsNone(self.job.next_retry_at)
        self.assertEqual(self.job.request_payload, {})


class SubmissionJobQueryTestCase(TestCase):
    def setUp(self):
        self.organization = create_organization()

    def test_get_ready_for_retry(self):
        due = create_job(
            create_invoice(self.organization),
            status=SubmissionJobStatus.FAILED.value,
            next_retry_at=timezone.now() - timedelta(minutes=1),
            attempt_count=1,
        )
        create_job(
            create_invoice(self.organization),
            status=SubmissionJobStatus.FAILED.value,
            next_retry_at=timezone.now() + timedelta(minutes=5),
            attempt_count=1,
        )
        create_job(
            create_invoice(self.organization),
            status=SubmissionJobStatus.FAILED.value,
            next_retry_at=timezone.now() - timedelta(minutes=1),
            attempt_count=5,
        )

        ready = list(SubmissionJob.get_ready_for_retry(max_attempts=5))

        self.assertEqual(ready, [due])

    def test_get_stale_processing(self):
        stale = create_job(create_invoice(self.organization))
        SubmissionJob.objects.filter(id=stale.id).update(updated_at=timezone.now() - timedelta(hours=1))
        create_job(create_invoice(self.organization))

        self.assertEqual(list(SubmissionJob.get_stale_processing(minutes=30)), [stale])

    def test_latest_for_invoice(self):
        invoice = create_invoice(self.organization)
        older = create_job(invoice, status=SubmissionJobStatus.FAILED.value)
        SubmissionJob.objects.filter(id=older.id).update(created_at=timezone.now() - timedelta(minutes=10))
        newest = create_job(invoice)

        self.assertEqual(SubmissionJob.latest_for_invoice(invoice.id), newest)


class AuditEventImmutabilityTestCase(TestCase):
    def setUp(self):
        job = create_job(create_invoice(create_organization()))
        self.event = AuditEvent.objects.create(job=job, event_type=AuditEventType.PROCESSING.value)

    def test_existing_event_cannot_be_saved(self):
        self.event.event_message = "rewritten"
        with self.assertRaises(ImmutableRecordError):
            self.event.save()

    def test_event_cannot_be_deleted(self):
        with self.assertRaises(ImmutableRecordError):
            self.event.delete()

    def test_queryset_update_and_delete_refused(self):
        with self.assertRaises(ImmutableRecordError):
            AuditEvent.objects.filter(id=self.event.id).update(event_message="x")
        with self.assertRaises(ImmutableRecordError):
            AuditEvent.objects.filter(id=self.event.id).delete()


class NumberingRangeSelectionTestCase(TestCase):
    def setUp(self):
        self.organization = create_organization()

    def test_no_range(self):
        self.assertIsNone(NumberingRange.objects.active_for(self.organization.id, "invoice"))

    def test_selects_most_recent_active_unexpired(self):
        create_numbering_range(self.organization, authority_range_id=1)
        newest = create_numbering_range(self.organization, authority_range_id=2)
        create_numbering_range(self.organization, authority_range_id=3, is_active=False)
        create_numbering_range(
            self.organization, authority_range_id=4, valid_until=timezone.localdate() - timedelta(days=1)
        )

        self.assertEqual(NumberingRange.objects.active_for(self.organization.id, "invoice"), newest)

    def test_document_type_scoped(self):
        create_numbering_range(self.organization, document_type="credit_note")
        self.assertIsNone(NumberingRange.objects.active_for(self.organization.id, "invoice"))
