"""
Tests for e-Invoicing Django-Q tasks and management commands.
"""

from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django_q.models import Schedule

from apps.einvoicing.service import SubmissionErrorKind, SubmissionOutcome
from apps.einvoicing.tasks import (
    RETRY_SCHEDULE_NAME,
    process_due_retries_task,
    queue_invoice_submission,
    schedule_einvoicing_tasks,
    submit_invoice_task,
)


class SubmitInvoiceTaskTestCase(TestCase):
    @patch("apps.einvoicing.tasks.EInvoicingService")
    def test_success(self, service_cls):
        service_cls.return_value.submit_invoice.return_value = SubmissionOutcome.ok("job-1", {"cufe": "abc"})

        result = submit_invoice_task("org-1", "inv-1")

        service_cls.return_value.submit_invoice.assert_called_once_with("org-1", "inv-1")
        self.assertTrue(result["success"])
        self.assertEqual(result["jobId"], "job-1")
        self.assertEqual(result["invoice_id"], "inv-1")
        self.assertIsNone(result["error_kind"])

    @patch("apps.einvoicing.tasks.EInvoicingService")
    def test_failure(self, service_cls):
        service_cls.return_value.submit_invoice.return_value = SubmissionOutcome.failure(
            SubmissionErrorKind.TRANSPORT, "timeout", job_id="job-2"
        )

        result = submit_invoice_task("org-1", "inv-1")

        self.assertFalse(result["success"])
        self.assertEqual(result["error"], "timeout")
        self.assertEqual(result["error_kind"], "TRANSPORT")


class ProcessDueRetriesTaskTestCase(TestCase):
    @patch("apps.einvoicing.tasks.EInvoicingService")
    def test_summary(self, service_cls):
        service_cls.return_value.recover_stale_processing.return_value = ["job-9"]
        service_cls.return_value.process_due_retries.return_value = {"retried": 2, "accepted": 1, "failed": 1}

        result = process_due_retries_task()

        self.assertTrue(result["success"])
        self.assertEqual(result["retried"], 2)
        self.assertEqual(result["recovered"], 1)
        service_cls.return_value.recover_stale_processing.assert_called_once_with()
        self.assertIn("timestamp", result)


class SchedulingTestCase(TestCase):
    def test_schedule_is_idempotent(self):
        schedule_einvoicing_tasks()
        schedule_einvoicing_tasks(minutes=10)

        schedule = Schedule.objects.get(name=RETRY_SCHEDULE_NAME)
        self.assertEqual(schedule.func, "apps.einvoicing.tasks.process_due_retries_task")
        self.assertEqual(schedule.schedule_type, Schedule.MINUTES)
        self.assertEqual(schedule.minutes, 10)
        self.assertEqual(Schedule.objects.filter(name=RETRY_SCHEDULE_NAME).count(), 1)

    def test_nothing_scheduled_by_default(self):
        self.assertFalse(Schedule.objects.filter(name=RETRY_SCHEDULE_NAME).exists())

    def test_setup_command(self):
        out = StringIO()
        call_command("setup_einvoicing_schedules", "--minutes", "15", stdout=out)

        self.assertEqual(Schedule.objects.get(name=RETRY_SCHEDULE_NAME).minutes, 15)
        self.assertIn("every 15 min", out.getvalue())


class QueueSubmissionTestCase(TestCase):
    @patch("apps.einvoicing.tasks.async_task", return_value="task-123")
    def test_queues_task(self, mock_async):
        task_id = queue_invoice_submission("org-1", "inv-1")

        self.assertEqual(task_id, "task-123")
        mock_async.assert_called_once()
        args = mock_async.call_args[0]
        self.assertEqual(args, ("apps.einvoicing.tasks.submit_invoice_task", "org-1", "inv-1"))

    @patch("apps.einvoicing.tasks.async_task", side_effect=RuntimeError("broker down"))
    def test_queue_failure_returns_none(self, _mock_async):
        self.assertIsNone(queue_invoice_submission("org-1", "inv-1"))


class ProcessRetriesCommandTestCase(TestCase):
    @patch("apps.einvoicing.management.commands.process_einvoice_retries.EInvoicingService")
    def test_runs_service(self, service_cls):
        service_cls.return_value.recover_stale_processing.return_value = ["job-9"]
        service_cls.return_value.process_due_retries.return_value = {"retried": 1, "accepted": 1, "failed": 0}
        out = StringIO()

        call_command("process_einvoice_retries", "--limit", "10", stdout=out)

        service_cls.return_value.process_due_retries.assert_called_once_with(limit=10)
        self.assertIn("1 accepted", out.getvalue())
        self.assertIn("Recovered 1 stale processing job(s)", out.getvalue())

    @patch("apps.einvoicing.management.commands.process_einvoice_retries.EInvoicingService")
    def test_dry_run_does_not_submit(self, service_cls):
        out = StringIO()

        call_command("process_einvoice_retries", "--dry-run", stdout=out)

        service_cls.assert_not_called()
        self.assertIn("0 job(s) due for retry", out.getvalue())
