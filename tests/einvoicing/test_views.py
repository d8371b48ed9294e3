"""
Tests for the e-Invoicing REST API.
"""

from datetime import timedelta
from unittest.mock import Mock, patch
from uuid import uuid4

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from apps.common.types import Err, Ok
from apps.einvoicing.client import SubmissionClient, SubmissionError, SubmissionResult
from apps.einvoicing.models import SubmissionJob, SubmissionJobStatus
from apps.einvoicing.service import SubmissionErrorKind, SubmissionOutcome
from apps.einvoicing.token_cache import CachedToken, CredentialCache
from tests.factories.billing_factories import create_organization, create_submittable_invoice

User = get_user_model()

SUBMIT_URL = "/api/einvoicing/submit/"


def patched_collaborators(*client_results):
    """Patch the default client and token cache used by EInvoicingService()."""
    client = Mock(spec=SubmissionClient)
    client.submit.side_effect = list(client_results)
    cache = Mock(spec=CredentialCache)
    cache.get_valid_token.return_value = Ok(CachedToken("tok", timezone.now() + timedelta(hours=1)))
    return (
        patch("apps.einvoicing.service.SubmissionClient", return_value=client),
        patch("apps.einvoicing.service.credential_cache", cache),
    )


class EInvoicingAPITestCase(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="cashier", password="pw")
        self.api = APIClient()
        self.api.force_authenticate(self.user)
        self.invoice = create_submittable_invoice()

    def submit(self, **body):
        return self.api.post(SUBMIT_URL, body, format="json")

    def create_failed_job(self):
        return SubmissionJob.objects.create(
            invoice=self.invoice,
            organization=self.invoice.organization,
            status=SubmissionJobStatus.FAILED.value,
            attempt_count=1,
        )


class SubmitInvoiceAPITestCase(EInvoicingAPITestCase):
    def test_requires_authentication(self):
        response = APIClient().post(SUBMIT_URL, {}, format="json")
        self.assertIn(response.status_code, (401, 403))

    def test_successful_submission(self):
        validated = SubmissionResult(cufe="cufe-9", qr="qr-9", number="SETP9", raw_response={"ok": True})
        client_patch, cache_patch = patched_collaborators(Ok(validated))

        with client_patch, cache_patch:
            response = self.submit(organization_id=str(self.invoice.organization_id), invoice_id=str(self.invoice.id))

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["data"]["cufe"], "cufe-9")
        self.assertEqual(SubmissionJob.objects.get(id=body["jobId"]).status, "accepted")

    def test_network_failure_returns_job_id(self):
        client_patch, cache_patch = patched_collaborators(Err(SubmissionError.transport("timeout")))

        with client_patch, cache_patch:
            response = self.submit(organization_id=str(self.invoice.organization_id), invoice_id=str(self.invoice.id))

        self.assertEqual(response.status_code, 502)
        body = response.json()
        self.assertFalse(body["success"])
        self.assertEqual(SubmissionJob.objects.get(id=body["jobId"]).status, "failed")

    def test_missing_identifiers(self):
        response = self.submit(invoice_id=str(self.invoice.id))

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])
        self.assertFalse(SubmissionJob.objects.exists())

    def test_malformed_identifier(self):
        response = self.submit(organization_id="nope", invoice_id=str(self.invoice.id))
        self.assertEqual(response.status_code, 400)

    @patch("apps.einvoicing.views.EInvoicingService")
    def test_error_kinds_map_to_http_status(self, service_cls):
        cases = {
            SubmissionErrorKind.NOT_CONFIGURED: 503,
            SubmissionErrorKind.NOT_FOUND: 404,
            SubmissionErrorKind.NUMBERING_RANGE_MISSING: 422,
            SubmissionErrorKind.DUPLICATE_SUBMISSION: 409,
            SubmissionErrorKind.ALREADY_ACCEPTED: 409,
        }
        for kind, expected in cases.items():
            service_cls.return_value.submit_invoice.return_value = SubmissionOutcome.failure(kind, "x")
            response = self.submit(organization_id=str(uuid4()), invoice_id=str(uuid4()))
            self.assertEqual(response.status_code, expected, kind)

    @patch("apps.einvoicing.views.queue_invoice_submission", return_value="task-7")
    def test_async_submission_is_queued(self, mock_queue):
        response = self.submit(
            organization_id=str(self.invoice.organization_id), invoice_id=str(self.invoice.id), run_async=True
        )

        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["taskId"], "task-7")
        mock_queue.assert_called_once_with(str(self.invoice.organization_id), str(self.invoice.id))


class StatusAndEventsAPITestCase(EInvoicingAPITestCase):
    def test_invoice_status(self):
        url = reverse("einvoicing:invoice-status", args=[self.invoice.id])

        response = self.api.get(url, {"organization_id": str(self.invoice.organization_id)})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["invoiceStatus"], "issued")
        self.assertIsNone(response.json()["job"])

    def test_invoice_status_requires_organization(self):
        url = reverse("einvoicing:invoice-status", args=[self.invoice.id])
        self.assertEqual(self.api.get(url).status_code, 400)

    def test_invoice_status_unknown_invoice(self):
        url = reverse("einvoicing:invoice-status", args=[uuid4()])
        response = self.api.get(url, {"organization_id": str(self.invoice.organization_id)})
        self.assertEqual(response.status_code, 404)

    def test_job_events(self):
        client_patch, cache_patch = patched_collaborators(Err(SubmissionError.transport("timeout")))
        with client_patch, cache_patch:
            body = self.submit(
                organization_id=str(self.invoice.organization_id), invoice_id=str(self.invoice.id)
            ).json()

        response = self.api.get(
            reverse("einvoicing:job-events", args=[body["jobId"]]),
            {"organization_id": str(self.invoice.organization_id)},
        )

        self.assertEqual(response.status_code, 200)
        events = response.json()["results"]
        self.assertEqual([e["event_type"] for e in events], ["processing", "error"])
        self.assertEqual(events[1]["event_code"], "TRANSPORT_ERROR")
        self.assertEqual(response.json()["attemptCount"], 1)

    def test_job_events_unknown_job(self):
        response = self.api.get(
            reverse("einvoicing:job-events", args=[uuid4()]),
            {"organization_id": str(self.invoice.organization_id)},
        )
        self.assertEqual(response.status_code, 404)

    def test_job_events_require_organization(self):
        job = self.create_failed_job()
        response = self.api.get(reverse("einvoicing:job-events", args=[job.id]))
        self.assertEqual(response.status_code, 400)

    def test_job_events_of_another_organization_are_not_found(self):
        job = self.create_failed_job()
        other = create_organization("Otra SAS")

        response = self.api.get(reverse("einvoicing:job-events", args=[job.id]), {"organization_id": str(other.id)})

        self.assertEqual(response.status_code, 404)
        self.assertNotIn("status", response.json())
