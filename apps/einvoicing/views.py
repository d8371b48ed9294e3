# ===============================================================================
# E-INVOICING API VIEWS 🧾
# ===============================================================================

from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.request import Request
from rest_framework.response import Response

from .models import AuditEvent, SubmissionJob
from .serializers import AuditEventSerializer, OrganizationQuerySerializer, SubmitInvoiceSerializer
from .service import EInvoicingService, SubmissionErrorKind
from .tasks import queue_invoice_submission

ERROR_STATUS_CODES: dict[SubmissionErrorKind, int] = {
    SubmissionErrorKind.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    SubmissionErrorKind.NOT_CONFIGURED: status.HTTP_503_SERVICE_UNAVAILABLE,
    SubmissionErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    SubmissionErrorKind.NUMBERING_RANGE_MISSING: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SubmissionErrorKind.ALREADY_ACCEPTED: status.HTTP_409_CONFLICT,
    SubmissionErrorKind.DUPLICATE_SUBMISSION: status.HTTP_409_CONFLICT,
    SubmissionErrorKind.AUTHENTICATION: status.HTTP_502_BAD_GATEWAY,
    SubmissionErrorKind.SUBMISSION_REJECTED: status.HTTP_422_UNPROCESSABLE_ENTITY,
    SubmissionErrorKind.TRANSPORT: status.HTTP_502_BAD_GATEWAY,
    SubmissionErrorKind.UNEXPECTED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


# ===============================================================================
# SUBMISSION API 📤
# ===============================================================================


@api_view(["POST"])
def submit_invoice_api(request: Request) -> Response:
    """
    📤 Invoice Submission API

    POST /api/einvoicing/submit/

    Request Body:
    {
        "organization_id": "6c1f...",
        "invoice_id": "0b9e...",
        "run_async": false
    }

    Response:
    {
        "success": true,
        "jobId": "9a4d...",
        "data": {"number": "SETP990000001", "cufe": "...", "qr": "..."}
    }
    """
    serializer = SubmitInvoiceSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(
            {"success": False, "jobId": None, "error": serializer.errors},
            status=status.HTTP_400_BAD_REQUEST,
        )

    organization_id = serializer.validated_data.get("organization_id")
    invoice_id = serializer.validated_data.get("invoice_id")

    if serializer.validated_data["run_async"] and organization_id and invoice_id:
        task_id = queue_invoice_submission(str(organization_id), str(invoice_id))
        if task_id is None:
            return Response(
                {"success": False, "jobId": None, "error": "Could not queue submission"},
                status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )
        return Response({"success": True, "jobId": None, "taskId": task_id}, status=status.HTTP_202_ACCEPTED)

    outcome = EInvoicingService().submit_invoice(organization_id, invoice_id)
    if outcome.success:
        return Response(outcome.to_dict(), status=status.HTTP_200_OK)

    http_status = ERROR_STATUS_CODES.get(outcome.error_kind, status.HTTP_400_BAD_REQUEST)
    return Response(outcome.to_dict(), status=http_status)


# ===============================================================================
# STATUS & AUDIT TRAIL API 🔍
# ===============================================================================


@api_view(["GET"])
def invoice_status_api(request: Request, invoice_id: str) -> Response:
    """
    🔍 Fiscal status of an invoice and its latest submission job

    GET /api/einvoicing/invoices/<invoice_id>/status/?organization_id=<uuid>
    """
    query = OrganizationQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return Response({"error": query.errors}, status=status.HTTP_400_BAD_REQUEST)

    invoice_status = EInvoicingService().get_invoice_status(query.validated_data["organization_id"], invoice_id)
    if invoice_status is None:
        return Response({"error": "Invoice not found"}, status=status.HTTP_404_NOT_FOUND)

    return Response(invoice_status.to_dict())


@api_view(["GET"])
def job_events_api(request: Request, job_id: str) -> Response:
    """
    📜 Audit trail of a submission job, oldest first

    GET /api/einvoicing/jobs/<job_id>/events/?organization_id=<uuid>
    """
    query = OrganizationQuerySerializer(data=request.query_params)
    if not query.is_valid():
        return Response({"error": query.errors}, status=status.HTTP_400_BAD_REQUEST)

    job = SubmissionJob.objects.filter(id=job_id, organization_id=query.validated_data["organization_id"]).first()
    if job is None:
        return Response({"error": "Job not found"}, status=status.HTTP_404_NOT_FOUND)

    events = AuditEvent.objects.filter(job=job).order_by("created_at", "id")
    return Response(
        {
            "jobId": str(job.id),
            "status": job.status,
            "attemptCount": job.attempt_count,
            "results": AuditEventSerializer(events, many=True).data,
        }
    )
