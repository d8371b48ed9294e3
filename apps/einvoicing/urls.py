# ===============================================================================
# E-INVOICING API URLS 🔗
# ===============================================================================

from django.urls import path

from .views import invoice_status_api, job_events_api, submit_invoice_api

app_name = "einvoicing"

urlpatterns = [
    path("submit/", submit_invoice_api, name="submit"),
    path("invoices/<uuid:invoice_id>/status/", invoice_status_api, name="invoice-status"),
    path("jobs/<uuid:job_id>/events/", job_events_api, name="job-events"),
]
