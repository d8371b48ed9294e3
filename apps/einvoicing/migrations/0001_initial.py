import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    """
    Add submission jobs and their append-only audit events.

    The conditional unique constraints guarantee that an invoice never has
    two jobs processing at once nor two accepted fiscal filings.
    """

    initial = True

    dependencies = [
        ("billing", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="SubmissionJob",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("accepted", "Accepted"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                (
                    "request_payload",
                    models.JSONField(blank=True, default=dict, help_text="Mapped fiscal document exactly as submitted"),
                ),
                (
                    "response_payload",
                    models.JSONField(blank=True, default=dict, help_text="Authority response on acceptance"),
                ),
                ("error_message", models.TextField(blank=True)),
                ("attempt_count", models.PositiveIntegerField(default=0)),
                ("next_retry_at", models.DateTimeField(blank=True, null=True)),
                ("environment", models.CharField(default="sandbox", max_length=20)),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "invoice",
                    models.ForeignKey(
                        help_text="The invoice being submitted",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="submission_jobs",
                        to="billing.invoice",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="submission_jobs",
                        to="billing.organization",
                    ),
                ),
            ],
            options={
                "db_table": "einvoicing_submission_job",
                "ordering": ("-created_at",),
                "indexes": [
                    models.Index(
                        condition=models.Q(("next_retry_at__isnull", False), ("status", "failed")),
                        fields=["status", "next_retry_at"],
                        name="einv_job_retry_idx",
                    ),
                    models.Index(fields=["invoice", "-created_at"], name="einv_job_invoice_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "processing")),
                        fields=("invoice",),
                        name="unique_processing_job_per_invoice",
                    ),
                    models.UniqueConstraint(
                        condition=models.Q(("status", "accepted")),
                        fields=("invoice",),
                        name="unique_accepted_job_per_invoice",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="AuditEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "event_type",
                    models.CharField(
                        choices=[("processing", "Processing"), ("validated", "Validated"), ("error", "Error")],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                ("event_code", models.CharField(blank=True, max_length=50)),
                ("event_message", models.TextField(blank=True)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, editable=False)),
                (
                    "job",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="events",
                        to="einvoicing.submissionjob",
                    ),
                ),
            ],
            options={
                "db_table": "einvoicing_audit_event",
                "ordering": ("created_at", "id"),
                "indexes": [models.Index(fields=["job", "created_at"], name="einv_event_job_idx")],
            },
        ),
    ]
