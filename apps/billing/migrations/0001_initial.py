import uuid

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=255)),
                ("legal_name", models.CharField(blank=True, max_length=255)),
                ("tax_id", models.CharField(blank=True, help_text="NIT of the issuing organization", max_length=50)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("municipality_code", models.CharField(blank=True, max_length=10)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "billing_organization",
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="Municipality",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(help_text="DANE municipality code", max_length=10, unique=True)),
                ("name", models.CharField(max_length=120)),
                ("department", models.CharField(blank=True, max_length=120)),
                (
                    "authority_id",
                    models.PositiveIntegerField(help_text="Municipality id expected by the tax authority"),
                ),
            ],
            options={
                "db_table": "billing_municipality",
                "verbose_name_plural": "municipalities",
            },
        ),
        migrations.CreateModel(
            name="Branch",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                ("address", models.CharField(blank=True, max_length=255)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("municipality_code", models.CharField(blank=True, max_length=10)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="branches",
                        to="billing.organization",
                    ),
                ),
            ],
            options={
                "db_table": "billing_branch",
                "ordering": ("name",),
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "person_type",
                    models.CharField(
                        choices=[("natural", "Natural person"), ("legal", "Legal entity")],
                        default="natural",
                        max_length=10,
                    ),
                ),
                ("first_name", models.CharField(blank=True, max_length=120)),
                ("last_name", models.CharField(blank=True, max_length=120)),
                ("company_name", models.CharField(blank=True, max_length=255)),
                ("trade_name", models.CharField(blank=True, max_length=255)),
                (
                    "identification_type",
                    models.CharField(
                        choices=[
                            ("CC", "Citizenship card"),
                            ("CE", "Foreigner ID"),
                            ("NIT", "NIT"),
                            ("PP", "Passport"),
                            ("TI", "Identity card"),
                            ("RC", "Civil registry"),
                        ],
                        default="CC",
                        max_length=5,
                    ),
                ),
                ("identification_number", models.CharField(blank=True, max_length=50)),
                ("verification_digit", models.CharField(blank=True, max_length=2)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("address", models.CharField(blank=True, max_length=255)),
                (
                    "municipality_code",
                    models.CharField(blank=True, help_text="Fiscal municipality (DANE code)", max_length=10),
                ),
                ("is_vat_responsible", models.BooleanField(default=False)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="customers",
                        to="billing.organization",
                    ),
                ),
            ],
            options={
                "db_table": "billing_customer",
            },
        ),
        migrations.CreateModel(
            name="NumberingRange",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("document_type", models.CharField(default="invoice", max_length=20)),
                ("authority_range_id", models.PositiveIntegerField(help_text="Range id assigned by the tax authority")),
                ("prefix", models.CharField(blank=True, max_length=10)),
                ("range_from", models.PositiveBigIntegerField(default=1)),
                ("range_to", models.PositiveBigIntegerField(default=1)),
                ("resolution_number", models.CharField(blank=True, max_length=50)),
                ("valid_until", models.DateField(blank=True, null=True)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="numbering_ranges",
                        to="billing.organization",
                    ),
                ),
            ],
            options={
                "db_table": "billing_numbering_range",
                "indexes": [
                    models.Index(
                        fields=["organization", "document_type", "is_active"],
                        name="billing_numrange_lookup_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Invoice",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("number", models.CharField(blank=True, max_length=50)),
                (
                    "document_type",
                    models.CharField(
                        choices=[
                            ("invoice", "Sales invoice"),
                            ("credit_note", "Credit note"),
                            ("debit_note", "Debit note"),
                        ],
                        default="invoice",
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("issued", "Issued"),
                            ("validated", "Validated"),
                            ("void", "Void"),
                        ],
                        db_index=True,
                        default="issued",
                        max_length=20,
                    ),
                ),
                ("reference_code", models.CharField(blank=True, max_length=50)),
                ("notes", models.TextField(blank=True)),
                (
                    "payment_terms",
                    models.CharField(choices=[("cash", "Cash"), ("credit", "Credit")], default="cash", max_length=10),
                ),
                (
                    "payment_method",
                    models.CharField(blank=True, help_text="Human readable payment method", max_length=50),
                ),
                ("payment_method_code", models.CharField(blank=True, max_length=5)),
                ("due_date", models.DateField(blank=True, null=True)),
                ("cufe", models.CharField(blank=True, max_length=255)),
                ("qr_code", models.TextField(blank=True)),
                ("fiscal_number", models.CharField(blank=True, max_length=50)),
                ("validated_at", models.DateTimeField(blank=True, null=True)),
                ("issued_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "branch",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="invoices",
                        to="billing.branch",
                    ),
                ),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="invoices",
                        to="billing.customer",
                    ),
                ),
                (
                    "organization",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="invoices",
                        to="billing.organization",
                    ),
                ),
            ],
            options={
                "db_table": "billing_invoice",
                "ordering": ("-created_at",),
            },
        ),
        migrations.CreateModel(
            name="InvoiceItem",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("sku", models.CharField(blank=True, max_length=100)),
                ("description", models.CharField(max_length=500)),
                ("quantity", models.DecimalField(blank=True, decimal_places=4, max_digits=14, null=True)),
                ("unit_price", models.DecimalField(blank=True, decimal_places=2, max_digits=18, null=True)),
                ("discount_rate", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ("tax_rate", models.DecimalField(blank=True, decimal_places=2, max_digits=6, null=True)),
                ("sort_order", models.PositiveIntegerField(default=0)),
                (
                    "invoice",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="billing.invoice",
                    ),
                ),
            ],
            options={
                "db_table": "billing_invoice_item",
                "ordering": ("sort_order", "id"),
            },
        ),
    ]
