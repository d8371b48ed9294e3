"""
Billing models read by the fiscal submission pipeline.

These entities are owned by the surrounding point-of-sale application.
The e-invoicing pipeline only reads them, except for the fiscal identifiers
it writes back onto an Invoice once the tax authority validates it.
"""

from __future__ import annotations

import uuid
from typing import ClassVar

from django.db import models
from django.db.models import Q
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

# ===============================================================================
# ORGANIZATION & BRANCHES
# ===============================================================================


class Organization(models.Model):
    """Tenant issuing invoices"""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    legal_name = models.CharField(max_length=255, blank=True)
    tax_id = models.CharField(max_length=50, blank=True, help_text=_("NIT of the issuing organization"))
    address = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    municipality_code = models.CharField(max_length=10, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_organization"
        ordering: ClassVar[tuple[str, ...]] = ("name",)

    def __str__(self) -> str:
        return self.legal_name or self.name


class Branch(models.Model):
    """Point of sale / establishment belonging to an organization"""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="branches")
    name = models.CharField(max_length=255)
    address = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    municipality_code = models.CharField(max_length=10, blank=True)

    class Meta:
        db_table = "billing_branch"
        ordering: ClassVar[tuple[str, ...]] = ("name",)

    def __str__(self) -> str:
        return f"{self.organization} / {self.name}"


# ===============================================================================
# FISCAL MUNICIPALITIES
# ===============================================================================


class MunicipalityManager(models.Manager["Municipality"]):
    def authority_id_for(self, code: str | None) -> int | None:
        """Resolve a DANE municipality code into the authority's numeric id."""
        if not code:
            return None
        return self.filter(code=code).values_list("authority_id", flat=True).first()


class Municipality(models.Model):
    """Lookup table mapping DANE municipality codes to the tax authority's ids"""

    code = models.CharField(max_length=10, unique=True, help_text=_("DANE municipality code"))
    name = models.CharField(max_length=120)
    department = models.CharField(max_length=120, blank=True)
    authority_id = models.PositiveIntegerField(help_text=_("Municipality id expected by the tax authority"))

    objects = MunicipalityManager()

    class Meta:
        db_table = "billing_municipality"
        verbose_name_plural = "municipalities"

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"


# ===============================================================================
# CUSTOMERS
# ===============================================================================


class Customer(models.Model):
    """Buyer of a sale"""

    PERSON_TYPE_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("natural", _("Natural person")),
        ("legal", _("Legal entity")),
    ]

    IDENTIFICATION_TYPE_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("CC", _("Citizenship card")),
        ("CE", _("Foreigner ID")),
        ("NIT", _("NIT")),
        ("PP", _("Passport")),
        ("TI", _("Identity card")),
        ("RC", _("Civil registry")),
    ]

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="customers")
    person_type = models.CharField(max_length=10, choices=PERSON_TYPE_CHOICES, default="natural")
    first_name = models.CharField(max_length=120, blank=True)
    last_name = models.CharField(max_length=120, blank=True)
    company_name = models.CharField(max_length=255, blank=True)
    trade_name = models.CharField(max_length=255, blank=True)
    identification_type = models.CharField(max_length=5, choices=IDENTIFICATION_TYPE_CHOICES, default="CC")
    identification_number = models.CharField(max_length=50, blank=True)
    verification_digit = models.CharField(max_length=2, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=50, blank=True)
    address = models.CharField(max_length=255, blank=True)
    municipality_code = models.CharField(max_length=10, blank=True, help_text=_("Fiscal municipality (DANE code)"))
    is_vat_responsible = models.BooleanField(default=False)

    class Meta:
        db_table = "billing_customer"

    def __str__(self) -> str:
        return self.company_name or f"{self.first_name} {self.last_name}".strip() or str(self.pk)


# ===============================================================================
# NUMBERING RANGES
# ===============================================================================


class NumberingRangeManager(models.Manager["NumberingRange"]):
    def active_for(self, organization_id: object, document_type: str) -> NumberingRange | None:
        """
        Select the single numbering range to use for a document.

        Picks the most recently created active range that has not expired.
        """
        today = timezone.localdate()
        return (
            self.filter(organization_id=organization_id, document_type=document_type, is_active=True)
            .filter(Q(valid_until__isnull=True) | Q(valid_until__gte=today))
            .order_by("-created_at", "-id")
            .first()
        )


class NumberingRange(models.Model):
    """Official numbering allocation issued by the tax authority"""

    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="numbering_ranges")
    document_type = models.CharField(max_length=20, default="invoice")
    authority_range_id = models.PositiveIntegerField(help_text=_("Range id assigned by the tax authority"))
    prefix = models.CharField(max_length=10, blank=True)
    range_from = models.PositiveBigIntegerField(default=1)
    range_to = models.PositiveBigIntegerField(default=1)
    resolution_number = models.CharField(max_length=50, blank=True)
    valid_until = models.DateField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = NumberingRangeManager()

    class Meta:
        db_table = "billing_numbering_range"
        indexes: ClassVar[tuple[models.Index, ...]] = (
            models.Index(fields=["organization", "document_type", "is_active"], name="billing_numrange_lookup_idx"),
        )

    def __str__(self) -> str:
        return f"{self.prefix} {self.range_from}-{self.range_to} [{self.document_type}]"


# ===============================================================================
# INVOICES
# ===============================================================================


class Invoice(models.Model):
    """Locally finalized sales invoice"""

    STATUS_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("draft", _("Draft")),
        ("issued", _("Issued")),
        ("validated", _("Validated")),
        ("void", _("Void")),
    ]

    DOCUMENT_TYPE_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("invoice", _("Sales invoice")),
        ("credit_note", _("Credit note")),
        ("debit_note", _("Debit note")),
    ]

    PAYMENT_TERMS_CHOICES: ClassVar[list[tuple[str, str]]] = [
        ("cash", _("Cash")),
        ("credit", _("Credit")),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organization = models.ForeignKey(Organization, on_delete=models.CASCADE, related_name="invoices")
    branch = models.ForeignKey(Branch, on_delete=models.SET_NULL, null=True, blank=True, related_name="invoices")
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name="invoices")

    number = models.CharField(max_length=50, blank=True)
    document_type = models.CharField(max_length=20, choices=DOCUMENT_TYPE_CHOICES, default="invoice")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default="issued", db_index=True)
    reference_code = models.CharField(max_length=50, blank=True)
    notes = models.TextField(blank=True)

    # Payment
    payment_terms = models.CharField(max_length=10, choices=PAYMENT_TERMS_CHOICES, default="cash")
    payment_method = models.CharField(max_length=50, blank=True, help_text=_("Human readable payment method"))
    payment_method_code = models.CharField(max_length=5, blank=True)
    due_date = models.DateField(null=True, blank=True)

    # Fiscal identifiers written back after authority validation
    cufe = models.CharField(max_length=255, blank=True)
    qr_code = models.TextField(blank=True)
    fiscal_number = models.CharField(max_length=50, blank=True)
    validated_at = models.DateTimeField(null=True, blank=True)

    issued_at = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "billing_invoice"
        ordering: ClassVar[tuple[str, ...]] = ("-created_at",)

    def __str__(self) -> str:
        return self.number or str(self.id)

    def mark_validated(self, cufe: str, qr_code: str, fiscal_number: str = "", save: bool = True) -> None:
        """Record the identifiers returned by the tax authority."""
        self.cufe = cufe
        self.qr_code = qr_code
        if fiscal_number:
            self.fiscal_number = fiscal_number
        self.validated_at = timezone.now()
        self.status = "validated"
        if save:
            self.save(update_fields=["cufe", "qr_code", "fiscal_number", "validated_at", "status", "updated_at"])


class InvoiceItem(models.Model):
    """Invoice line item; numeric fields may be missing on legacy rows"""

    invoice = models.ForeignKey(Invoice, on_delete=models.CASCADE, related_name="items")
    sku = models.CharField(max_length=100, blank=True)
    description = models.CharField(max_length=500)
    quantity = models.DecimalField(max_digits=14, decimal_places=4, null=True, blank=True)
    unit_price = models.DecimalField(max_digits=18, decimal_places=2, null=True, blank=True)
    discount_rate = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    tax_rate = models.DecimalField(max_digits=6, decimal_places=2, null=True, blank=True)
    sort_order = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "billing_invoice_item"
        ordering: ClassVar[tuple[str, ...]] = ("sort_order", "id")

    def __str__(self) -> str:
        return self.description
