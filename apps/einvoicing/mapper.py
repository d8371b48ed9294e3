"""
Invoice to fiscal document mapping.

Pure transformation from the internal invoice, line items, customer and
organization data into the tax authority's bill schema. No I/O happens here:
callers resolve the numbering range and municipality beforehand and pass
the results in. Missing optional data is defaulted, never rejected.

The authority validates strict schemas, so the derivation rules below are
reproduced exactly on every attempt.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .settings import DEFAULT_MUNICIPALITY_CODE, DEFAULT_PAYMENT_METHOD_CODE, DEFAULT_TAX_RATE, REFERENCE_CODE_PREFIX

SCHEMA_VERSION = "bills-validate/v1"

CUSTOMER_NAME_PLACEHOLDER = "Customer"

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")

# Human payment method labels -> authority payment method codes
PAYMENT_METHOD_CODES: dict[str, str] = {
    "cash": "10",
    "efectivo": "10",
    "check": "20",
    "cheque": "20",
    "deposit": "42",
    "consignacion": "42",
    "bank_transfer": "47",
    "transfer": "47",
    "transferencia": "47",
    "transferencia_bancaria": "47",
    "card": "48",
    "credit_card": "48",
    "tarjeta": "48",
    "tarjeta_credito": "48",
    "tarjeta_de_credito": "48",
    "debit_card": "49",
    "tarjeta_debito": "49",
    "tarjeta_de_debito": "49",
}

# Customer identification types -> authority identification document ids
IDENTIFICATION_DOCUMENT_IDS: dict[str, int] = {
    "RC": 1,
    "TI": 2,
    "CC": 3,
    "TE": 4,
    "CE": 5,
    "NIT": 6,
    "PP": 7,
}

LEGAL_ENTITY_ORGANIZATION_ID = 1
NATURAL_PERSON_ORGANIZATION_ID = 2

TRIBUTE_VAT = 18
TRIBUTE_NOT_APPLICABLE = 21

PAYMENT_FORM_CASH = "1"
PAYMENT_FORM_CREDIT = "2"

# Item defaults fixed by the bill schema
UNIT_MEASURE_UNIT = 70
STANDARD_CODE_OWN = 1
ITEM_TRIBUTE_VAT = 1


@dataclass(frozen=True)
class MappingDefaults:
    """Jurisdiction defaults applied when invoice data is missing."""

    reference_prefix: str = REFERENCE_CODE_PREFIX
    default_tax_rate: Decimal = DEFAULT_TAX_RATE
    default_municipality_code: int = DEFAULT_MUNICIPALITY_CODE


DEFAULT_MAPPING = MappingDefaults()


# ===============================================================================
# FISCAL DOCUMENT SCHEMA
# ===============================================================================


@dataclass(frozen=True)
class FiscalEstablishment:
    name: str
    address: str
    phone_number: str
    email: str

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "phone_number": self.phone_number,
            "email": self.email,
        }


@dataclass(frozen=True)
class FiscalCustomer:
    identification: str
    dv: str
    company: str
    trade_name: str
    names: str
    address: str
    email: str
    phone: str
    legal_organization_id: int
    tribute_id: int
    identification_document_id: int
    municipality_id: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "identification": self.identification,
            "dv": self.dv,
            "company": self.company,
            "trade_name": self.trade_name,
            "names": self.names,
            "address": self.address,
            "email": self.email,
            "phone": self.phone,
            "legal_organization_id": str(self.legal_organization_id),
            "tribute_id": str(self.tribute_id),
            "identification_document_id": str(self.identification_document_id),
            "municipality_id": str(self.municipality_id),
        }


@dataclass(frozen=True)
class FiscalItem:
    code_reference: str
    name: str
    quantity: Decimal
    discount_rate: Decimal
    price: Decimal
    tax_rate: str
    unit_measure_id: int = UNIT_MEASURE_UNIT
    standard_code_id: int = STANDARD_CODE_OWN
    is_excluded: int = 0
    tribute_id: int = ITEM_TRIBUTE_VAT

    def to_payload(self) -> dict[str, Any]:
        return {
            "code_reference": self.code_reference,
            "name": self.name,
            "quantity": _json_number(self.quantity),
            "discount_rate": _json_number(self.discount_rate),
            "price": _json_number(self.price),
            "tax_rate": self.tax_rate,
            "unit_measure_id": self.unit_measure_id,
            "standard_code_id": self.standard_code_id,
            "is_excluded": self.is_excluded,
            "tribute_id": self.tribute_id,
            "withholding_taxes": [],
        }


@dataclass(frozen=True)
class FiscalDocument:
    """Bill document in the shape the authority's validate endpoint expects."""

    numbering_range_id: int
    reference_code: str
    observation: str
    payment_form: str
    payment_due_date: str
    payment_method_code: str
    establishment: FiscalEstablishment
    customer: FiscalCustomer
    items: tuple[FiscalItem, ...] = field(default_factory=tuple)
    schema_version: str = SCHEMA_VERSION

    def to_payload(self) -> dict[str, Any]:
        """Build the JSON-ready request body."""
        payload: dict[str, Any] = {
            "numbering_range_id": self.numbering_range_id,
            "reference_code": self.reference_code,
            "observation": self.observation,
            "payment_form": self.payment_form,
            "payment_method_code": self.payment_method_code,
            "establishment": self.establishment.to_payload(),
            "customer": self.customer.to_payload(),
            "items": [item.to_payload() for item in self.items],
        }
        if self.payment_due_date:
            payload["payment_due_date"] = self.payment_due_date
        return payload


# ===============================================================================
# NORMALIZATION HELPERS
# ===============================================================================


def to_decimal(value: Any) -> Decimal:
    """Normalize a possibly missing or non-numeric value to a Decimal, zero otherwise."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return ZERO
    if not number.is_finite():
        return ZERO
    return number


def format_rate(value: Any, default: Decimal) -> str:
    """Render a percentage as the fixed-point two-decimal string the authority expects."""
    rate = default if value is None else to_decimal(value) if _is_numeric(value) else default
    return str(rate.quantize(TWO_PLACES))


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    try:
        return Decimal(str(value).strip()).is_finite()
    except (InvalidOperation, ValueError):
        return False


def _json_number(value: Decimal) -> int | str:
    """Integral amounts as JSON integers, fractional ones as fixed-point strings."""
    if value == value.to_integral_value():
        return int(value)
    return format(value, "f")


def _first_non_empty(*values: Any) -> str:
    """Return the first non-blank string among values, else an empty string."""
    for value in values:
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _normalize_label(label: str) -> str:
    stripped = unicodedata.normalize("NFKD", label).encode("ascii", "ignore").decode("ascii")
    return "_".join(stripped.lower().replace("-", " ").split())


def resolve_payment_method_code(explicit_code: str | None, label: str | None) -> str:
    """Prefer the explicit code; otherwise look up the human label."""
    if explicit_code and str(explicit_code).strip():
        return str(explicit_code).strip()
    if label:
        return PAYMENT_METHOD_CODES.get(_normalize_label(label), DEFAULT_PAYMENT_METHOD_CODE)
    return DEFAULT_PAYMENT_METHOD_CODE


def build_reference_code(invoice: Any, prefix: str = REFERENCE_CODE_PREFIX) -> str:
    if invoice.reference_code:
        return str(invoice.reference_code)
    return f"{prefix}{str(invoice.id)[:8]}"


def build_customer_name(first_name: str | None, last_name: str | None) -> str:
    name = f"{first_name or ''} {last_name or ''}".strip()
    return name or CUSTOMER_NAME_PLACEHOLDER


# ===============================================================================
# MAPPER
# ===============================================================================


def _map_establishment(invoice: Any) -> FiscalEstablishment:
    organization = invoice.organization
    branch = invoice.branch
    return FiscalEstablishment(
        name=_first_non_empty(organization.legal_name, organization.name),
        address=_first_non_empty(getattr(branch, "address", None), organization.address),
        phone_number=_first_non_empty(getattr(branch, "phone", None), organization.phone),
        email=_first_non_empty(getattr(branch, "email", None), organization.email),
    )


def _map_customer(customer: Any, municipality_code: int | None, defaults: MappingDefaults) -> FiscalCustomer:
    is_legal_entity = customer.person_type == "legal"
    return FiscalCustomer(
        identification=_first_non_empty(customer.identification_number),
        dv=_first_non_empty(customer.verification_digit),
        company=_first_non_empty(customer.company_name),
        trade_name=_first_non_empty(customer.trade_name),
        names=build_customer_name(customer.first_name, customer.last_name),
        address=_first_non_empty(customer.address),
        email=_first_non_empty(customer.email),
        phone=_first_non_empty(customer.phone),
        legal_organization_id=LEGAL_ENTITY_ORGANIZATION_ID if is_legal_entity else NATURAL_PERSON_ORGANIZATION_ID,
        tribute_id=TRIBUTE_VAT if customer.is_vat_responsible else TRIBUTE_NOT_APPLICABLE,
        identification_document_id=IDENTIFICATION_DOCUMENT_IDS.get(
            customer.identification_type, IDENTIFICATION_DOCUMENT_IDS["CC"]
        ),
        municipality_id=municipality_code if municipality_code else defaults.default_municipality_code,
    )


def _map_item(index: int, item: Any, defaults: MappingDefaults) -> FiscalItem:
    return FiscalItem(
        code_reference=_first_non_empty(item.sku) or f"ITEM-{index}",
        name=_first_non_empty(item.description),
        quantity=to_decimal(item.quantity),
        discount_rate=to_decimal(item.discount_rate),
        price=to_decimal(item.unit_price),
        tax_rate=format_rate(item.tax_rate, defaults.default_tax_rate),
    )


def map_invoice_to_fiscal_document(
    invoice: Any,
    line_items: Iterable[Any],
    numbering_range: Any,
    municipality_code: int | None,
    defaults: MappingDefaults = DEFAULT_MAPPING,
) -> FiscalDocument:
    """
    Build the fiscal document for an invoice.

    Args:
        invoice: Invoice with organization, branch and customer loaded
        line_items: Invoice items in submission order
        numbering_range: Active numbering range for the invoice's document type
        municipality_code: Authority municipality id for the customer, if resolved
        defaults: Jurisdiction defaults

    Returns:
        FiscalDocument, deterministic for identical inputs
    """
    is_credit = invoice.payment_terms == "credit"
    due_date = invoice.due_date.isoformat() if is_credit and invoice.due_date else ""

    return FiscalDocument(
        numbering_range_id=numbering_range.authority_range_id,
        reference_code=build_reference_code(invoice, defaults.reference_prefix),
        observation=_first_non_empty(invoice.notes),
        payment_form=PAYMENT_FORM_CREDIT if is_credit else PAYMENT_FORM_CASH,
        payment_due_date=due_date,
        payment_method_code=resolve_payment_method_code(invoice.payment_method_code, invoice.payment_method),
        establishment=_map_establishment(invoice),
        customer=_map_customer(invoice.customer, municipality_code, defaults),
        items=tuple(_map_item(index, item, defaults) for index, item in enumerate(line_items, start=1)),
    )
