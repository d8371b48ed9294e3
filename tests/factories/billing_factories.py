# ===============================================================================
# TEST FACTORIES FOR BILLING
# ===============================================================================

from datetime import date
from decimal import Decimal

from apps.billing.models import (
    Branch,
    Customer,
    Invoice,
    InvoiceItem,
    Municipality,
    NumberingRange,
    Organization,
)


def create_organization(name: str = 'Tienda Demo SAS') -> Organization:
    """Create an organization with full contact data."""
    return Organization.objects.create(
        name=name,
        legal_name=name,
        tax_id='900123456',
        address='Calle 10 # 20-30',
        phone='6011234567',
        email='facturacion@tienda.example',
        municipality_code='11001',
    )


def create_branch(organization: Organization, name: str = 'Sede Norte', **overrides) -> Branch:
    fields = {
        'address': 'Carrera 15 # 93-40',
        'phone': '6019876543',
        'email': 'norte@tienda.example',
        'municipality_code': '11001',
    }
    fields.update(overrides)
    return Branch.objects.create(organization=organization, name=name, **fields)


def create_customer(organization: Organization, **overrides) -> Customer:
    """Create a natural person customer for tests."""
    fields = {
        'person_type': 'natural',
        'first_name': 'Ana',
        'last_name': 'Gómez',
        'identification_type': 'CC',
        'identification_number': '1020304050',
        'email': 'ana@example.com',
        'phone': '3001234567',
        'address': 'Calle 1 # 2-3',
        'municipality_code': '05001',
    }
    fields.update(overrides)
    return Customer.objects.create(organization=organization, **fields)


def create_municipality(code: str = '05001', authority_id: int = 169, name: str = 'Medellín') -> Municipality:
    return Municipality.objects.create(code=code, name=name, department='Antioquia', authority_id=authority_id)


def create_numbering_range(
    organization: Organization,
    document_type: str = 'invoice',
    authority_range_id: int = 8,
    is_active: bool = True,
    valid_until: date | None = None,
) -> NumberingRange:
    """Create an active numbering range for tests."""
    return NumberingRange.objects.create(
        organization=organization,
        document_type=document_type,
        authority_range_id=authority_range_id,
        prefix='SETP',
        range_from=990000000,
        range_to=995000000,
        resolution_number='18760000001',
        valid_until=valid_until,
        is_active=is_active,
    )


def create_invoice(
    organization: Organization,
    customer: Customer | None = None,
    branch: Branch | None = None,
    **overrides,
) -> Invoice:
    """Create an issued Invoice with sensible defaults."""
    if customer is None:
        customer = create_customer(organization)
    fields = {
        'number': 'POS-0001',
        'document_type': 'invoice',
        'status': 'issued',
        'payment_terms': 'cash',
        'payment_method': 'cash',
    }
    fields.update(overrides)
    return Invoice.objects.create(organization=organization, customer=customer, branch=branch, **fields)


def create_invoice_item(invoice: Invoice, **overrides) -> InvoiceItem:
    fields = {
        'sku': 'SKU-001',
        'description': 'Café molido 500g',
        'quantity': Decimal('2'),
        'unit_price': Decimal('15000.00'),
        'discount_rate': Decimal('0'),
        'tax_rate': Decimal('19.00'),
    }
    fields.update(overrides)
    return InvoiceItem.objects.create(invoice=invoice, **fields)


def create_submittable_invoice() -> Invoice:
    """Invoice with one item, an active numbering range and a resolvable municipality."""
    organization = create_organization()
    create_numbering_range(organization)
    create_municipality()
    invoice = create_invoice(organization)
    create_invoice_item(invoice)
    return invoice
