"""In-memory aggregates of the reconciliation core.

These dataclasses are what the pure core functions operate on. They travel
over the wire as plain dicts (``to_dict``/``from_dict``): amounts as decimal
strings at full precision, dates as ISO strings.
"""
import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from payables.utils.number_format import (
    ZERO, parse_decimal, parse_int, parse_date, decimal_to_str, date_to_str
)


class InvoiceStatus(enum.Enum):
    """Invoice lifecycle status."""
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    OPEN = "OPEN"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    VOID = "VOID"


class ApprovalStatus(enum.Enum):
    """Invoice approval status, set outside this core."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class PaymentStatus(enum.Enum):
    """Payment status. DRAFT -> PAID only."""
    DRAFT = "DRAFT"
    PAID = "PAID"


class EditSource(enum.Enum):
    """Which date/terms field the user just changed."""
    INVOICE_DATE = "invoice_date"
    PAYMENT_TERMS = "payment_terms"
    DUE_DATE = "due_date"


TERMINAL_INVOICE_STATUSES = (InvoiceStatus.CANCELLED, InvoiceStatus.VOID)


def _enum(enum_cls, value, default):
    if value is None or value == '':
        return default
    if isinstance(value, enum_cls):
        return value
    return enum_cls(str(value).upper())


@dataclass
class InvoiceLineDraft:
    line_number: int
    description: str = ''
    quantity: Decimal = ZERO
    unit_price: Decimal = ZERO
    tax_rate: Decimal = ZERO
    item_id: Optional[int] = None
    line_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO

    def to_dict(self):
        return {
            'line_number': self.line_number,
            'item_id': self.item_id,
            'description': self.description,
            'quantity': decimal_to_str(self.quantity),
            'unit_price': decimal_to_str(self.unit_price),
            'line_amount': decimal_to_str(self.line_amount),
            'tax_rate': decimal_to_str(self.tax_rate),
            'tax_amount': decimal_to_str(self.tax_amount),
        }

    @classmethod
    def from_dict(cls, data, line_number=None):
        return cls(
            line_number=line_number or parse_int(data.get('line_number'), 'line_number', 1),
            item_id=parse_int(data.get('item_id'), 'item_id'),
            description=(data.get('description') or '').strip(),
            quantity=parse_decimal(data.get('quantity'), 'quantity', ZERO),
            unit_price=parse_decimal(data.get('unit_price'), 'unit_price', ZERO),
            tax_rate=parse_decimal(data.get('tax_rate'), 'tax_rate', ZERO),
            line_amount=parse_decimal(data.get('line_amount'), 'line_amount', ZERO),
            tax_amount=parse_decimal(data.get('tax_amount'), 'tax_amount', ZERO),
        )


@dataclass
class InvoiceDraft:
    """Invoice header plus its ordered line collection."""
    id: Optional[int] = None
    number: str = ''
    supplier_id: Optional[int] = None
    site_id: Optional[int] = None
    source_receipt_id: Optional[int] = None
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    payment_terms: Optional[int] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    subtotal: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    amount_paid: Decimal = ZERO
    status: InvoiceStatus = InvoiceStatus.DRAFT
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    notes: Optional[str] = None
    lines: List[InvoiceLineDraft] = field(default_factory=list)

    @property
    def amount_due(self) -> Decimal:
        return self.total_amount - self.amount_paid

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'supplier_id': self.supplier_id,
            'site_id': self.site_id,
            'source_receipt_id': self.source_receipt_id,
            'invoice_date': date_to_str(self.invoice_date),
            'due_date': date_to_str(self.due_date),
            'payment_terms': self.payment_terms,
            'currency_code': self.currency_code,
            'exchange_rate': decimal_to_str(self.exchange_rate),
            'subtotal': decimal_to_str(self.subtotal),
            'tax_amount': decimal_to_str(self.tax_amount),
            'total_amount': decimal_to_str(self.total_amount),
            'amount_paid': decimal_to_str(self.amount_paid),
            'amount_due': decimal_to_str(self.amount_due),
            'status': self.status.value,
            'approval_status': self.approval_status.value,
            'notes': self.notes,
            'lines': [line.to_dict() for line in self.lines],
        }

    @classmethod
    def from_dict(cls, data):
        lines = [
            InvoiceLineDraft.from_dict(raw, line_number=index)
            for index, raw in enumerate(data.get('lines') or [], start=1)
        ]
        return cls(
            id=parse_int(data.get('id'), 'id'),
            number=(data.get('number') or '').strip(),
            supplier_id=parse_int(data.get('supplier_id'), 'supplier_id'),
            site_id=parse_int(data.get('site_id'), 'site_id'),
            source_receipt_id=parse_int(data.get('source_receipt_id'), 'source_receipt_id'),
            invoice_date=parse_date(data.get('invoice_date'), 'invoice_date'),
            due_date=parse_date(data.get('due_date'), 'due_date'),
            payment_terms=parse_int(data.get('payment_terms'), 'payment_terms'),
            currency_code=data.get('currency_code') or None,
            exchange_rate=parse_decimal(data.get('exchange_rate'), 'exchange_rate'),
            subtotal=parse_decimal(data.get('subtotal'), 'subtotal', ZERO),
            tax_amount=parse_decimal(data.get('tax_amount'), 'tax_amount', ZERO),
            total_amount=parse_decimal(data.get('total_amount'), 'total_amount', ZERO),
            amount_paid=parse_decimal(data.get('amount_paid'), 'amount_paid', ZERO),
            status=_enum(InvoiceStatus, data.get('status'), InvoiceStatus.DRAFT),
            approval_status=_enum(ApprovalStatus, data.get('approval_status'), ApprovalStatus.PENDING),
            notes=data.get('notes') or None,
            lines=lines,
        )


@dataclass
class ApplicationDraft:
    """One invoice application on a draft payment.

    ``amount_due`` is the invoice's amount due as last seen by the editor; it
    is refreshed by the allocation engine and re-checked by the authority.
    """
    invoice_id: int
    applied_amount: Decimal
    amount_due: Decimal
    application_date: Optional[date] = None
    invoice_number: str = ''

    def to_dict(self):
        return {
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice_number,
            'applied_amount': decimal_to_str(self.applied_amount),
            'amount_due': decimal_to_str(self.amount_due),
            'application_date': date_to_str(self.application_date),
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            invoice_id=parse_int(data.get('invoice_id'), 'invoice_id'),
            invoice_number=data.get('invoice_number') or '',
            applied_amount=parse_decimal(data.get('applied_amount'), 'applied_amount', ZERO),
            amount_due=parse_decimal(data.get('amount_due'), 'amount_due', ZERO),
            application_date=parse_date(data.get('application_date'), 'application_date'),
        )


@dataclass
class PaymentDraft:
    """A payment that is still DRAFT and therefore mutable."""
    id: Optional[int] = None
    number: str = ''
    supplier_id: Optional[int] = None
    payment_date: Optional[date] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    payment_amount: Decimal = ZERO
    payment_method: Optional[str] = None
    bank_account: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    applications: List[ApplicationDraft] = field(default_factory=list)

    status = PaymentStatus.DRAFT

    @property
    def amount_applied(self) -> Decimal:
        return sum((app.applied_amount for app in self.applications), ZERO)

    @property
    def unapplied_amount(self) -> Decimal:
        return self.payment_amount - self.amount_applied

    def find_application(self, invoice_id) -> Optional[ApplicationDraft]:
        for app in self.applications:
            if app.invoice_id == invoice_id:
                return app
        return None

    def to_dict(self):
        return {
            'id': self.id,
            'number': self.number,
            'supplier_id': self.supplier_id,
            'payment_date': date_to_str(self.payment_date),
            'currency_code': self.currency_code,
            'exchange_rate': decimal_to_str(self.exchange_rate),
            'payment_amount': decimal_to_str(self.payment_amount),
            'amount_applied': decimal_to_str(self.amount_applied),
            'unapplied_amount': decimal_to_str(self.unapplied_amount),
            'payment_method': self.payment_method,
            'bank_account': self.bank_account,
            'reference_number': self.reference_number,
            'notes': self.notes,
            'status': self.status.value,
            'applications': [app.to_dict() for app in self.applications],
        }


@dataclass(frozen=True)
class PostedApplication:
    invoice_id: int
    invoice_number: str
    applied_amount: Decimal
    application_date: Optional[date]


@dataclass(frozen=True)
class PostedPayment:
    """A finalized (PAID) payment. Read-only: there is nothing to edit."""
    id: Optional[int]
    number: str
    supplier_id: int
    payment_date: date
    currency_code: Optional[str]
    exchange_rate: Optional[Decimal]
    payment_amount: Decimal
    applications: Tuple[PostedApplication, ...]
    payment_method: Optional[str] = None
    reference_number: Optional[str] = None

    status = PaymentStatus.PAID

    @property
    def amount_applied(self) -> Decimal:
        return sum((app.applied_amount for app in self.applications), ZERO)

    @property
    def unapplied_amount(self) -> Decimal:
        return self.payment_amount - self.amount_applied


def _header_fields(data):
    return dict(
        id=parse_int(data.get('id'), 'id'),
        number=(data.get('number') or '').strip(),
        supplier_id=parse_int(data.get('supplier_id'), 'supplier_id'),
        payment_date=parse_date(data.get('payment_date'), 'payment_date'),
        currency_code=data.get('currency_code') or None,
        exchange_rate=parse_decimal(data.get('exchange_rate'), 'exchange_rate'),
        payment_amount=parse_decimal(data.get('payment_amount'), 'payment_amount', ZERO),
        payment_method=data.get('payment_method') or None,
        reference_number=data.get('reference_number') or None,
    )


def payment_from_dict(data):
    """Build a PaymentDraft, or a PostedPayment when the payload is PAID."""
    status = _enum(PaymentStatus, data.get('status'), PaymentStatus.DRAFT)
    applications = data.get('applications') or []
    if status is PaymentStatus.PAID:
        posted = tuple(
            PostedApplication(
                invoice_id=parse_int(raw.get('invoice_id'), 'invoice_id'),
                invoice_number=raw.get('invoice_number') or '',
                applied_amount=parse_decimal(raw.get('applied_amount'), 'applied_amount', ZERO),
                application_date=parse_date(raw.get('application_date'), 'application_date'),
            )
            for raw in applications
        )
        return PostedPayment(applications=posted, **_header_fields(data))
    return PaymentDraft(
        applications=[ApplicationDraft.from_dict(raw) for raw in applications],
        bank_account=data.get('bank_account') or None,
        notes=data.get('notes') or None,
        **_header_fields(data)
    )


@dataclass
class ReceiptLineData:
    item_id: Optional[int]
    quantity_accepted: Decimal
    unit_price: Decimal
    description: str = ''
    line_amount: Optional[Decimal] = None
    tax_rate: Optional[Decimal] = None
    tax_amount: Optional[Decimal] = None

    @classmethod
    def from_dict(cls, data):
        return cls(
            item_id=parse_int(data.get('item_id'), 'item_id'),
            description=data.get('description') or '',
            quantity_accepted=parse_decimal(data.get('quantity_accepted'), 'quantity_accepted', ZERO),
            unit_price=parse_decimal(data.get('unit_price'), 'unit_price', ZERO),
            line_amount=parse_decimal(data.get('line_amount'), 'line_amount'),
            tax_rate=parse_decimal(data.get('tax_rate'), 'tax_rate'),
            tax_amount=parse_decimal(data.get('tax_amount'), 'tax_amount'),
        )


@dataclass
class ReceiptData:
    """External goods-receipt header and lines."""
    id: int
    number: str = ''
    supplier_id: Optional[int] = None
    site_id: Optional[int] = None
    currency_code: Optional[str] = None
    exchange_rate: Optional[Decimal] = None
    lines: List[ReceiptLineData] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data):
        return cls(
            id=parse_int(data.get('id'), 'id'),
            number=data.get('number') or '',
            supplier_id=parse_int(data.get('supplier_id'), 'supplier_id'),
            site_id=parse_int(data.get('site_id'), 'site_id'),
            currency_code=data.get('currency_code') or None,
            exchange_rate=parse_decimal(data.get('exchange_rate'), 'exchange_rate'),
            lines=[ReceiptLineData.from_dict(raw) for raw in data.get('lines') or []],
        )
