"""Draft exclusivity: an invoice sits on at most one DRAFT payment at a time.

The same predicate runs twice: as an advisory filter when invoices are
listed for selection, and authoritatively right before a commit. A hit at
commit time wins over whatever the listing allowed.
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional

from payables.exceptions import ConflictError


@dataclass(frozen=True)
class DraftConflict:
    invoice_id: int
    invoice_number: str
    payment_id: int
    payment_number: str

    def to_dict(self):
        return {
            'invoice_id': self.invoice_id,
            'invoice_number': self.invoice_number,
            'payment_id': self.payment_id,
            'payment_number': self.payment_number,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            invoice_id=int(data['invoice_id']),
            invoice_number=data.get('invoice_number') or '',
            payment_id=int(data['payment_id']),
            payment_number=data.get('payment_number') or '',
        )

    def to_error(self) -> ConflictError:
        return ConflictError(
            payment_number=self.payment_number,
            invoice_number=self.invoice_number,
            payment_id=self.payment_id,
            invoice_id=self.invoice_id,
        )


def find_draft_conflicts(
    draft_payments: Iterable,
    invoice_ids: Iterable[int],
    exclude_payment_id: Optional[int] = None,
) -> List[DraftConflict]:
    """
    Applications on other draft payments that reference any candidate invoice.

    ``exclude_payment_id`` is the payment being edited, or None for a payment
    that does not exist yet.
    """
    wanted = set(invoice_ids)
    conflicts = []
    for payment in draft_payments:
        if exclude_payment_id is not None and payment.id == exclude_payment_id:
            continue
        for app in payment.applications:
            if app.invoice_id in wanted:
                conflicts.append(DraftConflict(
                    invoice_id=app.invoice_id,
                    invoice_number=app.invoice_number,
                    payment_id=payment.id,
                    payment_number=payment.number,
                ))
    return conflicts


def held_invoice_ids(conflicts: Iterable[DraftConflict]) -> set:
    return {conflict.invoice_id for conflict in conflicts}


def raise_for_conflicts(conflicts: Iterable[DraftConflict], invoice_id: Optional[int] = None) -> None:
    """Raise ConflictError for the first conflict (optionally for one invoice only)."""
    for conflict in conflicts:
        if invoice_id is None or conflict.invoice_id == invoice_id:
            raise conflict.to_error()
