"""
Draft reservation service: the authoritative side of draft exclusivity.

check_draft_conflicts is advisory and reserves nothing. reserve_or_reject
writes one ap_draft_reservation row per invoice; the UNIQUE invoice_id
constraint decides races between two drafts saving at the same time.
Neither function commits: the caller owns the transaction.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError

from payables.core.conflicts import DraftConflict, find_draft_conflicts
from payables.exceptions import ConflictError
from payables.models import Payment, PaymentApplication, PaymentStatus, DraftReservation, Invoice
from payables.services.aggregates import payment_aggregate

logger = logging.getLogger(__name__)


def check_draft_conflicts(
    session, invoice_ids: Iterable[int], exclude_payment_id: Optional[int] = None
) -> List[DraftConflict]:
    """
    Applications on other DRAFT payments that reference any of the invoices.

    Args:
        invoice_ids: candidate invoice ids
        exclude_payment_id: the payment being edited (None for a new one)
    """
    wanted = {int(invoice_id) for invoice_id in invoice_ids}
    if not wanted:
        return []

    drafts = (
        session.query(Payment)
        .filter(Payment.status == PaymentStatus.DRAFT)
        .filter(Payment.applications.any(PaymentApplication.invoice_id.in_(wanted)))
        .order_by(Payment.id)
        .all()
    )
    return find_draft_conflicts(
        [payment_aggregate(payment) for payment in drafts],
        wanted,
        exclude_payment_id=exclude_payment_id,
    )


def _conflict_for(session, invoice_id: int, holder_payment_id: int) -> ConflictError:
    holder = session.get(Payment, holder_payment_id)
    invoice = session.get(Invoice, invoice_id)
    return ConflictError(
        payment_number=holder.number if holder else str(holder_payment_id),
        invoice_number=invoice.number if invoice else str(invoice_id),
        payment_id=holder_payment_id,
        invoice_id=invoice_id,
    )


def reserve_or_reject(session, invoice_ids: Iterable[int], payment_id: int) -> None:
    """
    Reserve every invoice for the draft payment, or reject.

    Idempotent: invoices this payment already holds are left as they are.

    Raises:
        ConflictError: an invoice is held by another draft payment. The session
            has been rolled back when this is raised.
    """
    for invoice_id in sorted({int(i) for i in invoice_ids}):
        existing = (
            session.query(DraftReservation)
            .filter(DraftReservation.invoice_id == invoice_id)
            .with_for_update()
            .first()
        )
        if existing is not None:
            if existing.payment_id == payment_id:
                continue
            error = _conflict_for(session, invoice_id, existing.payment_id)
            session.rollback()
            logger.warning(f"[CONFLICT] Payment {payment_id} rejected: {error.message}")
            raise error

        session.add(DraftReservation(invoice_id=invoice_id, payment_id=payment_id))
        try:
            session.flush()
        except IntegrityError:
            # another draft won the race between the query and the insert
            session.rollback()
            holder = (
                session.query(DraftReservation)
                .filter(DraftReservation.invoice_id == invoice_id)
                .first()
            )
            if holder is None:
                raise
            error = _conflict_for(session, invoice_id, holder.payment_id)
            logger.warning(f"[CONFLICT] Payment {payment_id} lost reservation race: {error.message}")
            raise error


def release_reservations(session, payment_id: int, invoice_ids: Optional[Iterable[int]] = None) -> int:
    """Drop the payment's reservations (all of them, or only the given invoices)."""
    query = session.query(DraftReservation).filter(DraftReservation.payment_id == payment_id)
    if invoice_ids is not None:
        ids = [int(i) for i in invoice_ids]
        if not ids:
            return 0
        query = query.filter(DraftReservation.invoice_id.in_(ids))
    released = query.delete(synchronize_session='fetch')
    if released:
        logger.info(f"[CONFLICT] Released {released} reservation(s) of payment {payment_id}")
    return released
