"""Two-phase payment reconciliation: borrowers submit, lenders confirm or reject.

Loan totals change only when a lender confirms an entry. Submission appends
a pending history entry and returns a projection of the loan after
confirmation. Installment due dates advance at confirmation only.
"""

from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, List, Optional

from common.common_functions import new_id, utc_now, whole_days_between
from common.pagination import paginate
from models.enums import (
    AcceptanceStatus,
    ConfirmationStatus,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from models.exceptions import ModelError, ModelValidationError, StateConflictError
from models.loans import LoanModel
from models.payments import PaymentHistoryEntry
from models.repositories import LoanRepository, UserRepository

from .loan_access import ensure_borrower_matches, ensure_lender_owns, save_loan
from .notification_service import NotificationService


logger = logging.getLogger(__name__)


def apply_overdue_state(loan: LoanModel, now: datetime) -> bool:
    """Flip a loan to overdue when past its end date with money owed.

    Returns:
        bool: True when any overdue field changed.
    """
    if loan.payment_status == PaymentStatus.PAID or loan.remaining_amount <= 0:
        return False
    if now <= loan.loan_end_date:
        return False
    days = whole_days_between(loan.loan_end_date, now)
    details = loan.overdue_details
    changed = (
        loan.payment_status != PaymentStatus.OVERDUE
        or not details.is_overdue
        or details.overdue_amount != loan.remaining_amount
        or details.overdue_days != days
    )
    loan.payment_status = PaymentStatus.OVERDUE
    details.is_overdue = True
    details.overdue_amount = loan.remaining_amount
    details.overdue_days = days
    details.last_checked_at = now
    return changed


def advance_due_date(loan: LoanModel, now: datetime) -> None:
    """Move the next installment due date forward by one period."""
    plan = loan.installment_plan
    base = plan.next_due_date or now
    plan.next_due_date = base + timedelta(days=plan.frequency.days)


class PaymentService:
    """Payment submission, confirmation, rejection, and overdue detection."""

    def __init__(
        self,
        loan_repository: LoanRepository,
        user_repository: UserRepository,
        notifier: NotificationService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._loans = loan_repository
        self._users = user_repository
        self._notifier = notifier
        self._clock = clock

    def submit_payment(
        self,
        borrower_id: str,
        loan_id: str,
        amount: int,
        payment_mode: str,
        payment_type: str,
        transaction_id: Optional[str] = None,
        payment_proof: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Record a pending payment; totals stay untouched until the lender confirms."""
        if amount is None or int(amount) <= 0:
            raise ModelValidationError("Payment amount must be greater than 0")
        try:
            mode = PaymentMode(payment_mode)
        except ValueError:
            raise ModelValidationError("payment_mode must be 'cash' or 'online'")
        try:
            kind = PaymentType(payment_type)
        except ValueError:
            raise ModelValidationError("payment_type must be 'one-time' or 'installment'")

        borrower = self._users.get_by_id(borrower_id)
        loan = ensure_borrower_matches(self._loans.get_by_id(loan_id), borrower)
        if loan.payment_status == PaymentStatus.PAID or loan.remaining_amount <= 0:
            raise StateConflictError("Loan is already fully paid", code="ALREADY_PAID")
        if loan.borrower_acceptance != AcceptanceStatus.ACCEPTED:
            raise StateConflictError("Only accepted loans can receive payments", code="LOAN_NOT_ACCEPTED")
        pending_total = sum(pending.amount for pending in loan.pending_payments())
        available = loan.remaining_amount - pending_total
        if int(amount) > available:
            raise ModelValidationError(
                "Payment amount exceeds the {0} left after pending payments".format(max(0, available)),
                code="PAYMENT_EXCEEDS_REMAINING",
            )

        now = self._clock()
        installment_number = None
        if kind == PaymentType.INSTALLMENT:
            installment_number = loan.confirmed_installment_count() + 1

        entry = PaymentHistoryEntry(
            payment_id=new_id("pay"),
            amount=int(amount),
            payment_mode=mode,
            payment_type=kind,
            installment_number=installment_number,
            transaction_id=transaction_id,
            payment_proof=payment_proof,
            notes=notes,
            paid_at=now,
        )
        loan.payment_history.append(entry)
        loan.payment_mode = mode
        loan.payment_type = kind
        loan.payment_confirmation = ConfirmationStatus.PENDING
        if loan.borrower_id is None:
            loan.borrower_id = borrower.user_id
        apply_overdue_state(loan, now)
        saved = save_loan(self._loans, loan)
        logger.info("Payment submitted loan_id=%s payment_id=%s amount=%s", loan_id, entry.payment_id, amount)

        self._notifier.payment_submitted(saved, entry, borrower.user_name)

        projected_paid = saved.total_paid + entry.amount
        projected_remaining = max(0, saved.amount - projected_paid)
        return {
            "payment": entry.model_dump(mode="json"),
            "installment_number": installment_number,
            "loan_summary": {
                "total_loan_amount": saved.amount,
                "current_paid_amount": saved.total_paid,
                "current_remaining_amount": saved.remaining_amount,
                "payment_status": saved.payment_status.value,
            },
            "after_confirmation": {
                "projected_paid_amount": projected_paid,
                "projected_remaining_amount": projected_remaining,
                "projected_status": (
                    PaymentStatus.PAID.value if projected_remaining <= 0 else PaymentStatus.PART_PAID.value
                ),
            },
            "installment_info": {
                "is_installment_payment": kind == PaymentType.INSTALLMENT,
                "current_installment_number": installment_number,
                "total_confirmed_installments": saved.confirmed_installment_count(),
                "total_pending_payments": len(saved.pending_payments()),
                "next_due_date": (
                    saved.installment_plan.next_due_date.isoformat()
                    if saved.installment_plan.next_due_date
                    else None
                ),
            },
            "payment_confirmation": ConfirmationStatus.PENDING.value,
        }

    def confirm_payment(
        self,
        lender_id: str,
        loan_id: str,
        payment_id: str,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Confirm a pending entry and fold its amount into the loan totals."""
        loan = ensure_lender_owns(self._loans.get_by_id(loan_id), lender_id)
        entry = loan.find_payment(payment_id)
        if entry.is_pending and entry.amount > loan.remaining_amount:
            raise StateConflictError(
                "Payment of {0} exceeds the remaining amount of {1}".format(entry.amount, loan.remaining_amount),
                code="PAYMENT_EXCEEDS_REMAINING",
            )
        now = self._clock()
        entry.resolve(ConfirmationStatus.CONFIRMED, lender_id, now, notes)

        loan.total_paid += entry.amount
        if loan.remaining_amount <= 0:
            loan.payment_status = PaymentStatus.PAID
            loan.overdue_details.clear()
        else:
            loan.payment_status = PaymentStatus.PART_PAID
            if loan.overdue_details.is_overdue:
                loan.overdue_details.overdue_amount = loan.remaining_amount
        if entry.payment_type == PaymentType.INSTALLMENT:
            loan.installment_plan.paid_installments += 1
            advance_due_date(loan, now)
        loan.payment_confirmation = ConfirmationStatus.CONFIRMED
        saved = save_loan(self._loans, loan)
        logger.info(
            "Payment confirmed loan_id=%s payment_id=%s total_paid=%s remaining=%s",
            loan_id,
            payment_id,
            saved.total_paid,
            saved.remaining_amount,
        )

        self._notifier.payment_resolved(saved, saved.find_payment(payment_id))
        return {
            "loan_id": saved.loan_id,
            "payment": saved.find_payment(payment_id).model_dump(mode="json"),
            "total_paid": saved.total_paid,
            "remaining_amount": saved.remaining_amount,
            "payment_status": saved.payment_status.value,
            "installment_plan": saved.installment_plan.model_dump(mode="json"),
        }

    def reject_payment(self, lender_id: str, loan_id: str, payment_id: str, reason: str) -> Dict[str, Any]:
        """Reject a pending entry; totals stay as they are."""
        reason = (reason or "").strip()
        if not reason:
            raise ModelValidationError("A rejection reason is required")
        loan = ensure_lender_owns(self._loans.get_by_id(loan_id), lender_id)
        entry = loan.find_payment(payment_id)
        entry.resolve(ConfirmationStatus.REJECTED, lender_id, self._clock(), "Rejected: {0}".format(reason))
        loan.payment_confirmation = ConfirmationStatus.REJECTED
        saved = save_loan(self._loans, loan)
        logger.info("Payment rejected loan_id=%s payment_id=%s", loan_id, payment_id)

        self._notifier.payment_resolved(saved, saved.find_payment(payment_id))
        return {
            "loan_id": saved.loan_id,
            "payment": saved.find_payment(payment_id).model_dump(mode="json"),
            "total_paid": saved.total_paid,
            "remaining_amount": saved.remaining_amount,
            "payment_status": saved.payment_status.value,
        }

    def run_overdue_sweep(self, notify: bool = True) -> Dict[str, int]:
        """Mark every confirmed and accepted loan that is past due as overdue.

        Re-running at the same instant changes nothing further.
        """
        now = self._clock()
        loans = self._loans.list_confirmed_accepted()
        updated = 0
        failed = 0
        for loan in loans:
            if not apply_overdue_state(loan, now):
                continue
            newly_overdue = not loan.overdue_details.notified
            if notify and newly_overdue:
                loan.overdue_details.notified = True
            try:
                saved = save_loan(self._loans, loan)
            except ModelError:
                failed += 1
                logger.exception("Overdue sweep could not save loan_id=%s", loan.loan_id)
                continue
            updated += 1
            if notify and newly_overdue:
                lender = self._users.find_by_id(saved.lender_id)
                self._notifier.overdue_to_lender(saved, saved.borrower_name)
                self._notifier.overdue_to_borrower(saved, lender.user_name if lender else "Lender")
        logger.info("Overdue sweep finished scanned=%d updated=%d failed=%d", len(loans), updated, failed)
        return {"scanned": len(loans), "updated": updated, "failed": failed}

    def list_pending_payments(self, lender_id: str, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        """Pending entries across a lender's loans, newest first."""
        rows: List[Dict[str, Any]] = []
        for loan in self._loans.list_by_lender(lender_id):
            for entry in loan.pending_payments():
                row = entry.model_dump(mode="json")
                row.update(
                    {
                        "loan_id": loan.loan_id,
                        "borrower_name": loan.borrower_name,
                        "id_number": loan.id_number,
                        "loan_amount": loan.amount,
                        "remaining_amount": loan.remaining_amount,
                    }
                )
                rows.append(row)
        rows.sort(key=lambda item: item["paid_at"], reverse=True)
        items, pagination = paginate(rows, page, limit)
        return {"items": items, "pagination": pagination}

    def get_payment_history(self, borrower_id: str, loan_id: str) -> Dict[str, Any]:
        """One loan's payment log with totals per confirmation status."""
        borrower = self._users.get_by_id(borrower_id)
        loan = ensure_borrower_matches(self._loans.get_by_id(loan_id), borrower)
        totals = {status.value: {"count": 0, "amount": 0} for status in ConfirmationStatus}
        for entry in loan.payment_history:
            bucket = totals[entry.confirmation_status.value]
            bucket["count"] += 1
            bucket["amount"] += entry.amount
        history = sorted(loan.payment_history, key=lambda item: item.paid_at, reverse=True)
        return {
            "loan_id": loan.loan_id,
            "loan_summary": {
                "total_loan_amount": loan.amount,
                "total_paid": loan.total_paid,
                "remaining_amount": loan.remaining_amount,
                "payment_status": loan.payment_status.value,
            },
            "payments": [
                dict(
                    entry.model_dump(mode="json"),
                    installment_label=(
                        "Installment {0}".format(entry.installment_number) if entry.installment_number else None
                    ),
                )
                for entry in history
            ],
            "statistics": totals,
        }
