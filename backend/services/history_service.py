"""Read-side reporting over loans: history queries, borrower views, and lender statistics."""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from common.common_functions import percentage, utc_now
from common.pagination import paginate
from models.enums import AcceptanceStatus, ConfirmationStatus, PaymentStatus, PaymentType, UserRole
from models.exceptions import AccessDeniedError, ModelValidationError
from models.loans import LoanModel
from models.repositories import LoanRepository, UserRepository
from models.users import UserModel

from .loan_access import loan_view, pending_summary


logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 5


@dataclass(frozen=True)
class LoanFilters:
    """Optional history filters; unset fields match everything."""

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[str] = None
    min_amount: Optional[int] = None
    max_amount: Optional[int] = None
    search: Optional[str] = None

    def matches(self, loan: LoanModel) -> bool:
        if self.start_date is not None and loan.loan_start_date < self.start_date:
            return False
        if self.end_date is not None and loan.loan_end_date > self.end_date:
            return False
        if self.status and loan.payment_status.value != self.status:
            return False
        if self.min_amount is not None and loan.amount < self.min_amount:
            return False
        if self.max_amount is not None and loan.amount > self.max_amount:
            return False
        if self.search and self.search.strip().lower() not in loan.borrower_name.lower():
            return False
        return True

    def apply(self, loans: Iterable[LoanModel]) -> List[LoanModel]:
        """Filter and order newest first."""
        selected = [loan for loan in loans if self.matches(loan)]
        selected.sort(key=lambda loan: loan.created_at, reverse=True)
        return selected


def installment_breakdown(loan: LoanModel) -> List[Dict[str, Any]]:
    """Confirmed installment entries ordered by installment number."""
    entries = [
        entry
        for entry in loan.payment_history
        if entry.payment_type == PaymentType.INSTALLMENT and entry.confirmation_status == ConfirmationStatus.CONFIRMED
    ]
    entries.sort(key=lambda entry: entry.installment_number or 0)
    return [
        {
            "installment_number": entry.installment_number,
            "installment_label": "Installment {0}".format(entry.installment_number)
            if entry.installment_number
            else None,
            "amount": entry.amount,
            "paid_at": entry.paid_at.isoformat(),
            "confirmed_at": entry.confirmed_at.isoformat() if entry.confirmed_at else None,
            "payment_mode": entry.payment_mode.value,
            "notes": entry.notes,
        }
        for entry in entries
    ]


def _user_card(user: Optional[UserModel]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {
        "user_id": user.user_id,
        "user_name": user.user_name,
        "email": user.email,
        "mobile_number": user.mobile_number,
    }


class HistoryService:
    """Filtered, paginated loan listings and aggregate views."""

    def __init__(
        self,
        loan_repository: LoanRepository,
        user_repository: UserRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._loans = loan_repository
        self._users = user_repository
        self._clock = clock

    def _load_borrower(self, borrower_id: str) -> UserModel:
        borrower = self._users.get_by_id(borrower_id)
        if borrower.role != UserRole.BORROWER or not borrower.id_number:
            raise AccessDeniedError("User is not a registered borrower")
        return borrower

    def _page(self, loans: List[LoanModel], page: Any, limit: Any, for_borrower: bool = False) -> Dict[str, Any]:
        items, pagination = paginate(loans, page, limit)
        lenders: Dict[str, Optional[UserModel]] = {}
        rows = []
        for loan in items:
            if loan.lender_id not in lenders:
                lenders[loan.lender_id] = self._users.find_by_id(loan.lender_id)
            row = loan_view(loan, for_borrower=for_borrower)
            row.pop("borrower_registered", None)
            row["lender"] = _user_card(lenders[loan.lender_id])
            rows.append(row)
        return {"items": rows, "pagination": pagination}

    def history_all(self, filters: LoanFilters, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        """Every loan in the ledger (admin view)."""
        return self._page(filters.apply(self._loans.list_all()), page, limit)

    def history_by_lender(self, lender_id: str, filters: LoanFilters, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        lender = self._users.get_by_id(lender_id)
        result = self._page(filters.apply(self._loans.list_by_lender(lender_id)), page, limit)
        result["lender"] = _user_card(lender)
        return result

    def history_by_borrower(
        self, borrower_id: str, filters: LoanFilters, page: Any = 1, limit: Any = 10
    ) -> Dict[str, Any]:
        borrower = self._load_borrower(borrower_id)
        result = self._page(filters.apply(self._loans.list_by_id_number(borrower.id_number)), page, limit)
        result["borrower"] = _user_card(borrower)
        return result

    def history_by_borrower_and_lender(
        self,
        borrower_id: str,
        lender_id: str,
        filters: LoanFilters,
        page: Any = 1,
        limit: Any = 10,
    ) -> Dict[str, Any]:
        """Loans one lender issued against one borrower."""
        borrower = self._load_borrower(borrower_id)
        lender = self._users.get_by_id(lender_id)
        loans = [loan for loan in self._loans.list_by_id_number(borrower.id_number) if loan.lender_id == lender_id]
        result = self._page(filters.apply(loans), page, limit)
        result["borrower"] = _user_card(borrower)
        result["lender"] = _user_card(lender)
        return result

    def list_lender_loans(self, lender_id: str, filters: LoanFilters, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        """The lender's own book, each row annotated with its pending confirmations."""
        loans = filters.apply(self._loans.list_by_lender(lender_id))
        items, pagination = paginate(loans, page, limit)
        rows = []
        for loan in items:
            row = loan_view(loan, self._users.find_borrower_by_id_number(loan.id_number))
            row["pending_confirmations"] = pending_summary(loan)
            rows.append(row)
        return {"items": rows, "pagination": pagination}

    def get_borrower_loans(
        self, borrower_id: str, filters: LoanFilters, page: Any = 1, limit: Any = 10
    ) -> Dict[str, Any]:
        """Borrower "my loans" view with totals and per-loan installment detail."""
        borrower = self._load_borrower(borrower_id)
        loans = filters.apply(self._loans.list_by_id_number(borrower.id_number))
        summary = {
            "total_loans": len(loans),
            "active_loans": sum(
                1 for loan in loans if loan.payment_status in (PaymentStatus.PENDING, PaymentStatus.PART_PAID)
            ),
            "completed_loans": sum(1 for loan in loans if loan.payment_status == PaymentStatus.PAID),
            "overdue_loans": sum(1 for loan in loans if loan.payment_status == PaymentStatus.OVERDUE),
            "total_amount_borrowed": sum(loan.amount for loan in loans),
            "total_amount_paid": sum(loan.total_paid for loan in loans),
            "total_amount_remaining": sum(loan.remaining_amount for loan in loans),
        }
        items, pagination = paginate(loans, page, limit)
        rows = []
        for loan in items:
            row = loan_view(loan, borrower, for_borrower=True)
            breakdown = installment_breakdown(loan)
            row["installment_details"] = {
                "is_installment_loan": loan.payment_type == PaymentType.INSTALLMENT,
                "paid_installments": len(breakdown),
                "total_installments": loan.installment_plan.total_installments,
                "installment_amount": loan.installment_plan.installment_amount or loan.amount,
                "frequency": loan.installment_plan.frequency.value,
                "next_due_date": loan.installment_plan.next_due_date.isoformat()
                if loan.installment_plan.next_due_date
                else None,
                "installment_breakdown": breakdown,
            }
            row["pending_payments"] = pending_summary(loan)
            rows.append(row)
        return {"items": rows, "summary": summary, "pagination": pagination}

    def get_lender_statistics(self, lender_id: str) -> Dict[str, Any]:
        """Portfolio counts and amounts for one lender."""
        loans = self._loans.list_by_lender(lender_id)
        by_status = {status.value: 0 for status in PaymentStatus}
        by_acceptance = {status.value: 0 for status in AcceptanceStatus}
        for loan in loans:
            by_status[loan.payment_status.value] += 1
            by_acceptance[loan.borrower_acceptance.value] += 1
        total_lent = sum(loan.amount for loan in loans)
        total_received = sum(loan.total_paid for loan in loans)
        return {
            "total_loans": len(loans),
            "by_payment_status": by_status,
            "by_acceptance_status": by_acceptance,
            "confirmed_loans": sum(1 for loan in loans if loan.loan_confirmed),
            "total_lent": total_lent,
            "total_received": total_received,
            "outstanding_amount": sum(loan.remaining_amount for loan in loans),
            "overdue_amount": sum(loan.overdue_details.overdue_amount for loan in loans if loan.overdue_details.is_overdue),
            "pending_payment_count": sum(len(loan.pending_payments()) for loan in loans),
            "recovery_percentage": percentage(total_received, total_lent),
        }

    def get_recent_activities(self, lender_id: str, limit: Any = DEFAULT_ACTIVITY_LIMIT) -> List[Dict[str, Any]]:
        """Newest-first activity feed derived from the lender's loans."""
        try:
            size = max(1, int(limit))
        except (TypeError, ValueError):
            raise ModelValidationError("limit must be a positive integer")

        activities: List[Dict[str, Any]] = []

        def add(kind: str, loan: LoanModel, at: Optional[datetime], message: str, amount: int) -> None:
            if at is None:
                return
            activities.append(
                {
                    "type": kind,
                    "loan_id": loan.loan_id,
                    "borrower_name": loan.borrower_name,
                    "amount": amount,
                    "message": message,
                    "timestamp": at.isoformat(),
                    "_at": at,
                }
            )

        for loan in self._loans.list_by_lender(lender_id):
            add(
                "loan_created",
                loan,
                loan.created_at,
                "You gave a loan of Rs. {0} to {1}".format(loan.amount, loan.borrower_name),
                loan.amount,
            )
            if loan.borrower_acceptance == AcceptanceStatus.ACCEPTED:
                add(
                    "loan_accepted",
                    loan,
                    loan.updated_at,
                    "{0} accepted your loan of Rs. {1}".format(loan.borrower_name, loan.amount),
                    loan.amount,
                )
            elif loan.borrower_acceptance == AcceptanceStatus.REJECTED:
                add(
                    "loan_rejected",
                    loan,
                    loan.updated_at,
                    "{0} rejected your loan of Rs. {1}".format(loan.borrower_name, loan.amount),
                    loan.amount,
                )
            for entry in loan.payment_history:
                if entry.confirmation_status == ConfirmationStatus.CONFIRMED:
                    add(
                        "payment_received",
                        loan,
                        entry.confirmed_at,
                        "Received Rs. {0} from {1}".format(entry.amount, loan.borrower_name),
                        entry.amount,
                    )
            if loan.payment_status == PaymentStatus.PAID:
                add(
                    "loan_paid",
                    loan,
                    loan.updated_at,
                    "Loan of Rs. {0} given to {1} has been repaid".format(loan.amount, loan.borrower_name),
                    loan.amount,
                )
            elif loan.overdue_details.is_overdue:
                add(
                    "loan_overdue",
                    loan,
                    loan.overdue_details.last_checked_at,
                    "Loan to {0} is overdue by {1} days".format(loan.borrower_name, loan.overdue_details.overdue_days),
                    loan.overdue_details.overdue_amount,
                )

        activities.sort(key=lambda item: item["_at"], reverse=True)
        recent = activities[:size]
        for item in recent:
            item.pop("_at")
        return recent

    def get_loan_stats_by_id_number(self, lender_id: str, id_number: str) -> Dict[str, Any]:
        """How one borrower ID number stands within a lender's book."""
        if not id_number:
            raise ModelValidationError("id_number is required")
        taken = [loan for loan in self._loans.list_by_id_number(id_number) if loan.lender_id == lender_id]
        return {
            "id_number": id_number,
            "loans_taken_count": len(taken),
            "loans_pending_count": sum(1 for loan in taken if loan.payment_status == PaymentStatus.PENDING),
            "loans_paid_count": sum(1 for loan in taken if loan.payment_status == PaymentStatus.PAID),
            "loans_overdue_count": sum(1 for loan in taken if loan.payment_status == PaymentStatus.OVERDUE),
            "outstanding_amount": sum(loan.remaining_amount for loan in taken),
            "loans_given_count": len(self._loans.list_by_lender(lender_id)),
        }
