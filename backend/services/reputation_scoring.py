"""Borrower reputation scoring from punctuality and completion history."""

from datetime import datetime
import logging
from typing import Any, Callable, Dict, Iterable, Optional

from common.common_functions import utc_now, whole_days_between
from models.enums import ConfirmationStatus, PaymentStatus, PaymentType
from models.loans import LoanModel
from models.repositories import LoanRepository


logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50.0

ON_TIME_WEIGHT = 40.0
PAID_WEIGHT = 30.0
PART_PAID_WEIGHT = 10.0
OVERDUE_PENALTY_WEIGHT = 30.0
OVERDUE_DAYS_PENALTY_WEIGHT = 20.0
OVERDUE_DAYS_FOR_FULL_PENALTY = 30.0
PENDING_PENALTY_WEIGHT = 10.0


def reputation_level(score: float) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 65:
        return "Good"
    if score >= 50:
        return "Fair"
    if score >= 35:
        return "Below Average"
    return "Poor"


def _round2(value: float) -> float:
    return round(value, 2)


def _due_date_for(loan: LoanModel, payment_type: PaymentType, loan_overdue: bool) -> Optional[datetime]:
    """Installments are measured against the next due date unless the loan is overdue."""
    if payment_type == PaymentType.INSTALLMENT and not loan_overdue:
        return loan.installment_plan.next_due_date or loan.loan_end_date
    return loan.loan_end_date


def score_reputation(loans: Iterable[LoanModel], now: datetime) -> Dict[str, Any]:
    """Score a borrower over every loan issued against them, whatever its state.

    Returns:
        Dict with `reputation_score`, `reputation_level`, `metrics`, and `breakdown`.
    """
    loans = list(loans)
    if not loans:
        return {
            "reputation_score": DEFAULT_SCORE,
            "reputation_level": reputation_level(DEFAULT_SCORE),
            "metrics": {
                "total_loans": 0,
                "total_paid_loans": 0,
                "total_pending_loans": 0,
                "total_part_paid_loans": 0,
                "overdue_loans": 0,
                "total_overdue_days": 0,
                "average_overdue_days": 0,
                "on_time_payments": 0,
                "total_payments": 0,
                "on_time_payment_rate": 0,
            },
            "breakdown": {"final_score": DEFAULT_SCORE, "message": "No loan history available"},
        }

    total_loans = len(loans)
    paid_loans = 0
    pending_loans = 0
    part_paid_loans = 0
    overdue_loans = 0
    total_overdue_days = 0
    on_time_payments = 0
    total_payments = 0

    for loan in loans:
        if loan.payment_status == PaymentStatus.PAID:
            paid_loans += 1
        elif loan.payment_status == PaymentStatus.PENDING:
            pending_loans += 1
        elif loan.payment_status == PaymentStatus.PART_PAID:
            part_paid_loans += 1

        loan_overdue = loan.payment_status == PaymentStatus.OVERDUE or loan.overdue_details.is_overdue
        if loan_overdue:
            overdue_loans += 1
            total_overdue_days += loan.overdue_details.overdue_days or whole_days_between(loan.loan_end_date, now)

        for entry in loan.payment_history:
            if entry.confirmation_status != ConfirmationStatus.CONFIRMED:
                continue
            total_payments += 1
            due_date = _due_date_for(loan, entry.payment_type, loan_overdue)
            if due_date is None:
                if not loan_overdue:
                    on_time_payments += 1
                continue
            if (entry.confirmed_at or entry.paid_at) <= due_date:
                on_time_payments += 1

    on_time_rate = (on_time_payments * 100.0 / total_payments) if total_payments else 0.0
    average_overdue_days = (total_overdue_days / float(overdue_loans)) if overdue_loans else 0.0

    on_time_score = min(ON_TIME_WEIGHT, on_time_rate / 100.0 * ON_TIME_WEIGHT)
    paid_score = min(PAID_WEIGHT, paid_loans / float(total_loans) * PAID_WEIGHT)
    part_paid_score = min(PART_PAID_WEIGHT, part_paid_loans / float(total_loans) * PART_PAID_WEIGHT)
    overdue_penalty = min(OVERDUE_PENALTY_WEIGHT, overdue_loans / float(total_loans) * OVERDUE_PENALTY_WEIGHT)
    overdue_days_penalty = min(
        OVERDUE_DAYS_PENALTY_WEIGHT,
        average_overdue_days / OVERDUE_DAYS_FOR_FULL_PENALTY * OVERDUE_DAYS_PENALTY_WEIGHT,
    )
    pending_penalty = min(PENDING_PENALTY_WEIGHT, pending_loans / float(total_loans) * PENDING_PENALTY_WEIGHT)

    raw_score = (
        on_time_score
        + paid_score
        + part_paid_score
        - overdue_penalty
        - overdue_days_penalty
        - pending_penalty
    )
    score = max(0.0, min(100.0, _round2(raw_score)))

    return {
        "reputation_score": score,
        "reputation_level": reputation_level(score),
        "metrics": {
            "total_loans": total_loans,
            "total_paid_loans": paid_loans,
            "total_pending_loans": pending_loans,
            "total_part_paid_loans": part_paid_loans,
            "overdue_loans": overdue_loans,
            "total_overdue_days": total_overdue_days,
            "average_overdue_days": _round2(average_overdue_days),
            "on_time_payments": on_time_payments,
            "total_payments": total_payments,
            "on_time_payment_rate": _round2(on_time_rate),
        },
        "breakdown": {
            "on_time_score": _round2(on_time_score),
            "paid_loans_score": _round2(paid_score),
            "part_paid_score": _round2(part_paid_score),
            "overdue_penalty": _round2(overdue_penalty),
            "overdue_days_penalty": _round2(overdue_days_penalty),
            "pending_penalty": _round2(pending_penalty),
            "final_score": score,
        },
    }


class ReputationService:
    """Looks up a borrower's loans and scores their reputation."""

    def __init__(self, loan_repository: LoanRepository, clock: Callable[[], datetime] = utc_now) -> None:
        self._loans = loan_repository
        self._clock = clock

    def get_borrower_reputation(self, id_number: str) -> Dict[str, Any]:
        loans = self._loans.list_by_id_number(id_number)
        result = score_reputation(loans, self._clock())
        result["id_number"] = id_number
        logger.debug("Reputation computed id_number=%s score=%s", id_number, result["reputation_score"])
        return result
