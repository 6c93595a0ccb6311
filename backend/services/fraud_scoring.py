"""Borrower fraud scoring over loan velocity and delinquency.

`score_borrower_loans` is a pure function of a borrower's accepted loans and
the evaluation time. `FraudDetectionService` loads the loans, runs the
scoring, and is the only place that writes the result onto the user record.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from common.common_functions import utc_now, whole_days_between
from models.enums import AcceptanceStatus, PaymentStatus, RiskLevel, UserRole
from models.exceptions import ModelError
from models.loans import LoanModel
from models.repositories import LoanRepository, UserRepository
from models.users import FraudDetectionSummary, FraudHistoryEntry


logger = logging.getLogger(__name__)

VELOCITY_WINDOWS = {30: 3, 90: 5, 180: 8}
CRITICAL_OVERDUE_DAYS = 30
SEVERE_OVERDUE_DAYS = 60

SCORE_VELOCITY_30_DAYS = 20
SCORE_VELOCITY_90_DAYS = 15
SCORE_PER_PENDING_LOAN = 10
SCORE_PER_OVERDUE_LOAN = 25
SCORE_PER_SEVERE_OVERDUE = 50
MAX_SCORE = 100

RECOMMENDATIONS = {
    RiskLevel.CRITICAL: "CRITICAL RISK: Do not proceed with this loan. Borrower has severe fraud indicators.",
    RiskLevel.HIGH: "HIGH RISK: Proceed with extreme caution. Consider additional verification and collateral.",
    RiskLevel.MEDIUM: "MEDIUM RISK: Proceed with caution. Review borrower history carefully.",
    RiskLevel.LOW: "LOW RISK: Borrower appears to be low risk.",
}

FLAG_MULTIPLE_LOANS = "multiple_loans_in_short_time"
FLAG_PENDING_LOANS = "has_pending_loans"
FLAG_OVERDUE_LOANS = "has_overdue_loans"


@dataclass
class FraudAssessment:
    """Result of scoring one borrower."""

    score: int
    risk_level: RiskLevel
    recommendation: str
    checked_at: datetime
    total_loans: int = 0
    loans_in_window: Dict[int, int] = field(default_factory=dict)
    velocity_flagged: bool = False
    pending_count: int = 0
    pending_amount: int = 0
    overdue_count: int = 0
    overdue_amount: int = 0
    max_overdue_days: int = 0
    critical_overdue_count: int = 0
    severe_overdue_count: int = 0

    @property
    def flags(self) -> List[str]:
        flags = []
        if self.velocity_flagged:
            flags.append(FLAG_MULTIPLE_LOANS)
        if self.pending_count > 0:
            flags.append(FLAG_PENDING_LOANS)
        if self.overdue_count > 0:
            flags.append(FLAG_OVERDUE_LOANS)
        return flags

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fraud_score": self.score,
            "risk_level": self.risk_level.value,
            "recommendation": self.recommendation,
            "checked_at": self.checked_at.isoformat(),
            "flags": self.flags,
            "details": {
                "multiple_loans": {
                    "total_active_loans": self.total_loans,
                    "loans_in_30_days": self.loans_in_window.get(30, 0),
                    "loans_in_90_days": self.loans_in_window.get(90, 0),
                    "loans_in_180_days": self.loans_in_window.get(180, 0),
                    "flagged": self.velocity_flagged,
                },
                "pending_loans": {
                    "count": self.pending_count,
                    "amount": self.pending_amount,
                },
                "overdue_loans": {
                    "count": self.overdue_count,
                    "amount": self.overdue_amount,
                    "max_overdue_days": self.max_overdue_days,
                    "critical_overdue_count": self.critical_overdue_count,
                    "severe_overdue_count": self.severe_overdue_count,
                },
            },
        }


def determine_risk_level(score: int) -> RiskLevel:
    """Map a 0-100 score onto low [0,30), medium [30,60), high [60,90), critical [90,100]."""
    if score >= 90:
        return RiskLevel.CRITICAL
    if score >= 60:
        return RiskLevel.HIGH
    if score >= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def is_loan_overdue(loan: LoanModel, now: datetime) -> bool:
    """A loan is overdue if flagged so, or past its end date with money still owed."""
    if loan.payment_status == PaymentStatus.OVERDUE or loan.overdue_details.is_overdue:
        return True
    return (
        loan.loan_end_date < now
        and loan.remaining_amount > 0
        and loan.payment_status != PaymentStatus.PAID
    )


def overdue_days_of(loan: LoanModel, now: datetime) -> int:
    """Stored overdue days when positive, else days elapsed since the end date."""
    if loan.overdue_details.overdue_days > 0:
        return loan.overdue_details.overdue_days
    return whole_days_between(loan.loan_end_date, now)


def score_borrower_loans(loans: Iterable[LoanModel], now: datetime) -> FraudAssessment:
    """Score a borrower from their accepted loans. Non-accepted loans are ignored."""
    accepted = [loan for loan in loans if loan.borrower_acceptance == AcceptanceStatus.ACCEPTED]

    loans_in_window = {
        days: sum(1 for loan in accepted if loan.loan_start_date >= now - timedelta(days=days))
        for days in VELOCITY_WINDOWS
    }
    velocity_flagged = any(loans_in_window[days] >= threshold for days, threshold in VELOCITY_WINDOWS.items())

    pending_count = 0
    pending_amount = 0
    overdue_count = 0
    overdue_amount = 0
    max_overdue_days = 0
    critical_count = 0
    severe_count = 0

    for loan in accepted:
        if is_loan_overdue(loan, now):
            days = overdue_days_of(loan, now)
            overdue_count += 1
            overdue_amount += loan.overdue_details.overdue_amount or loan.remaining_amount
            max_overdue_days = max(max_overdue_days, days)
            if days >= SEVERE_OVERDUE_DAYS:
                severe_count += 1
            elif days >= CRITICAL_OVERDUE_DAYS:
                critical_count += 1
        elif (
            loan.payment_status in (PaymentStatus.PENDING, PaymentStatus.PART_PAID)
            and loan.remaining_amount > 0
        ):
            pending_count += 1
            pending_amount += loan.remaining_amount

    score = 0
    if loans_in_window[30] >= VELOCITY_WINDOWS[30]:
        score += SCORE_VELOCITY_30_DAYS
    if loans_in_window[90] >= VELOCITY_WINDOWS[90]:
        score += SCORE_VELOCITY_90_DAYS
    score += pending_count * SCORE_PER_PENDING_LOAN
    score += overdue_count * SCORE_PER_OVERDUE_LOAN
    score += severe_count * SCORE_PER_SEVERE_OVERDUE
    score = min(score, MAX_SCORE)

    level = determine_risk_level(score)
    return FraudAssessment(
        score=score,
        risk_level=level,
        recommendation=RECOMMENDATIONS[level],
        checked_at=now,
        total_loans=len(accepted),
        loans_in_window=loans_in_window,
        velocity_flagged=velocity_flagged,
        pending_count=pending_count,
        pending_amount=pending_amount,
        overdue_count=overdue_count,
        overdue_amount=overdue_amount,
        max_overdue_days=max_overdue_days,
        critical_overdue_count=critical_count,
        severe_overdue_count=severe_count,
    )


class FraudDetectionService:
    """Loads borrower loans, scores them, and persists the outcome on the borrower."""

    def __init__(
        self,
        loan_repository: LoanRepository,
        user_repository: UserRepository,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._loans = loan_repository
        self._users = user_repository
        self._clock = clock

    def score_borrower(self, id_number: str) -> FraudAssessment:
        """Score the borrower behind `id_number` without writing anything."""
        loans = self._loans.list_by_id_number(id_number, accepted_only=True)
        return score_borrower_loans(loans, self._clock())

    def persist_fraud_status(self, borrower_id: str, id_number: Optional[str] = None) -> FraudAssessment:
        """Score a registered borrower and store the summary plus rolling history."""
        borrower = self._users.get_by_id(borrower_id)
        assessment = self.score_borrower(id_number or borrower.id_number or "")

        previous = borrower.fraud_detection.history if borrower.fraud_detection else []
        entry = FraudHistoryEntry(
            score=assessment.score,
            risk_level=assessment.risk_level,
            flags=assessment.flags,
            checked_at=assessment.checked_at,
            reason=assessment.recommendation,
        )
        borrower.fraud_detection = FraudDetectionSummary(
            score=assessment.score,
            risk_level=assessment.risk_level,
            flags=assessment.flags,
            last_checked_at=assessment.checked_at,
            history=[*previous, entry],
        )
        borrower.version += 1
        self._users.update(borrower)
        logger.info(
            "Persisted fraud status borrower_id=%s score=%s level=%s",
            borrower_id,
            assessment.score,
            assessment.risk_level.value,
        )
        return assessment

    def check_id_number(self, id_number: str) -> Dict[str, Any]:
        """Lender-facing risk view; persists when the borrower is registered."""
        borrower = self._users.find_borrower_by_id_number(id_number)
        if borrower is None:
            assessment = self.score_borrower(id_number)
        else:
            assessment = self.persist_fraud_status(borrower.user_id, id_number)
        payload = assessment.to_dict()
        payload["borrower_registered"] = borrower is not None
        payload["id_number"] = id_number
        return payload

    def run_fraud_sweep(self) -> Dict[str, int]:
        """Persist a fresh assessment for every registered borrower."""
        borrowers = self._users.list_by_role(UserRole.BORROWER)
        updated = 0
        failed = 0
        for borrower in borrowers:
            try:
                self.persist_fraud_status(borrower.user_id, borrower.id_number)
                updated += 1
            except ModelError:
                failed += 1
                logger.exception("Fraud sweep failed for borrower_id=%s", borrower.user_id)
        logger.info("Fraud sweep finished scanned=%d updated=%d failed=%d", len(borrowers), updated, failed)
        return {"scanned": len(borrowers), "updated": updated, "failed": failed}
