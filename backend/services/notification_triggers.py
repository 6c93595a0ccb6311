"""Admin-triggered reminder batches over the loan book and lender subscriptions."""

from datetime import datetime
import logging
from typing import Any, Callable, Dict, Optional

from common.common_functions import days_until, utc_now
from models.enums import AcceptanceStatus, PaymentStatus, UserRole
from models.repositories import LoanRepository, PlanRepository, UserRepository
from models.users import UserModel

from .notification_service import NotificationService


logger = logging.getLogger(__name__)

SUBSCRIPTION_REMINDER_DAYS = frozenset({7, 3, 1, 0})


class NotificationTriggerService:
    """Each trigger scans once, notifies, and reports how many users it reached."""

    def __init__(
        self,
        loan_repository: LoanRepository,
        user_repository: UserRepository,
        plan_repository: PlanRepository,
        notifier: NotificationService,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._loans = loan_repository
        self._users = user_repository
        self._plans = plan_repository
        self._notifier = notifier
        self._clock = clock

    def _lender_name(self, lender_id: str, cache: Dict[str, Optional[UserModel]]) -> str:
        if lender_id not in cache:
            cache[lender_id] = self._users.find_by_id(lender_id)
        lender = cache[lender_id]
        return lender.user_name if lender else "Lender"

    def notify_overdue_loans(self) -> Dict[str, int]:
        loans = [
            loan
            for loan in self._loans.list_confirmed_accepted()
            if loan.overdue_details.is_overdue and loan.payment_status != PaymentStatus.PAID
        ]
        lenders: Dict[str, Optional[UserModel]] = {}
        lenders_notified = 0
        borrowers_notified = 0
        for loan in loans:
            self._notifier.overdue_to_lender(loan, loan.borrower_name)
            lenders_notified += 1
            if self._notifier.overdue_to_borrower(loan, self._lender_name(loan.lender_id, lenders)):
                borrowers_notified += 1
        logger.info("Overdue reminders sent loans=%d borrowers=%d", len(loans), borrowers_notified)
        return {
            "total_overdue_loans": len(loans),
            "lenders_notified": lenders_notified,
            "borrowers_notified": borrowers_notified,
        }

    def notify_pending_payments(self) -> Dict[str, int]:
        """Remind lenders of the latest unconfirmed payment on each loan."""
        notified = 0
        loans_with_pending = 0
        for loan in self._loans.list_confirmed_accepted():
            pending = loan.pending_payments()
            if not pending:
                continue
            loans_with_pending += 1
            latest = max(pending, key=lambda entry: entry.paid_at)
            self._notifier.pending_payment_reminder(loan, latest)
            notified += 1
        logger.info("Pending payment reminders sent loans=%d", loans_with_pending)
        return {"total_loans_with_pending_payments": loans_with_pending, "lenders_notified": notified}

    def notify_pending_loans(self) -> Dict[str, int]:
        loans = [
            loan
            for loan in self._loans.list_all()
            if loan.borrower_acceptance == AcceptanceStatus.PENDING and not loan.loan_confirmed
        ]
        lenders: Dict[str, Optional[UserModel]] = {}
        lenders_notified = 0
        borrowers_notified = 0
        for loan in loans:
            self._notifier.pending_loan_to_lender(loan)
            lenders_notified += 1
            if self._notifier.pending_loan_to_borrower(loan, self._lender_name(loan.lender_id, lenders)):
                borrowers_notified += 1
        logger.info("Pending loan reminders sent loans=%d borrowers=%d", len(loans), borrowers_notified)
        return {
            "total_pending_loans": len(loans),
            "lenders_notified": lenders_notified,
            "borrowers_notified": borrowers_notified,
        }

    def notify_subscription_expiry(self) -> Dict[str, int]:
        """Warn lenders whose plan ends in 7, 3, 1 or 0 days."""
        now = self._clock()
        lenders = [lender for lender in self._users.list_by_role(UserRole.LENDER) if lender.current_plan_id]
        notified = 0
        for lender in lenders:
            if lender.plan_expiry_date is None:
                continue
            remaining = days_until(lender.plan_expiry_date, now)
            if remaining not in SUBSCRIPTION_REMINDER_DAYS:
                continue
            if remaining == 0 and lender.plan_expiry_date < now and (now - lender.plan_expiry_date).days >= 1:
                continue
            plan = self._plans.find_by_id(lender.current_plan_id)
            self._notifier.subscription_reminder(lender.user_id, plan.plan_name if plan else "subscription", remaining)
            notified += 1
        logger.info("Subscription reminders sent lenders=%d", notified)
        return {"total_lenders_with_plans": len(lenders), "lenders_notified": notified}

    def run_all(self) -> Dict[str, Any]:
        return {
            "overdue_loans": self.notify_overdue_loans(),
            "pending_payments": self.notify_pending_payments(),
            "pending_loans": self.notify_pending_loans(),
            "subscription_expiry": self.notify_subscription_expiry(),
        }
