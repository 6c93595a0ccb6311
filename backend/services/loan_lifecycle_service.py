"""Loan lifecycle: creation, code confirmation, borrower acceptance, edits, and deletion.

A loan carries three independent sub-states. Confirmation moves from
unconfirmed to confirmed once the lender enters the code. Acceptance is
pending, accepted, or rejected, and code confirmation forces accepted. The
payment axis is owned by `PaymentService`.
"""

from datetime import datetime, timedelta
import logging
import math
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from common.common_functions import new_id, utc_now
from models.enums import (
    AcceptanceStatus,
    InstallmentFrequency,
    PaymentMode,
    PaymentStatus,
    RiskLevel,
    UserRole,
)
from models.exceptions import (
    AccessDeniedError,
    ModelError,
    ModelNotFoundError,
    ModelValidationError,
    StateConflictError,
)
from models.loans import VERIFIED_MARKER, InstallmentPlan, LoanModel
from models.repositories import LoanRepository, UserRepository
from models.users import UserModel

from .agreement_service import generate_loan_agreement
from .fraud_scoring import FraudDetectionService
from .loan_access import (
    ensure_borrower_matches,
    ensure_lender_owns,
    loan_view,
    pending_summary,
    save_loan,
    validation_error_from,
)
from .notification_service import NotificationService
from .razorpay_service import RazorpayService


logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset(
    {
        "borrower_name",
        "mobile_number",
        "address",
        "amount",
        "purpose",
        "loan_start_date",
        "loan_end_date",
        "loan_mode",
        "installment_count",
        "installment_frequency",
    }
)


def build_installment_plan(
    amount: int,
    start_date: datetime,
    installment_count: int = 1,
    frequency: Any = InstallmentFrequency.MONTHLY,
) -> InstallmentPlan:
    """Split `amount` into `installment_count` equal parts, rounding each part up."""
    if installment_count < 1:
        raise ModelValidationError("installment_count must be at least 1")
    try:
        cadence = InstallmentFrequency(frequency)
    except ValueError:
        raise ModelValidationError("installment_frequency must be one of weekly, monthly, quarterly")
    return InstallmentPlan(
        total_installments=installment_count,
        installment_amount=int(math.ceil(amount / float(installment_count))),
        frequency=cadence,
        next_due_date=start_date + timedelta(days=cadence.days),
        paid_installments=0,
    )


class LoanLifecycleService:
    """Implements lender and borrower transitions on a single loan."""

    def __init__(
        self,
        loan_repository: LoanRepository,
        user_repository: UserRepository,
        notifier: NotificationService,
        fraud_service: FraudDetectionService,
        gateway: Optional[RazorpayService] = None,
        confirmation_code: str = "1234",
        confirmation_ttl_minutes: int = 10,
        min_amount: int = 1000,
        currency: str = "INR",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._loans = loan_repository
        self._users = user_repository
        self._notifier = notifier
        self._fraud = fraud_service
        self._gateway = gateway
        self._confirmation_code = confirmation_code
        self._confirmation_ttl = timedelta(minutes=confirmation_ttl_minutes)
        self._min_amount = min_amount
        self._currency = currency
        self._clock = clock

    def _load_lender(self, lender_id: str) -> UserModel:
        lender = self._users.get_by_id(lender_id)
        if lender.role != UserRole.LENDER:
            raise AccessDeniedError("Only lenders can manage loans")
        return lender

    def _load_owned_loan(self, lender_id: str, loan_id: str) -> LoanModel:
        return ensure_lender_owns(self._loans.get_by_id(loan_id), lender_id)

    def _issue_confirmation_code(self, loan: LoanModel, now: datetime) -> None:
        loan.confirmation_code = self._confirmation_code
        loan.confirmation_expires_at = now + self._confirmation_ttl
        loan.loan_confirmed = False

    def _check_terms(self, loan: LoanModel, now: datetime) -> None:
        if loan.amount < self._min_amount:
            raise ModelValidationError("Loan amount must be at least {0}".format(self._min_amount))
        if loan.loan_end_date <= now:
            raise ModelValidationError("Loan end date is already in the past")

    def _open_gateway_order(self, loan: LoanModel) -> Dict[str, Any]:
        if self._gateway is None or not self._gateway.is_configured:
            raise StateConflictError(
                "Online disbursement needs a configured payment gateway",
                code="GATEWAY_UNAVAILABLE",
            )
        order = self._gateway.create_order(
            amount_minor=loan.amount * 100,
            currency=self._currency,
            receipt="loan_{0}".format(loan.loan_id),
            notes={"loan_id": loan.loan_id, "lender_id": loan.lender_id},
        )
        loan.gateway_order_id = order.get("id")
        return order

    def _assess_borrower(self, lender_id: str, borrower: UserModel) -> Optional[Dict[str, Any]]:
        """Run the pre-creation fraud check; a failure here never blocks the loan."""
        try:
            return self._fraud.check_id_number(borrower.id_number or "")
        except ModelError:
            logger.exception("Fraud pre-check failed lender_id=%s borrower_id=%s", lender_id, borrower.user_id)
            return None

    def resolve_borrower(self, loan: LoanModel) -> Optional[UserModel]:
        """Look up the borrower behind a loan's ID number. None means not registered yet."""
        return self._users.find_borrower_by_id_number(loan.id_number)

    def create_loan(
        self,
        lender_id: str,
        borrower_name: str,
        id_number: str,
        mobile_number: str,
        address: str,
        amount: int,
        purpose: str,
        loan_start_date: datetime,
        loan_end_date: datetime,
        loan_mode: str = PaymentMode.CASH.value,
        installment_count: int = 1,
        installment_frequency: str = InstallmentFrequency.MONTHLY.value,
    ) -> Dict[str, Any]:
        """Create a loan in unconfirmed / pending / pending state and return its code."""
        now = self._clock()
        lender = self._load_lender(lender_id)
        if lender.id_number and lender.id_number == id_number:
            raise ModelValidationError("You cannot give a loan to yourself", code="SELF_LOAN")

        borrower = self._users.find_borrower_by_id_number(id_number)
        if borrower is None:
            raise ModelNotFoundError(
                "No borrower is registered with this ID number",
                code="BORROWER_NOT_REGISTERED",
            )

        try:
            loan = LoanModel(
                loan_id=new_id("loan"),
                lender_id=lender_id,
                borrower_id=borrower.user_id,
                borrower_name=borrower_name,
                id_number=id_number,
                mobile_number=mobile_number,
                address=address,
                amount=amount,
                purpose=purpose,
                loan_start_date=loan_start_date,
                loan_end_date=loan_end_date,
                loan_mode=loan_mode,
                created_at=now,
                updated_at=now,
            )
        except ValidationError as exc:
            raise validation_error_from(exc)
        self._check_terms(loan, now)
        loan.installment_plan = build_installment_plan(
            loan.amount, loan.loan_start_date, installment_count, installment_frequency
        )

        assessment = self._assess_borrower(lender_id, borrower)

        gateway_order = None
        if loan.loan_mode == PaymentMode.ONLINE:
            gateway_order = self._open_gateway_order(loan)

        self._issue_confirmation_code(loan, now)
        loan.agreement_text = generate_loan_agreement(loan, now, lender.user_name)
        created = self._loans.create(loan)
        logger.info("Loan created loan_id=%s lender_id=%s amount=%s", created.loan_id, lender_id, created.amount)

        self._notifier.loan_offered(created, lender.user_name)

        result: Dict[str, Any] = {
            "loan": loan_view(created, borrower),
            "confirmation_code": created.confirmation_code,
            "confirmation_expires_at": created.confirmation_expires_at.isoformat(),
        }
        if gateway_order is not None:
            result["gateway_order"] = gateway_order
        if assessment is not None:
            result["fraud_check"] = assessment
            if assessment.get("risk_level") != RiskLevel.LOW.value:
                result["warning"] = assessment.get("recommendation")
                self._notifier.fraud_alert(lender_id, borrower_name, assessment)
        return result

    def verify_confirmation_code(self, lender_id: str, loan_id: str, code: str) -> Dict[str, Any]:
        """Confirm the loan and accept it on the borrower's behalf."""
        loan = self._load_owned_loan(lender_id, loan_id)
        if loan.loan_confirmed:
            raise StateConflictError("Loan is already confirmed", code="ALREADY_CONFIRMED")
        now = self._clock()
        if loan.confirmation_expires_at is None or now > loan.confirmation_expires_at:
            raise StateConflictError("Confirmation code has expired", code="CODE_EXPIRED")
        if str(code).strip() != loan.confirmation_code:
            raise StateConflictError("Invalid confirmation code", code="INVALID_CODE")

        loan.loan_confirmed = True
        loan.borrower_acceptance = AcceptanceStatus.ACCEPTED
        if loan.total_paid == 0:
            loan.payment_status = PaymentStatus.PENDING
        loan.verification_marker = VERIFIED_MARKER
        loan.confirmation_code = None
        loan.confirmation_expires_at = None
        borrower = self.resolve_borrower(loan)
        if borrower is not None:
            loan.borrower_id = borrower.user_id
        saved = save_loan(self._loans, loan)
        logger.info("Loan confirmed loan_id=%s lender_id=%s", loan_id, lender_id)

        self._notifier.loan_confirmed(saved)
        return loan_view(saved, borrower)

    def resend_confirmation_code(self, lender_id: str, loan_id: str) -> Dict[str, Any]:
        """Issue a fresh code while the loan is still unconfirmed."""
        loan = self._load_owned_loan(lender_id, loan_id)
        if loan.loan_confirmed:
            raise StateConflictError("Loan is already confirmed", code="ALREADY_CONFIRMED")
        self._issue_confirmation_code(loan, self._clock())
        saved = save_loan(self._loans, loan)
        return {
            "loan_id": saved.loan_id,
            "confirmation_code": saved.confirmation_code,
            "confirmation_expires_at": saved.confirmation_expires_at.isoformat(),
        }

    def record_borrower_acceptance(self, borrower_id: str, loan_id: str, decision: str) -> Dict[str, Any]:
        """Apply the borrower's accept or reject decision."""
        try:
            status = AcceptanceStatus(decision)
        except ValueError:
            raise ModelValidationError("decision must be 'accepted' or 'rejected'")
        if status == AcceptanceStatus.PENDING:
            raise ModelValidationError("decision must be 'accepted' or 'rejected'")

        borrower = self._users.get_by_id(borrower_id)
        loan = ensure_borrower_matches(self._loans.get_by_id(loan_id), borrower)
        if loan.is_locked_by_acceptance:
            raise StateConflictError(
                "Loan was already accepted through the confirmation code",
                code="ACCEPTED_VIA_CODE",
            )
        if loan.borrower_acceptance == status:
            raise StateConflictError(
                "Loan is already {0}".format(status.value),
                code="ALREADY_IN_STATE",
            )

        loan.borrower_acceptance = status
        loan.borrower_id = borrower.user_id
        saved = save_loan(self._loans, loan)
        logger.info("Borrower decision loan_id=%s status=%s", loan_id, status.value)

        self._notifier.loan_status(saved, status.value, borrower.user_name)
        return loan_view(saved, borrower, for_borrower=True)

    def edit_loan_terms(self, lender_id: str, loan_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Change loan terms; the loan goes back to unconfirmed / pending and needs a new code."""
        loan = self._load_owned_loan(lender_id, loan_id)
        if loan.is_locked_by_acceptance:
            raise StateConflictError("Loan is accepted and can no longer be edited", code="LOAN_ACCEPTED")

        updates = {key: value for key, value in (changes or {}).items() if value is not None}
        unknown = sorted(set(updates) - EDITABLE_FIELDS)
        if unknown:
            raise ModelValidationError("Fields cannot be edited: {0}".format(", ".join(unknown)))
        if not updates:
            raise ModelValidationError("No editable fields supplied")

        now = self._clock()
        installment_count = updates.pop("installment_count", loan.installment_plan.total_installments)
        installment_frequency = updates.pop("installment_frequency", loan.installment_plan.frequency)
        payload = loan.model_dump()
        payload.update(updates)
        try:
            edited = LoanModel.model_validate(payload)
        except ValidationError as exc:
            raise validation_error_from(exc)
        if edited.amount < self._min_amount:
            raise ModelValidationError("Loan amount must be at least {0}".format(self._min_amount))
        if "loan_end_date" in updates and edited.loan_end_date <= now:
            raise ModelValidationError("Loan end date is already in the past")

        edited.installment_plan = build_installment_plan(
            edited.amount, edited.loan_start_date, installment_count, installment_frequency
        )
        edited.installment_plan.paid_installments = loan.installment_plan.paid_installments
        if edited.loan_mode == PaymentMode.ONLINE and (
            edited.amount != loan.amount or loan.loan_mode != PaymentMode.ONLINE
        ):
            self._open_gateway_order(edited)

        edited.borrower_acceptance = AcceptanceStatus.PENDING
        edited.verification_marker = None
        self._issue_confirmation_code(edited, now)
        lender = self._users.find_by_id(lender_id)
        edited.agreement_text = generate_loan_agreement(edited, now, lender.user_name if lender else None)
        saved = save_loan(self._loans, edited)
        logger.info("Loan terms edited loan_id=%s fields=%s", loan_id, sorted(updates))

        self._notifier.loan_updated(saved)
        return {
            "loan": loan_view(saved, self.resolve_borrower(saved)),
            "confirmation_code": saved.confirmation_code,
            "confirmation_expires_at": saved.confirmation_expires_at.isoformat(),
        }

    def delete_loan(self, lender_id: str, loan_id: str) -> Dict[str, Any]:
        """Hard delete a loan owned by the lender, whatever its state."""
        loan = self._load_owned_loan(lender_id, loan_id)
        self._loans.delete(loan.loan_id)
        logger.info("Loan deleted loan_id=%s lender_id=%s", loan_id, lender_id)
        return {"loan_id": loan_id, "deleted": True}

    def get_loan_for_lender(self, lender_id: str, loan_id: str) -> Dict[str, Any]:
        loan = self._load_owned_loan(lender_id, loan_id)
        payload = loan_view(loan, self.resolve_borrower(loan))
        payload["pending_confirmations"] = pending_summary(loan)
        return payload
