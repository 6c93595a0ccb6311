"""Loan domain model covering confirmation, acceptance, and repayment state."""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .base import BaseDocumentModel, Money, UtcDatetime
from .enums import (
    AcceptanceStatus,
    ConfirmationStatus,
    InstallmentFrequency,
    PaymentMode,
    PaymentStatus,
    PaymentType,
)
from .exceptions import ModelNotFoundError
from .payments import PaymentHistoryEntry


logger = logging.getLogger(__name__)

VERIFIED_MARKER = "verified"


class InstallmentPlan(BaseModel):
    """Schedule splitting repayment into periodic sub-payments."""

    model_config = ConfigDict(validate_assignment=True)

    total_installments: int = Field(default=1, ge=1)
    installment_amount: Money = Field(default=0, ge=0)
    frequency: InstallmentFrequency = Field(default=InstallmentFrequency.MONTHLY)
    next_due_date: Optional[UtcDatetime] = Field(default=None)
    paid_installments: int = Field(default=0, ge=0)


class OverdueDetails(BaseModel):
    """Overdue flag and the figures captured by the last sweep."""

    model_config = ConfigDict(validate_assignment=True)

    is_overdue: bool = Field(default=False)
    overdue_amount: Money = Field(default=0, ge=0)
    overdue_days: int = Field(default=0, ge=0)
    last_checked_at: Optional[UtcDatetime] = Field(default=None)
    notified: bool = Field(default=False)

    def clear(self) -> None:
        self.is_overdue = False
        self.overdue_amount = 0
        self.overdue_days = 0
        self.notified = False


class LoanModel(BaseDocumentModel):
    """A lender-originated loan against a borrower's national ID number.

    `borrower_id` is a weak reference: it is filled when the ID number
    resolves to a registered borrower and may stay empty otherwise.
    """

    loan_id: str = Field(..., min_length=3)
    lender_id: str = Field(..., min_length=3)
    borrower_id: Optional[str] = Field(default=None)

    borrower_name: str = Field(..., min_length=2)
    id_number: str = Field(..., pattern=r"^\d{12}$")
    mobile_number: str = Field(..., pattern=r"^\d{10}$")
    address: str = Field(..., min_length=3)

    amount: Money = Field(..., gt=0)
    purpose: str = Field(..., min_length=2)
    loan_start_date: UtcDatetime
    loan_end_date: UtcDatetime
    loan_mode: PaymentMode = Field(default=PaymentMode.CASH)
    gateway_order_id: Optional[str] = Field(default=None)

    confirmation_code: Optional[str] = Field(default=None)
    confirmation_expires_at: Optional[UtcDatetime] = Field(default=None)
    loan_confirmed: bool = Field(default=False)
    verification_marker: Optional[str] = Field(default=None)

    borrower_acceptance: AcceptanceStatus = Field(default=AcceptanceStatus.PENDING)

    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    payment_mode: Optional[PaymentMode] = Field(default=None)
    payment_type: Optional[PaymentType] = Field(default=None)
    payment_confirmation: ConfirmationStatus = Field(default=ConfirmationStatus.PENDING)
    total_paid: Money = Field(default=0, ge=0)
    payment_history: List[PaymentHistoryEntry] = Field(default_factory=list)
    installment_plan: InstallmentPlan = Field(default_factory=InstallmentPlan)
    overdue_details: OverdueDetails = Field(default_factory=OverdueDetails)

    agreement_text: Optional[str] = Field(default=None)

    @computed_field
    @property
    def remaining_amount(self) -> Money:
        """Outstanding principal, always derived from `amount - total_paid`."""
        return max(0, self.amount - self.total_paid)

    @model_validator(mode="after")
    def _validate_dates(self) -> "LoanModel":
        if self.loan_end_date <= self.loan_start_date:
            raise ValueError("loan_end_date must be after loan_start_date")
        return self

    @property
    def is_locked_by_acceptance(self) -> bool:
        """True once the loan is confirmed and accepted; terms can no longer change."""
        return self.loan_confirmed and self.borrower_acceptance == AcceptanceStatus.ACCEPTED

    def find_payment(self, payment_id: str) -> PaymentHistoryEntry:
        """Return the history entry with `payment_id`.

        Raises:
            ModelNotFoundError: If the loan has no such entry.
        """
        for entry in self.payment_history:
            if entry.payment_id == payment_id:
                return entry
        raise ModelNotFoundError("Payment not found: {0}".format(payment_id))

    def confirmed_installment_count(self) -> int:
        return sum(
            1
            for entry in self.payment_history
            if entry.payment_type == PaymentType.INSTALLMENT
            and entry.confirmation_status == ConfirmationStatus.CONFIRMED
        )

    def pending_payments(self) -> List[PaymentHistoryEntry]:
        return [entry for entry in self.payment_history if entry.is_pending]
