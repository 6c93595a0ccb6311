"""Payment history entry embedded in loan documents."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import Money, UtcDatetime, utc_now
from .enums import ConfirmationStatus, PaymentMode, PaymentType
from .exceptions import StateConflictError


class PaymentHistoryEntry(BaseModel):
    """A borrower-submitted payment awaiting or carrying a lender decision.

    Entries are append-only on the parent loan. Status moves from pending to
    confirmed or rejected exactly once.
    """

    model_config = ConfigDict(validate_assignment=True)

    payment_id: str = Field(..., min_length=3)
    amount: Money = Field(..., gt=0)
    payment_mode: PaymentMode
    payment_type: PaymentType
    installment_number: Optional[int] = Field(default=None, ge=1)
    transaction_id: Optional[str] = Field(default=None)
    payment_proof: Optional[str] = Field(default=None)
    paid_at: UtcDatetime = Field(default_factory=utc_now)
    confirmation_status: ConfirmationStatus = Field(default=ConfirmationStatus.PENDING)
    confirmed_by: Optional[str] = Field(default=None)
    confirmed_at: Optional[UtcDatetime] = Field(default=None)
    notes: Optional[str] = Field(default=None)

    @property
    def is_pending(self) -> bool:
        return self.confirmation_status == ConfirmationStatus.PENDING

    def resolve(
        self,
        status: ConfirmationStatus,
        actor_id: str,
        resolved_at: datetime,
        notes: Optional[str] = None,
    ) -> None:
        """Move a pending entry to a terminal status.

        Raises:
            StateConflictError: If the entry was already confirmed or rejected.
        """
        if not self.is_pending:
            raise StateConflictError(
                "Payment is already {0}".format(self.confirmation_status.value),
                code="PAYMENT_ALREADY_RESOLVED",
            )
        if status == ConfirmationStatus.PENDING:
            raise ValueError("A payment can only be resolved to confirmed or rejected")
        self.confirmation_status = status
        self.confirmed_by = actor_id
        self.confirmed_at = resolved_at
        if notes is not None:
            self.notes = notes
