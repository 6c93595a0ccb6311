"""Closed enumerations shared by the loan ledger domain models."""

from enum import Enum
from typing import Any


class StringEnum(str, Enum):
    """Base enum class with string behavior for JSON serialization."""


class UserRole(StringEnum):
    """Actor roles used for API authorization checks."""

    ADMIN = "ADMIN"
    LENDER = "LENDER"
    BORROWER = "BORROWER"

    @classmethod
    def parse(cls, value: Any) -> "UserRole":
        """Parse a role name or its legacy numeric tag (0 admin, 1 lender, 2 borrower)."""
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper()
        legacy = {"0": cls.ADMIN, "1": cls.LENDER, "2": cls.BORROWER}
        if normalized in legacy:
            return legacy[normalized]
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError("Unknown role: {0}".format(value))


class PaymentMode(StringEnum):
    """How money moved, for both disbursement and repayment."""

    CASH = "cash"
    ONLINE = "online"


class AcceptanceStatus(StringEnum):
    """Borrower decision on a loan offer."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentStatus(StringEnum):
    """Aggregate repayment state of a loan."""

    PENDING = "pending"
    PART_PAID = "part paid"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentType(StringEnum):
    """Repayment shape chosen by the borrower."""

    ONE_TIME = "one-time"
    INSTALLMENT = "installment"


class ConfirmationStatus(StringEnum):
    """Lender decision on a submitted payment."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class InstallmentFrequency(StringEnum):
    """Installment cadence and its length in days."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"

    @property
    def days(self) -> int:
        return {"weekly": 7, "monthly": 30, "quarterly": 90}[self.value]


class PlanDuration(StringEnum):
    """Subscription lengths an admin may sell."""

    ONE_MONTH = "1 month"
    TWO_MONTHS = "2 months"
    THREE_MONTHS = "3 months"
    SIX_MONTHS = "6 months"
    ONE_YEAR = "1 year"

    @property
    def months(self) -> int:
        return {
            "1 month": 1,
            "2 months": 2,
            "3 months": 3,
            "6 months": 6,
            "1 year": 12,
        }[self.value]


class RiskLevel(StringEnum):
    """Fraud risk classification."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
