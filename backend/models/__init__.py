"""Public model package exports for the loan ledger backend."""

from .base import BaseDocumentModel, Money, UtcDatetime, as_utc, utc_now
from .enums import (
    AcceptanceStatus,
    ConfirmationStatus,
    InstallmentFrequency,
    PaymentMode,
    PaymentStatus,
    PaymentType,
    PlanDuration,
    RiskLevel,
    UserRole,
)
from .exceptions import (
    AccessDeniedError,
    ModelError,
    ModelNotFoundError,
    ModelValidationError,
    PaymentVerificationError,
    StateConflictError,
    VersionConflictError,
)
from .loans import InstallmentPlan, LoanModel, OverdueDetails
from .notifications import NotificationModel, PasswordResetCodeModel
from .payments import PaymentHistoryEntry
from .plans import PlanFeatures, PlanModel
from .repositories import LoanRepository, PlanRepository, UserRepository
from .users import FraudDetectionSummary, FraudHistoryEntry, UserModel

__all__ = [
    "BaseDocumentModel",
    "Money",
    "UtcDatetime",
    "as_utc",
    "utc_now",
    "AcceptanceStatus",
    "ConfirmationStatus",
    "InstallmentFrequency",
    "PaymentMode",
    "PaymentStatus",
    "PaymentType",
    "PlanDuration",
    "RiskLevel",
    "UserRole",
    "AccessDeniedError",
    "ModelError",
    "ModelNotFoundError",
    "ModelValidationError",
    "PaymentVerificationError",
    "StateConflictError",
    "VersionConflictError",
    "InstallmentPlan",
    "LoanModel",
    "OverdueDetails",
    "NotificationModel",
    "PasswordResetCodeModel",
    "PaymentHistoryEntry",
    "PlanFeatures",
    "PlanModel",
    "LoanRepository",
    "PlanRepository",
    "UserRepository",
    "FraudDetectionSummary",
    "FraudHistoryEntry",
    "UserModel",
]
