"""Service layer exports."""

from .fraud_scoring import FraudDetectionService
from .history_service import HistoryService, LoanFilters
from .loan_lifecycle_service import LoanLifecycleService
from .mailer import Mailer
from .notification_service import NotificationService
from .notification_triggers import NotificationTriggerService
from .password_reset_service import PasswordResetService
from .payment_service import PaymentService
from .razorpay_service import RazorpayService
from .reputation_scoring import ReputationService
from .subscription_service import SubscriptionService
from .sweep_poller import LoanSweepPoller
from .user_service import UserService

__all__ = [
    "FraudDetectionService",
    "HistoryService",
    "LoanFilters",
    "LoanLifecycleService",
    "LoanSweepPoller",
    "Mailer",
    "NotificationService",
    "NotificationTriggerService",
    "PasswordResetService",
    "PaymentService",
    "RazorpayService",
    "ReputationService",
    "SubscriptionService",
    "UserService",
]
