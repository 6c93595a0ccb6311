"""Fire-and-forget notification dispatch.

Every notification is recorded in the notifications collection and, when a
push sender is configured, handed to it together with the user's device
tokens. Nothing here raises to the caller: failures are logged and the
primary request carries on.
"""

from datetime import datetime
import logging
from typing import Any, Callable, Dict, List, Optional

from common.common_functions import new_id, utc_now
from models.loans import LoanModel
from models.notifications import NotificationModel
from models.payments import PaymentHistoryEntry
from models.repositories import UserRepository


logger = logging.getLogger(__name__)

PushSender = Callable[[List[str], Dict[str, Any]], None]


def _plural_days(days: int) -> str:
    return "{0} day{1}".format(days, "" if days == 1 else "s")


class NotificationService:
    """Records notifications and forwards them to an optional push sender."""

    def __init__(
        self,
        store: Any,
        user_repository: UserRepository,
        collection_name: str = "notifications",
        push_sender: Optional[PushSender] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._users = user_repository
        self._collection_name = collection_name
        self._push_sender = push_sender
        self._clock = clock

    def send(self, user_id: str, payload: Dict[str, Any]) -> Optional[NotificationModel]:
        """Deliver `payload` ({kind, title, body, data}) to one user, best-effort."""
        try:
            user = self._users.find_by_id(user_id)
            tokens = list(user.device_tokens) if user is not None else []
            record = NotificationModel(
                notification_id=new_id("ntf"),
                user_id=user_id,
                kind=str(payload.get("kind", "general")),
                title=str(payload.get("title", "")),
                body=str(payload.get("body", "")),
                data=dict(payload.get("data") or {}),
                device_token_count=len(tokens),
                created_at=self._clock(),
                updated_at=self._clock(),
            )
            if self._push_sender is not None and tokens:
                try:
                    self._push_sender(tokens, payload)
                    record.delivered = True
                except Exception as exc:
                    record.error = str(exc)
                    logger.exception("Push delivery failed user_id=%s kind=%s", user_id, record.kind)
            self._store.set_document(
                collection_name=self._collection_name,
                document_id=record.notification_id,
                payload=record.to_firestore(),
            )
            return record
        except Exception:
            logger.exception("Failed to record notification user_id=%s", user_id)
            return None

    def send_to_id_number(self, id_number: str, payload: Dict[str, Any]) -> bool:
        """Notify the borrower registered under `id_number`; unregistered is a silent no-op."""
        try:
            borrower = self._users.find_borrower_by_id_number(id_number)
        except Exception:
            logger.exception("Failed to resolve borrower for notification id_number=%s", id_number)
            return False
        if borrower is None:
            logger.info("No registered borrower for id_number=%s; notification skipped.", id_number)
            return False
        return self.send(borrower.user_id, payload) is not None

    def list_for_user(self, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self._store.query_documents(
            collection_name=self._collection_name,
            filters=[("user_id", "==", user_id)],
            order_by="created_at",
            descending=True,
            limit=limit,
        )

    # Lifecycle events

    def loan_offered(self, loan: LoanModel, lender_name: str) -> bool:
        return self.send_to_id_number(
            loan.id_number,
            {
                "kind": "loan_created",
                "title": "New Loan Offer",
                "body": "{0} has offered you a loan of Rs. {1}. Please review it.".format(lender_name, loan.amount),
                "data": {"loan_id": loan.loan_id},
            },
        )

    def loan_updated(self, loan: LoanModel) -> bool:
        return self.send_to_id_number(
            loan.id_number,
            {
                "kind": "loan_updated",
                "title": "Loan Update",
                "body": "Your loan has been processed and the details have been updated.",
                "data": {"loan_id": loan.loan_id},
            },
        )

    def loan_confirmed(self, loan: LoanModel) -> bool:
        return self.send_to_id_number(
            loan.id_number,
            {
                "kind": "loan_confirmed",
                "title": "Loan Confirmed",
                "body": "Your loan of Rs. {0} has been confirmed and is now active.".format(loan.amount),
                "data": {"loan_id": loan.loan_id},
            },
        )

    def loan_status(self, loan: LoanModel, status: str, actor_name: str) -> None:
        self.send(
            loan.lender_id,
            {
                "kind": "loan_status",
                "title": "Loan Status Update",
                "body": "The loan has been {0} by {1}".format(status, actor_name),
                "data": {"loan_id": loan.loan_id, "status": status},
            },
        )

    def fraud_alert(self, lender_id: str, borrower_name: str, assessment: Dict[str, Any]) -> None:
        level = assessment.get("risk_level", "low")
        score = assessment.get("fraud_score", 0)
        titles = {
            "critical": "CRITICAL: Fraud Alert",
            "high": "High Risk Fraud Alert",
            "medium": "Fraud Alert - Medium Risk",
        }
        self.send(
            lender_id,
            {
                "kind": "fraud_alert",
                "title": titles.get(level, "Fraud Warning"),
                "body": "Borrower {0} has been flagged as {1} risk. Fraud Score: {2}.".format(
                    borrower_name, str(level).upper(), score
                ),
                "data": {"risk_level": level, "fraud_score": score},
            },
        )

    def mobile_number_changed(
        self,
        lender_id: str,
        borrower_name: str,
        old_number: Optional[str],
        new_number: str,
    ) -> None:
        self.send(
            lender_id,
            {
                "kind": "mobile_number_change",
                "title": "Borrower Mobile Number Changed",
                "body": "{0} changed the mobile number from {1} to {2}".format(
                    borrower_name, old_number or "none", new_number
                ),
                "data": {"old_mobile_number": old_number, "new_mobile_number": new_number},
            },
        )

    def payment_submitted(self, loan: LoanModel, entry: PaymentHistoryEntry, borrower_name: str) -> None:
        self.send(
            loan.lender_id,
            {
                "kind": "payment_submitted",
                "title": "New Payment Submitted",
                "body": "{0} has submitted a payment of Rs. {1} via {2}. Please confirm or reject.".format(
                    borrower_name, entry.amount, entry.payment_mode.value
                ),
                "data": {"loan_id": loan.loan_id, "payment_id": entry.payment_id},
            },
        )

    def pending_payment_reminder(self, loan: LoanModel, entry: PaymentHistoryEntry) -> None:
        self.send(
            loan.lender_id,
            {
                "kind": "pending_payment",
                "title": "Pending Payment Request",
                "body": "{0} has a payment of Rs. {1} waiting for your confirmation.".format(
                    loan.borrower_name, entry.amount
                ),
                "data": {"loan_id": loan.loan_id, "payment_id": entry.payment_id},
            },
        )

    def payment_resolved(self, loan: LoanModel, entry: PaymentHistoryEntry) -> bool:
        status = entry.confirmation_status.value
        return self.send_to_id_number(
            loan.id_number,
            {
                "kind": "payment_{0}".format(status),
                "title": "Payment {0}".format(status.capitalize()),
                "body": "Your payment of Rs. {0} has been {1} by the lender.".format(entry.amount, status),
                "data": {"loan_id": loan.loan_id, "payment_id": entry.payment_id},
            },
        )

    def overdue_to_lender(self, loan: LoanModel, borrower_name: str) -> None:
        details = loan.overdue_details
        self.send(
            loan.lender_id,
            {
                "kind": "loan_overdue",
                "title": "Overdue Loan Alert",
                "body": "Loan from {0} is overdue by {1}. Amount: Rs. {2}".format(
                    borrower_name, _plural_days(details.overdue_days), details.overdue_amount
                ),
                "data": {"loan_id": loan.loan_id},
            },
        )

    def overdue_to_borrower(self, loan: LoanModel, lender_name: str) -> bool:
        details = loan.overdue_details
        return self.send_to_id_number(
            loan.id_number,
            {
                "kind": "loan_overdue",
                "title": "Loan Overdue Reminder",
                "body": "Your loan from {0} is overdue by {1}. Please pay Rs. {2}.".format(
                    lender_name, _plural_days(details.overdue_days), details.overdue_amount
                ),
                "data": {"loan_id": loan.loan_id},
            },
        )

    def pending_loan_to_lender(self, loan: LoanModel) -> None:
        self.send(
            loan.lender_id,
            {
                "kind": "pending_loan",
                "title": "Pending Loan Acceptance",
                "body": "Loan of Rs. {0} to {1} is waiting for borrower acceptance.".format(
                    loan.amount, loan.borrower_name
                ),
                "data": {"loan_id": loan.loan_id},
            },
        )

    def pending_loan_to_borrower(self, loan: LoanModel, lender_name: str) -> bool:
        return self.send_to_id_number(
            loan.id_number,
            {
                "kind": "pending_loan",
                "title": "New Loan Offer",
                "body": "{0} has offered you a loan of Rs. {1}. Please accept or reject.".format(
                    lender_name, loan.amount
                ),
                "data": {"loan_id": loan.loan_id},
            },
        )

    def subscription_reminder(self, lender_id: str, plan_name: str, remaining_days: int) -> None:
        if remaining_days <= 0:
            title = "Subscription Expired"
            body = "Your {0} subscription has expired today. Please renew to continue creating loans.".format(plan_name)
        else:
            title = "Subscription Expiring Soon"
            body = "Your {0} subscription expires in {1}. Please renew to avoid interruption.".format(
                plan_name, _plural_days(remaining_days)
            )
        self.send(
            lender_id,
            {
                "kind": "subscription_expiring",
                "title": title,
                "body": body,
                "data": {"remaining_days": remaining_days},
            },
        )
