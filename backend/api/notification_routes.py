"""Notification feed, admin reminder triggers, and manual sweeps."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from models.enums import UserRole
from models.exceptions import ModelNotFoundError
from services.fraud_scoring import FraudDetectionService
from services.notification_service import NotificationService
from services.notification_triggers import NotificationTriggerService
from services.payment_service import PaymentService

from .dependencies import Principal, get_principal, require_roles
from .responses import respond


logger = logging.getLogger(__name__)


def build_notification_router(
    notifier: NotificationService,
    triggers: NotificationTriggerService,
    payments: PaymentService,
    fraud: FraudDetectionService,
) -> APIRouter:
    """Build notification and sweep routes."""
    router = APIRouter(tags=["notifications"])
    admin_only = require_roles(UserRole.ADMIN)
    trigger_actions = {
        "overdue": triggers.notify_overdue_loans,
        "pending-payments": triggers.notify_pending_payments,
        "pending-loans": triggers.notify_pending_loans,
        "subscriptions": triggers.notify_subscription_expiry,
        "all": triggers.run_all,
    }

    @router.get("/notifications", summary="Own notifications")
    def list_notifications(
        limit: int = Query(default=50, ge=1, le=200),
        principal: Principal = Depends(get_principal),
    ) -> JSONResponse:
        return respond(
            lambda: notifier.list_for_user(principal.user_id, limit),
            "Notifications fetched successfully",
            context="list_notifications",
        )

    @router.post("/notifications/trigger/{kind}", summary="Send a reminder batch")
    def trigger(kind: str, principal: Principal = Depends(admin_only)) -> JSONResponse:
        def _run() -> dict:
            action = trigger_actions.get(kind)
            if action is None:
                raise ModelNotFoundError(
                    "Unknown trigger '{0}'. Use one of: {1}".format(kind, ", ".join(sorted(trigger_actions)))
                )
            return action()

        return respond(_run, "Notifications sent", context="trigger {0}".format(kind))

    @router.post("/sweeps/overdue", summary="Run the overdue sweep")
    def overdue_sweep(principal: Principal = Depends(admin_only)) -> JSONResponse:
        return respond(payments.run_overdue_sweep, "Overdue sweep completed", context="overdue_sweep")

    @router.post("/sweeps/fraud", summary="Run the fraud sweep")
    def fraud_sweep(principal: Principal = Depends(admin_only)) -> JSONResponse:
        return respond(fraud.run_fraud_sweep, "Fraud sweep completed", context="fraud_sweep")

    return router
