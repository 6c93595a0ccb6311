"""Top-level API router and service wiring."""

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Any, Callable, Optional

from fastapi import APIRouter

from common.common_functions import utc_now
from core import FirebaseClientManager, InMemoryDocumentStore
from core.config import AppSettings
from repositories import FirestoreLoanRepository, FirestorePlanRepository, FirestoreUserRepository
from services import (
    FraudDetectionService,
    HistoryService,
    LoanLifecycleService,
    Mailer,
    NotificationService,
    NotificationTriggerService,
    PasswordResetService,
    PaymentService,
    RazorpayService,
    ReputationService,
    SubscriptionService,
    UserService,
)
from services.notification_service import PushSender

from .borrower_routes import build_borrower_router
from .history_routes import build_history_router
from .lender_routes import build_lender_router
from .notification_routes import build_notification_router
from .plan_routes import build_plan_router
from .user_routes import build_user_router


logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Everything the routers and background poller need."""

    store: Any
    users: FirestoreUserRepository
    loans: FirestoreLoanRepository
    plans: FirestorePlanRepository
    gateway: Optional[RazorpayService]
    notifier: NotificationService
    fraud: FraudDetectionService
    reputation: ReputationService
    lifecycle: LoanLifecycleService
    payments: PaymentService
    history: HistoryService
    subscriptions: SubscriptionService
    triggers: NotificationTriggerService
    user_service: UserService
    password_resets: PasswordResetService


def _build_store(settings: AppSettings) -> Any:
    """Use Firestore when enabled; keep documents in memory only when it is disabled.

    Raises:
        RuntimeError: If Firebase is enabled but the client cannot be created.
    """
    if not settings.firebase_enabled:
        logger.info("Firebase integration disabled by firebase.enabled=false; using in-memory store.")
        return InMemoryDocumentStore()
    try:
        return FirebaseClientManager(
            project_id=settings.firebase_project_id,
            credentials_path=settings.firebase_credentials_path,
        )
    except Exception as exc:
        logger.exception("Failed to initialize Firebase while firebase.enabled=true")
        raise RuntimeError("Firebase is enabled but could not be initialized: {0}".format(exc)) from exc


def _build_gateway(settings: AppSettings) -> Optional[RazorpayService]:
    if not settings.razorpay_enabled:
        logger.info("Razorpay integration disabled by razorpay.enabled=false")
        return None
    gateway = RazorpayService(
        enabled=settings.razorpay_enabled,
        key_id=settings.razorpay_key_id,
        key_secret=settings.razorpay_key_secret,
        api_base_url=settings.razorpay_api_base_url,
        timeout_sec=settings.razorpay_timeout_sec,
    )
    if not gateway.is_configured:
        logger.warning("Razorpay is enabled but not fully configured. Check razorpay.key_id and razorpay.key_secret.")
    else:
        logger.info("Razorpay configured mode=%s key=%s", gateway.key_mode, gateway.key_id_masked)
    return gateway


def build_services(
    settings: AppSettings,
    store: Any = None,
    gateway: Optional[RazorpayService] = None,
    push_sender: Optional[PushSender] = None,
    mailer: Optional[Mailer] = None,
    clock: Callable[[], datetime] = utc_now,
) -> ServiceContainer:
    """Wire repositories and services over one document store."""
    store = store if store is not None else _build_store(settings)
    gateway = gateway if gateway is not None else _build_gateway(settings)
    mailer = mailer or Mailer(
        enabled=settings.mail_enabled,
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        from_address=settings.mail_from,
    )

    users = FirestoreUserRepository(store, settings.users_collection)
    loans = FirestoreLoanRepository(store, settings.loans_collection)
    plans = FirestorePlanRepository(store, settings.plans_collection)

    notifier = NotificationService(
        store,
        users,
        collection_name=settings.notifications_collection,
        push_sender=push_sender,
        clock=clock,
    )
    fraud = FraudDetectionService(loans, users, clock=clock)
    lifecycle = LoanLifecycleService(
        loans,
        users,
        notifier,
        fraud,
        gateway=gateway,
        confirmation_code=settings.loan_confirmation_code,
        confirmation_ttl_minutes=settings.loan_confirmation_ttl_minutes,
        min_amount=settings.loan_min_amount,
        currency=settings.razorpay_currency,
        clock=clock,
    )
    return ServiceContainer(
        store=store,
        users=users,
        loans=loans,
        plans=plans,
        gateway=gateway,
        notifier=notifier,
        fraud=fraud,
        reputation=ReputationService(loans, clock=clock),
        lifecycle=lifecycle,
        payments=PaymentService(loans, users, notifier, clock=clock),
        history=HistoryService(loans, users, clock=clock),
        subscriptions=SubscriptionService(plans, users, gateway=gateway, currency=settings.razorpay_currency, clock=clock),
        triggers=NotificationTriggerService(loans, users, plans, notifier, clock=clock),
        user_service=UserService(users, loans, notifier),
        password_resets=PasswordResetService(
            store,
            users,
            mailer,
            collection_name=settings.reset_codes_collection,
            ttl_minutes=settings.reset_code_ttl_minutes,
            clock=clock,
        ),
    )


def build_router(settings: AppSettings, services: ServiceContainer) -> APIRouter:
    """Build and return the top-level API router.

    Args:
        settings: Application settings payload.
        services: Wired service container.

    Returns:
        APIRouter: Fully configured router with all endpoints.
    """
    router = APIRouter()

    router.include_router(build_user_router(services.user_service, services.password_resets))
    router.include_router(
        build_lender_router(
            services.lifecycle,
            services.payments,
            services.history,
            services.subscriptions,
            services.fraud,
            services.reputation,
        )
    )
    router.include_router(
        build_borrower_router(
            services.lifecycle,
            services.payments,
            services.history,
            services.reputation,
            services.users,
        )
    )
    router.include_router(build_plan_router(services.subscriptions))
    router.include_router(build_history_router(services.history))
    router.include_router(
        build_notification_router(services.notifier, services.triggers, services.payments, services.fraud)
    )

    @router.get("/", summary="Root endpoint")
    def read_root() -> dict:
        """Return a basic message confirming service availability."""
        return {"message": "{0} is running".format(settings.app_name)}

    @router.get("/health", summary="Health check")
    def health_check() -> dict:
        """Return service health status for probes and monitors."""
        return {
            "status": "ok",
            "store": "firestore" if isinstance(services.store, FirebaseClientManager) else "memory",
            "gateway_configured": bool(services.gateway and services.gateway.is_configured),
        }

    return router
