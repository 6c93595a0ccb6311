"""Subscription plans: admin catalog management, lender purchase, and the loan-creation gate."""

from datetime import datetime
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from common.common_functions import add_months, days_until, new_id, utc_now
from common.pagination import paginate
from models.enums import UserRole
from models.exceptions import (
    AccessDeniedError,
    ModelNotFoundError,
    ModelValidationError,
    PaymentVerificationError,
    StateConflictError,
)
from models.plans import PlanModel
from models.repositories import PlanRepository, UserRepository
from models.users import UserModel

from .loan_access import validation_error_from
from .razorpay_service import RazorpayService


logger = logging.getLogger(__name__)

PLAN_EDITABLE_FIELDS = frozenset(
    {"plan_name", "description", "duration", "price_monthly", "plan_features", "is_active"}
)


class SubscriptionService:
    """Plan catalog plus the one-active-plan-at-a-time purchase flow."""

    def __init__(
        self,
        plan_repository: PlanRepository,
        user_repository: UserRepository,
        gateway: Optional[RazorpayService] = None,
        currency: str = "INR",
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._plans = plan_repository
        self._users = user_repository
        self._gateway = gateway
        self._currency = currency
        self._clock = clock

    # Plan catalog

    def _ensure_unique(self, candidate: PlanModel) -> None:
        key = candidate.identity_key()
        for plan in self._plans.list_all():
            if plan.plan_id != candidate.plan_id and plan.identity_key() == key:
                raise StateConflictError(
                    "A plan with the same name, price and features already exists",
                    code="PLAN_EXISTS",
                )

    def create_plan(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        now = self._clock()
        payload = {key: value for key, value in (fields or {}).items() if key in PLAN_EDITABLE_FIELDS}
        try:
            plan = PlanModel(plan_id=new_id("plan"), created_at=now, updated_at=now, **payload)
        except ValidationError as exc:
            raise validation_error_from(exc)
        self._ensure_unique(plan)
        created = self._plans.create(plan)
        logger.info("Plan created plan_id=%s name=%s", created.plan_id, created.plan_name)
        return created.to_response()

    def edit_plan(self, plan_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        current = self._plans.get_by_id(plan_id)
        updates = {key: value for key, value in (changes or {}).items() if value is not None}
        unknown = sorted(set(updates) - PLAN_EDITABLE_FIELDS)
        if unknown:
            raise ModelValidationError("Fields cannot be edited: {0}".format(", ".join(unknown)))
        if not updates:
            raise ModelValidationError("No editable fields supplied")
        payload = current.model_dump()
        payload.update(updates)
        try:
            edited = PlanModel.model_validate(payload)
        except ValidationError as exc:
            raise validation_error_from(exc)
        self._ensure_unique(edited)
        edited.version = current.version + 1
        saved = self._plans.update(edited)
        logger.info("Plan edited plan_id=%s fields=%s", plan_id, sorted(updates))
        return saved.to_response()

    def get_plan(self, plan_id: str) -> Dict[str, Any]:
        return self._plans.get_by_id(plan_id).to_response()

    def list_plans(self, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        items, pagination = paginate(self._plans.list_all(), page, limit)
        return {"items": [plan.to_response() for plan in items], "pagination": pagination}

    def list_active_plans(self) -> List[Dict[str, Any]]:
        return [plan.to_response() for plan in self._plans.list_all(active_only=True)]

    # Purchase flow

    def _load_lender(self, lender_id: str) -> UserModel:
        lender = self._users.get_by_id(lender_id)
        if lender.role != UserRole.LENDER:
            raise AccessDeniedError("Only lenders can purchase plans")
        return lender

    def _load_purchasable_plan(self, plan_id: str) -> PlanModel:
        plan = self._plans.get_by_id(plan_id)
        if not plan.is_active:
            raise StateConflictError("Plan is not available for purchase", code="PLAN_INACTIVE")
        return plan

    def _ensure_no_active_plan(self, lender: UserModel, now: datetime) -> None:
        if lender.has_active_plan(now):
            raise StateConflictError(
                "You already have an active plan until {0}".format(lender.plan_expiry_date.isoformat()),
                code="PLAN_ALREADY_ACTIVE",
            )

    def _require_gateway(self) -> RazorpayService:
        if self._gateway is None or not self._gateway.is_configured:
            raise StateConflictError("Payment gateway is not configured", code="GATEWAY_UNAVAILABLE")
        return self._gateway

    def create_plan_order(self, lender_id: str, plan_id: str) -> Dict[str, Any]:
        """Open a gateway order for the plan's monthly price."""
        lender = self._load_lender(lender_id)
        plan = self._load_purchasable_plan(plan_id)
        self._ensure_no_active_plan(lender, self._clock())
        gateway = self._require_gateway()

        order = gateway.create_order(
            amount_minor=plan.price_monthly * 100,
            currency=self._currency,
            receipt="plan_{0}".format(new_id("rcpt")[5:]),
            notes={"plan_id": plan.plan_id, "lender_id": lender_id},
        )
        lender.pending_plan_order_id = order.get("id")
        lender.pending_plan_id = plan.plan_id
        lender.version += 1
        self._users.update(lender)
        logger.info("Plan order created lender_id=%s plan_id=%s order_id=%s", lender_id, plan_id, order.get("id"))
        return {
            "order_id": order.get("id"),
            "amount": order.get("amount", plan.price_monthly * 100),
            "currency": order.get("currency", self._currency),
            "key_id": gateway.public_key_id,
            "plan": plan.to_response(),
        }

    def verify_plan_payment(
        self,
        lender_id: str,
        plan_id: str,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> Dict[str, Any]:
        """Check the gateway signature and activate the plan on the lender."""
        if not (order_id and payment_id and signature):
            raise ModelValidationError("order_id, payment_id and signature are required")
        lender = self._load_lender(lender_id)
        if lender.pending_plan_order_id != order_id or lender.pending_plan_id != plan_id:
            logger.warning(
                "Plan order mismatch lender_id=%s order_id=%s plan_id=%s",
                lender_id,
                order_id,
                plan_id,
            )
            raise PaymentVerificationError(
                "Order does not match the plan ordered by this lender",
                code="ORDER_MISMATCH",
            )
        plan = self._load_purchasable_plan(plan_id)
        now = self._clock()
        self._ensure_no_active_plan(lender, now)
        gateway = self._require_gateway()
        if not gateway.verify_payment_signature(order_id, payment_id, signature):
            logger.warning("Plan payment signature mismatch lender_id=%s order_id=%s", lender_id, order_id)
            raise PaymentVerificationError("Payment verification failed")

        lender.current_plan_id = plan.plan_id
        lender.plan_purchase_date = now
        lender.plan_expiry_date = add_months(now, plan.duration.months)
        lender.plan_order_id = order_id
        lender.plan_payment_id = payment_id
        lender.pending_plan_order_id = None
        lender.pending_plan_id = None
        lender.version += 1
        saved = self._users.update(lender)
        logger.info(
            "Plan activated lender_id=%s plan_id=%s expires=%s",
            lender_id,
            plan_id,
            saved.plan_expiry_date.isoformat(),
        )
        return {
            "plan": plan.to_response(),
            "plan_purchase_date": saved.plan_purchase_date.isoformat(),
            "plan_expiry_date": saved.plan_expiry_date.isoformat(),
            "remaining_days": days_until(saved.plan_expiry_date, now),
        }

    def get_active_plan(self, lender_id: str) -> Dict[str, Any]:
        lender = self._load_lender(lender_id)
        now = self._clock()
        if not lender.has_active_plan(now):
            return {"has_active_plan": False, "plan": None, "remaining_days": 0}
        plan = self._plans.find_by_id(lender.current_plan_id)
        return {
            "has_active_plan": True,
            "plan": plan.to_response() if plan else None,
            "plan_purchase_date": lender.plan_purchase_date.isoformat() if lender.plan_purchase_date else None,
            "plan_expiry_date": lender.plan_expiry_date.isoformat(),
            "remaining_days": days_until(lender.plan_expiry_date, now),
        }

    # Loan creation gate

    def can_create_loan(self, lender_id: str) -> Dict[str, Any]:
        """Report whether the lender holds an unexpired plan.

        An expired plan stays referenced on the user until a new purchase.
        """
        lender = self._users.find_by_id(lender_id)
        if lender is None:
            return {"allowed": False, "reason": "Lender not found", "code": ModelNotFoundError.default_code}
        now = self._clock()
        if not lender.current_plan_id:
            return {"allowed": False, "reason": "No active plan. Please purchase a plan.", "code": "PLAN_REQUIRED"}
        if not lender.has_active_plan(now):
            return {"allowed": False, "reason": "Your plan has expired. Please renew.", "code": "PLAN_REQUIRED"}
        return {
            "allowed": True,
            "reason": None,
            "code": None,
            "remaining_days": days_until(lender.plan_expiry_date, now),
        }

    def ensure_can_create_loan(self, lender_id: str) -> None:
        verdict = self.can_create_loan(lender_id)
        if not verdict["allowed"]:
            raise AccessDeniedError(verdict["reason"], code="PLAN_REQUIRED")
