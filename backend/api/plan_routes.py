"""Plan catalog (admin) and plan purchase (lender) routes."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from models.enums import PlanDuration, UserRole
from models.plans import PlanFeatures
from services.subscription_service import SubscriptionService

from .dependencies import Principal, get_principal, require_roles
from .responses import respond


logger = logging.getLogger(__name__)


class CreatePlanRequest(BaseModel):
    """Request payload for a new subscription plan."""

    plan_name: str = Field(..., min_length=2)
    description: str = Field(default="")
    duration: PlanDuration
    price_monthly: int = Field(..., gt=0)
    plan_features: PlanFeatures = Field(default_factory=PlanFeatures)
    is_active: bool = Field(default=True)


class EditPlanRequest(BaseModel):
    plan_name: Optional[str] = Field(default=None, min_length=2)
    description: Optional[str] = None
    duration: Optional[PlanDuration] = None
    price_monthly: Optional[int] = Field(default=None, gt=0)
    plan_features: Optional[PlanFeatures] = None
    is_active: Optional[bool] = None


class PlanOrderRequest(BaseModel):
    plan_id: str = Field(..., min_length=3)


class PlanPaymentVerifyRequest(BaseModel):
    """Gateway checkout result for a plan purchase."""

    plan_id: str = Field(..., min_length=3)
    order_id: str = Field(..., min_length=3)
    payment_id: str = Field(..., min_length=3)
    signature: str = Field(..., min_length=8)


def build_plan_router(subscriptions: SubscriptionService) -> APIRouter:
    """Build plan catalog and subscription routes."""
    router = APIRouter(tags=["plans"])
    admin_only = require_roles(UserRole.ADMIN)
    lender_only = require_roles(UserRole.LENDER)

    @router.post("/admin/plans", summary="Create plan")
    def create_plan(payload: CreatePlanRequest, principal: Principal = Depends(admin_only)) -> JSONResponse:
        return respond(
            lambda: subscriptions.create_plan(payload.model_dump()),
            "Plan created successfully",
            status_code=status.HTTP_201_CREATED,
            context="create_plan",
        )

    @router.get("/admin/plans", summary="List plans")
    def list_plans(
        page: int = Query(default=1),
        limit: int = Query(default=10),
        principal: Principal = Depends(admin_only),
    ) -> JSONResponse:
        return respond(lambda: subscriptions.list_plans(page, limit), "Plans fetched successfully", context="list_plans")

    @router.get("/admin/plans/{plan_id}", summary="Plan detail")
    def get_plan(plan_id: str, principal: Principal = Depends(admin_only)) -> JSONResponse:
        return respond(lambda: subscriptions.get_plan(plan_id), "Plan fetched successfully", context="get_plan")

    @router.patch("/admin/plans/{plan_id}", summary="Edit plan")
    def edit_plan(plan_id: str, payload: EditPlanRequest, principal: Principal = Depends(admin_only)) -> JSONResponse:
        return respond(
            lambda: subscriptions.edit_plan(plan_id, payload.model_dump(exclude_none=True)),
            "Plan updated successfully",
            context="edit_plan plan_id={0}".format(plan_id),
        )

    @router.get("/plans/active", summary="Plans available for purchase")
    def active_plans(principal: Principal = Depends(get_principal)) -> JSONResponse:
        return respond(subscriptions.list_active_plans, "Active plans fetched successfully", context="active_plans")

    @router.post("/subscriptions/order", summary="Open a plan purchase order")
    def create_order(payload: PlanOrderRequest, principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: subscriptions.create_plan_order(principal.user_id, payload.plan_id),
            "Order created successfully",
            status_code=status.HTTP_201_CREATED,
            context="plan_order",
        )

    @router.post("/subscriptions/verify", summary="Verify a plan payment")
    def verify_payment(
        payload: PlanPaymentVerifyRequest,
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: subscriptions.verify_plan_payment(
                principal.user_id,
                payload.plan_id,
                payload.order_id,
                payload.payment_id,
                payload.signature,
            ),
            "Plan purchased successfully",
            context="plan_verify",
        )

    @router.get("/subscriptions/active", summary="Current plan")
    def active_plan(principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: subscriptions.get_active_plan(principal.user_id),
            "Active plan fetched successfully",
            context="active_plan",
        )

    @router.get("/subscriptions/can-create-loan", summary="Loan creation gate")
    def can_create_loan(principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: subscriptions.can_create_loan(principal.user_id),
            "Subscription checked",
            context="can_create_loan",
        )

    return router
