"""Lender API: loan origination, confirmation, edits, payment decisions, and portfolio views."""

from datetime import datetime
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from models.enums import InstallmentFrequency, PaymentMode, UserRole
from services.fraud_scoring import FraudDetectionService
from services.history_service import HistoryService, LoanFilters
from services.loan_lifecycle_service import LoanLifecycleService
from services.payment_service import PaymentService
from services.reputation_scoring import ReputationService
from services.subscription_service import SubscriptionService

from .dependencies import Principal, loan_filters, require_roles
from .responses import respond


logger = logging.getLogger(__name__)


class CreateLoanRequest(BaseModel):
    """Request payload for a new loan offer."""

    borrower_name: str = Field(..., min_length=2)
    id_number: str = Field(..., pattern=r"^\d{12}$")
    mobile_number: str = Field(..., pattern=r"^\d{10}$")
    address: str = Field(..., min_length=3)
    amount: int = Field(..., gt=0)
    purpose: str = Field(..., min_length=2)
    loan_start_date: datetime
    loan_end_date: datetime
    loan_mode: PaymentMode = Field(default=PaymentMode.CASH)
    installment_count: int = Field(default=1, ge=1)
    installment_frequency: InstallmentFrequency = Field(default=InstallmentFrequency.MONTHLY)


class EditLoanRequest(BaseModel):
    """Partial update of loan terms; omitted fields keep their value."""

    borrower_name: Optional[str] = Field(default=None, min_length=2)
    mobile_number: Optional[str] = Field(default=None, pattern=r"^\d{10}$")
    address: Optional[str] = Field(default=None, min_length=3)
    amount: Optional[int] = Field(default=None, gt=0)
    purpose: Optional[str] = Field(default=None, min_length=2)
    loan_start_date: Optional[datetime] = None
    loan_end_date: Optional[datetime] = None
    loan_mode: Optional[PaymentMode] = None
    installment_count: Optional[int] = Field(default=None, ge=1)
    installment_frequency: Optional[InstallmentFrequency] = None


class VerifyCodeRequest(BaseModel):
    code: str = Field(..., min_length=1)


class ConfirmPaymentRequest(BaseModel):
    notes: Optional[str] = None


class RejectPaymentRequest(BaseModel):
    reason: str = Field(..., min_length=1)


def build_lender_router(
    lifecycle: LoanLifecycleService,
    payments: PaymentService,
    history: HistoryService,
    subscriptions: SubscriptionService,
    fraud: FraudDetectionService,
    reputation: ReputationService,
) -> APIRouter:
    """Build routes available to lenders."""
    router = APIRouter(prefix="/lender", tags=["lender"])
    lender_only = require_roles(UserRole.LENDER)

    def plan_gate(principal: Principal = Depends(lender_only)) -> Principal:
        """Loan creation needs an unexpired plan."""
        subscriptions.ensure_can_create_loan(principal.user_id)
        return principal

    @router.post("/loans", summary="Create a loan offer")
    def create_loan(payload: CreateLoanRequest, principal: Principal = Depends(plan_gate)) -> JSONResponse:
        return respond(
            lambda: lifecycle.create_loan(
                lender_id=principal.user_id,
                borrower_name=payload.borrower_name,
                id_number=payload.id_number,
                mobile_number=payload.mobile_number,
                address=payload.address,
                amount=payload.amount,
                purpose=payload.purpose,
                loan_start_date=payload.loan_start_date,
                loan_end_date=payload.loan_end_date,
                loan_mode=payload.loan_mode.value,
                installment_count=payload.installment_count,
                installment_frequency=payload.installment_frequency.value,
            ),
            "Loan created successfully",
            status_code=status.HTTP_201_CREATED,
            context="create_loan",
        )

    @router.get("/loans", summary="List own loans")
    def list_loans(
        page: int = Query(default=1),
        limit: int = Query(default=10),
        filters: LoanFilters = Depends(loan_filters),
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: history.list_lender_loans(principal.user_id, filters, page, limit),
            "Loans fetched successfully",
            context="list_lender_loans",
        )

    @router.get("/loans/pending-payments", summary="Payments waiting for confirmation")
    def pending_payments(
        page: int = Query(default=1),
        limit: int = Query(default=10),
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: payments.list_pending_payments(principal.user_id, page, limit),
            "Pending payments fetched successfully",
            context="pending_payments",
        )

    @router.get("/statistics", summary="Portfolio statistics")
    def statistics(principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: history.get_lender_statistics(principal.user_id),
            "Statistics fetched successfully",
            context="lender_statistics",
        )

    @router.get("/recent-activities", summary="Recent activity feed")
    def recent_activities(
        limit: int = Query(default=5),
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: history.get_recent_activities(principal.user_id, limit),
            "Recent activities fetched successfully",
            context="recent_activities",
        )

    @router.get("/loan-stats", summary="Loan stats for one borrower ID number")
    def loan_stats(
        id_number: str = Query(..., pattern=r"^\d{12}$"),
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: history.get_loan_stats_by_id_number(principal.user_id, id_number),
            "Loan stats fetched successfully",
            context="loan_stats",
        )

    @router.get("/loans/{loan_id}", summary="Loan detail")
    def get_loan(loan_id: str, principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: lifecycle.get_loan_for_lender(principal.user_id, loan_id),
            "Loan fetched successfully",
            context="get_loan loan_id={0}".format(loan_id),
        )

    @router.post("/loans/{loan_id}/verify-code", summary="Confirm a loan with its code")
    def verify_code(
        loan_id: str,
        payload: VerifyCodeRequest,
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: lifecycle.verify_confirmation_code(principal.user_id, loan_id, payload.code),
            "Loan confirmed successfully",
            context="verify_code loan_id={0}".format(loan_id),
        )

    @router.post("/loans/{loan_id}/resend-code", summary="Issue a new confirmation code")
    def resend_code(loan_id: str, principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: lifecycle.resend_confirmation_code(principal.user_id, loan_id),
            "Confirmation code sent",
            context="resend_code loan_id={0}".format(loan_id),
        )

    @router.patch("/loans/{loan_id}", summary="Edit loan terms")
    def edit_loan(
        loan_id: str,
        payload: EditLoanRequest,
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: lifecycle.edit_loan_terms(principal.user_id, loan_id, payload.model_dump(exclude_none=True)),
            "Loan updated successfully",
            context="edit_loan loan_id={0}".format(loan_id),
        )

    @router.delete("/loans/{loan_id}", summary="Delete a loan")
    def delete_loan(loan_id: str, principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: lifecycle.delete_loan(principal.user_id, loan_id),
            "Loan deleted successfully",
            context="delete_loan loan_id={0}".format(loan_id),
        )

    @router.post("/loans/{loan_id}/payments/{payment_id}/confirm", summary="Confirm a submitted payment")
    def confirm_payment(
        loan_id: str,
        payment_id: str,
        payload: Optional[ConfirmPaymentRequest] = None,
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        notes = payload.notes if payload else None
        return respond(
            lambda: payments.confirm_payment(principal.user_id, loan_id, payment_id, notes),
            "Payment confirmed successfully",
            context="confirm_payment loan_id={0} payment_id={1}".format(loan_id, payment_id),
        )

    @router.post("/loans/{loan_id}/payments/{payment_id}/reject", summary="Reject a submitted payment")
    def reject_payment(
        loan_id: str,
        payment_id: str,
        payload: RejectPaymentRequest,
        principal: Principal = Depends(lender_only),
    ) -> JSONResponse:
        return respond(
            lambda: payments.reject_payment(principal.user_id, loan_id, payment_id, payload.reason),
            "Payment rejected successfully",
            context="reject_payment loan_id={0} payment_id={1}".format(loan_id, payment_id),
        )

    @router.get("/borrowers/{id_number}/fraud", summary="Borrower fraud assessment")
    def borrower_fraud(id_number: str, principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: fraud.check_id_number(id_number),
            "Fraud assessment completed",
            context="borrower_fraud",
        )

    @router.get("/borrowers/{id_number}/reputation", summary="Borrower reputation score")
    def borrower_reputation(id_number: str, principal: Principal = Depends(lender_only)) -> JSONResponse:
        return respond(
            lambda: reputation.get_borrower_reputation(id_number),
            "Reputation score fetched successfully",
            context="borrower_reputation",
        )

    return router
