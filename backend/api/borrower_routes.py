"""Borrower API: loan decisions, repayments, and own-history views."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from models.enums import AcceptanceStatus, PaymentMode, PaymentType, UserRole
from models.repositories import UserRepository
from services.history_service import HistoryService, LoanFilters
from services.loan_lifecycle_service import LoanLifecycleService
from services.payment_service import PaymentService
from services.reputation_scoring import ReputationService

from .dependencies import Principal, loan_filters, require_roles
from .responses import respond


logger = logging.getLogger(__name__)


class AcceptanceRequest(BaseModel):
    decision: AcceptanceStatus


class SubmitPaymentRequest(BaseModel):
    """Request payload for a borrower repayment."""

    amount: int = Field(..., gt=0)
    payment_mode: PaymentMode
    payment_type: PaymentType
    transaction_id: Optional[str] = None
    payment_proof: Optional[str] = None
    notes: Optional[str] = None


def build_borrower_router(
    lifecycle: LoanLifecycleService,
    payments: PaymentService,
    history: HistoryService,
    reputation: ReputationService,
    user_repository: UserRepository,
) -> APIRouter:
    """Build routes available to borrowers."""
    router = APIRouter(prefix="/borrower", tags=["borrower"])
    borrower_only = require_roles(UserRole.BORROWER)

    @router.get("/loans", summary="My loans")
    def my_loans(
        page: int = Query(default=1),
        limit: int = Query(default=10),
        filters: LoanFilters = Depends(loan_filters),
        principal: Principal = Depends(borrower_only),
    ) -> JSONResponse:
        return respond(
            lambda: history.get_borrower_loans(principal.user_id, filters, page, limit),
            "Borrower loans retrieved successfully",
            context="my_loans",
        )

    @router.post("/loans/{loan_id}/acceptance", summary="Accept or reject a loan offer")
    def record_acceptance(
        loan_id: str,
        payload: AcceptanceRequest,
        principal: Principal = Depends(borrower_only),
    ) -> JSONResponse:
        return respond(
            lambda: lifecycle.record_borrower_acceptance(principal.user_id, loan_id, payload.decision.value),
            "Loan {0} successfully".format(payload.decision.value),
            context="record_acceptance loan_id={0}".format(loan_id),
        )

    @router.post("/loans/{loan_id}/payments", summary="Submit a payment")
    def submit_payment(
        loan_id: str,
        payload: SubmitPaymentRequest,
        principal: Principal = Depends(borrower_only),
    ) -> JSONResponse:
        return respond(
            lambda: payments.submit_payment(
                borrower_id=principal.user_id,
                loan_id=loan_id,
                amount=payload.amount,
                payment_mode=payload.payment_mode.value,
                payment_type=payload.payment_type.value,
                transaction_id=payload.transaction_id,
                payment_proof=payload.payment_proof,
                notes=payload.notes,
            ),
            "Payment submitted and awaiting lender confirmation",
            status_code=status.HTTP_201_CREATED,
            context="submit_payment loan_id={0}".format(loan_id),
        )

    @router.get("/loans/{loan_id}/payments", summary="Payment history of one loan")
    def payment_history(loan_id: str, principal: Principal = Depends(borrower_only)) -> JSONResponse:
        return respond(
            lambda: payments.get_payment_history(principal.user_id, loan_id),
            "Payment history fetched successfully",
            context="payment_history loan_id={0}".format(loan_id),
        )

    @router.get("/reputation", summary="Own reputation score")
    def own_reputation(principal: Principal = Depends(borrower_only)) -> JSONResponse:
        def _load() -> dict:
            borrower = user_repository.get_by_id(principal.user_id)
            return reputation.get_borrower_reputation(borrower.id_number or "")

        return respond(_load, "Reputation score fetched successfully", context="own_reputation")

    return router
