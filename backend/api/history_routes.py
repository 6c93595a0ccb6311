"""Loan history queries with filters and pagination."""

import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from models.enums import UserRole
from models.exceptions import AccessDeniedError
from services.history_service import HistoryService, LoanFilters

from .dependencies import Principal, get_principal, loan_filters, require_roles
from .responses import respond


logger = logging.getLogger(__name__)


def _ensure_admin_or_self(principal: Principal, *user_ids: str) -> None:
    if principal.role == UserRole.ADMIN or principal.user_id in user_ids:
        return
    raise AccessDeniedError("You can only view your own history")


def build_history_router(history: HistoryService) -> APIRouter:
    """Build history routes for admins, lenders, and borrowers."""
    router = APIRouter(prefix="/history", tags=["history"])

    @router.get("/all", summary="Every loan")
    def history_all(
        page: int = Query(default=1),
        limit: int = Query(default=10),
        filters: LoanFilters = Depends(loan_filters),
        principal: Principal = Depends(require_roles(UserRole.ADMIN)),
    ) -> JSONResponse:
        return respond(
            lambda: history.history_all(filters, page, limit),
            "Borrower history fetched successfully",
            context="history_all",
        )

    @router.get("/lender/{lender_id}", summary="Loans issued by one lender")
    def history_by_lender(
        lender_id: str,
        page: int = Query(default=1),
        limit: int = Query(default=10),
        filters: LoanFilters = Depends(loan_filters),
        principal: Principal = Depends(get_principal),
    ) -> JSONResponse:
        def _load() -> dict:
            _ensure_admin_or_self(principal, lender_id)
            return history.history_by_lender(lender_id, filters, page, limit)

        return respond(_load, "Borrower history fetched successfully", context="history_by_lender")

    @router.get("/borrower/{borrower_id}", summary="Loans taken by one borrower")
    def history_by_borrower(
        borrower_id: str,
        page: int = Query(default=1),
        limit: int = Query(default=10),
        filters: LoanFilters = Depends(loan_filters),
        principal: Principal = Depends(get_principal),
    ) -> JSONResponse:
        def _load() -> dict:
            if principal.role != UserRole.LENDER:
                _ensure_admin_or_self(principal, borrower_id)
            return history.history_by_borrower(borrower_id, filters, page, limit)

        return respond(_load, "Borrower history fetched successfully", context="history_by_borrower")

    @router.get("/borrower/{borrower_id}/lender/{lender_id}", summary="Loans between one borrower and one lender")
    def history_by_borrower_and_lender(
        borrower_id: str,
        lender_id: str,
        page: int = Query(default=1),
        limit: int = Query(default=10),
        filters: LoanFilters = Depends(loan_filters),
        principal: Principal = Depends(get_principal),
    ) -> JSONResponse:
        def _load() -> dict:
            _ensure_admin_or_self(principal, borrower_id, lender_id)
            return history.history_by_borrower_and_lender(borrower_id, lender_id, filters, page, limit)

        return respond(_load, "Borrower history fetched successfully", context="history_by_borrower_and_lender")

    return router
