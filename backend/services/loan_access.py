"""Loan ownership checks, versioned saves, and response shaping shared by loan services."""

import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError

from models.exceptions import AccessDeniedError, ModelValidationError
from models.loans import LoanModel
from models.repositories import LoanRepository
from models.users import UserModel


logger = logging.getLogger(__name__)

BORROWER_HIDDEN_FIELDS = ("confirmation_code", "confirmation_expires_at", "version", "is_deleted")


def ensure_lender_owns(loan: LoanModel, lender_id: str) -> LoanModel:
    """Raise 403 unless `lender_id` created the loan."""
    if loan.lender_id != lender_id:
        raise AccessDeniedError("You are not authorized to manage this loan")
    return loan


def ensure_borrower_matches(loan: LoanModel, borrower: UserModel) -> LoanModel:
    """Authorize a borrower by ID-number equality, since `borrower_id` may be unresolved."""
    if not borrower.id_number or borrower.id_number != loan.id_number:
        raise AccessDeniedError("This loan is not issued against your ID number")
    return loan


def save_loan(repository: LoanRepository, loan: LoanModel) -> LoanModel:
    """Bump the version and write; a concurrent writer surfaces as VersionConflictError."""
    loan.version += 1
    return repository.update(loan)


def validation_error_from(exc: ValidationError) -> ModelValidationError:
    """Flatten pydantic errors into one field-level message."""
    parts = []
    for item in exc.errors():
        location = ".".join(str(part) for part in item.get("loc", ()) if part != "__root__")
        message = item.get("msg", "invalid value")
        parts.append("{0}: {1}".format(location, message) if location else message)
    return ModelValidationError("; ".join(parts) or "Invalid request data")


def loan_view(loan: LoanModel, borrower: Optional[UserModel] = None, for_borrower: bool = False) -> Dict[str, Any]:
    """Serialize a loan for API responses, hiding confirmation data from borrowers."""
    payload = loan.to_response()
    if for_borrower:
        for key in BORROWER_HIDDEN_FIELDS:
            payload.pop(key, None)
    payload["borrower_registered"] = borrower is not None
    return payload


def pending_summary(loan: LoanModel) -> Dict[str, Any]:
    pending = loan.pending_payments()
    return {
        "count": len(pending),
        "amount": sum(entry.amount for entry in pending),
    }
