"""Document-store repositories."""

from .firestore_loan_repository import FirestoreLoanRepository
from .firestore_plan_repository import FirestorePlanRepository
from .firestore_user_repository import FirestoreUserRepository

__all__ = [
    "FirestoreLoanRepository",
    "FirestorePlanRepository",
    "FirestoreUserRepository",
]
