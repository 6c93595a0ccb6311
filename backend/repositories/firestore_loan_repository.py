"""Firestore implementation of the loan repository."""

from typing import List

from models.enums import AcceptanceStatus
from models.loans import LoanModel
from models.repositories import LoanRepository

from .base_repository import FirestoreDocumentRepository


class FirestoreLoanRepository(FirestoreDocumentRepository, LoanRepository):
    """Persist and fetch loan documents keyed by `loan_id`."""

    model_cls = LoanModel
    id_field = "loan_id"
    entity_name = "Loan"

    def list_all(self) -> List[LoanModel]:
        return self._query()

    def list_by_lender(self, lender_id: str) -> List[LoanModel]:
        return self._query(filters=[("lender_id", "==", lender_id)])

    def list_by_id_number(self, id_number: str, accepted_only: bool = False) -> List[LoanModel]:
        filters = [("id_number", "==", id_number)]
        if accepted_only:
            filters.append(("borrower_acceptance", "==", AcceptanceStatus.ACCEPTED.value))
        return self._query(filters=filters)

    def list_confirmed_accepted(self) -> List[LoanModel]:
        return self._query(
            filters=[
                ("loan_confirmed", "==", True),
                ("borrower_acceptance", "==", AcceptanceStatus.ACCEPTED.value),
            ]
        )
