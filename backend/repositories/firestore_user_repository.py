"""Firestore implementation of the user repository."""

import logging
from typing import List, Optional

from models.enums import UserRole
from models.repositories import UserRepository
from models.users import UserModel

from .base_repository import FirestoreDocumentRepository


logger = logging.getLogger(__name__)


class FirestoreUserRepository(FirestoreDocumentRepository, UserRepository):
    """Persist and fetch user documents keyed by `user_id`."""

    model_cls = UserModel
    id_field = "user_id"
    entity_name = "User"

    def find_by_email(self, email: str) -> Optional[UserModel]:
        matches = self._query(filters=[("email", "==", email.strip().lower())])
        return matches[0] if matches else None

    def find_borrower_by_id_number(self, id_number: str) -> Optional[UserModel]:
        """Resolve the weak borrower reference of a loan.

        Returns None when nobody registered that ID number as a borrower yet.
        """
        matches = self._query(
            filters=[
                ("id_number", "==", id_number),
                ("role", "==", UserRole.BORROWER.value),
            ]
        )
        if len(matches) > 1:
            logger.warning("Multiple borrowers share id_number=%s; using the first.", id_number)
        return matches[0] if matches else None

    def list_by_role(self, role: UserRole) -> List[UserModel]:
        return self._query(
            filters=[
                ("role", "==", UserRole.parse(role).value),
                ("is_active", "==", True),
            ]
        )
