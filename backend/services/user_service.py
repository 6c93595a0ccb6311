"""User profiles, device-token registration, and the borrower directory."""

import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from common.pagination import paginate
from models.enums import UserRole
from models.exceptions import ModelNotFoundError, ModelValidationError, StateConflictError
from models.repositories import LoanRepository, UserRepository
from models.users import UserModel

from .loan_access import validation_error_from
from .notification_service import NotificationService


logger = logging.getLogger(__name__)

PROFILE_EDITABLE_FIELDS = frozenset({"user_name", "email", "mobile_number", "address"})


class UserService:
    """Creates profile records for principals issued by the identity provider."""

    def __init__(
        self,
        user_repository: UserRepository,
        loan_repository: LoanRepository,
        notifier: NotificationService,
    ) -> None:
        self._users = user_repository
        self._loans = loan_repository
        self._notifier = notifier

    def register_user(
        self,
        user_id: str,
        email: str,
        user_name: str,
        role: Any,
        mobile_number: Optional[str] = None,
        address: Optional[str] = None,
        id_number: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a profile. Emails are unique; borrower ID numbers are unique too."""
        if self._users.find_by_id(user_id) is not None:
            raise StateConflictError("User is already registered", code="USER_EXISTS")
        try:
            user = UserModel(
                user_id=user_id,
                email=email,
                user_name=user_name,
                role=role,
                mobile_number=mobile_number,
                address=address,
                id_number=id_number,
            )
        except ValidationError as exc:
            raise validation_error_from(exc)

        if self._users.find_by_email(user.email) is not None:
            raise StateConflictError("Email is already registered", code="EMAIL_EXISTS")
        if user.role == UserRole.BORROWER and self._users.find_borrower_by_id_number(user.id_number) is not None:
            raise StateConflictError("ID number is already registered", code="ID_NUMBER_EXISTS")

        created = self._users.create(user)
        logger.info("User registered user_id=%s role=%s", created.user_id, created.role.value)
        return created.to_response()

    def get_user(self, user_id: str) -> Dict[str, Any]:
        return self._users.get_by_id(user_id).to_response()

    def update_profile(self, user_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply profile edits; a borrower's new mobile number is announced to their lenders."""
        current = self._users.get_by_id(user_id)
        updates = {key: value for key, value in (changes or {}).items() if value is not None}
        unknown = sorted(set(updates) - PROFILE_EDITABLE_FIELDS)
        if unknown:
            raise ModelValidationError("Fields cannot be edited: {0}".format(", ".join(unknown)))
        if not updates:
            raise ModelValidationError("No editable fields supplied")
        payload = current.model_dump()
        payload.update(updates)
        try:
            edited = UserModel.model_validate(payload)
        except ValidationError as exc:
            raise validation_error_from(exc)

        if edited.email != current.email:
            owner = self._users.find_by_email(edited.email)
            if owner is not None and owner.user_id != user_id:
                raise StateConflictError("Email is already registered", code="EMAIL_EXISTS")

        old_number = current.mobile_number
        edited.version = current.version + 1
        saved = self._users.update(edited)
        logger.info("Profile updated user_id=%s fields=%s", user_id, sorted(updates))

        if saved.mobile_number != old_number and saved.role == UserRole.BORROWER and saved.id_number:
            self._announce_mobile_change(saved, old_number)
        return saved.to_response()

    def _announce_mobile_change(self, borrower: UserModel, old_number: Optional[str]) -> None:
        lender_ids = sorted({loan.lender_id for loan in self._loans.list_by_id_number(borrower.id_number)})
        for lender_id in lender_ids:
            self._notifier.mobile_number_changed(lender_id, borrower.user_name, old_number, borrower.mobile_number)
        logger.info("Mobile number change announced borrower_id=%s lenders=%s", borrower.user_id, len(lender_ids))

    # Borrower directory

    def _borrowers(self) -> List[UserModel]:
        return sorted(self._users.list_by_role(UserRole.BORROWER), key=lambda user: user.created_at, reverse=True)

    def list_borrowers(self, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        items, pagination = paginate(self._borrowers(), page, limit)
        return {"items": [user.to_response() for user in items], "pagination": pagination}

    def get_borrower(self, user_id: str) -> Dict[str, Any]:
        user = self._users.find_by_id(user_id)
        if user is None or user.role != UserRole.BORROWER:
            raise ModelNotFoundError("Borrower not found")
        return user.to_response()

    def search_borrowers(self, query: str, page: Any = 1, limit: Any = 10) -> Dict[str, Any]:
        """Match a name or mobile fragment (case-insensitive) or an exact ID number."""
        term = (query or "").strip()
        if not term:
            raise ModelValidationError("Search query is required")
        needle = term.lower()
        matches = [
            user
            for user in self._borrowers()
            if needle in user.user_name.lower()
            or user.id_number == term
            or (user.mobile_number and needle in user.mobile_number)
        ]
        items, pagination = paginate(matches, page, limit)
        return {"items": [user.to_response() for user in items], "pagination": pagination}

    def add_device_token(self, user_id: str, token: str) -> Dict[str, Any]:
        token = (token or "").strip()
        if not token:
            raise ModelValidationError("device token is required")
        user = self._users.get_by_id(user_id)
        if token in user.device_tokens:
            return {"user_id": user_id, "device_tokens": list(user.device_tokens)}
        user.device_tokens = [*user.device_tokens, token]
        user.version += 1
        saved = self._users.update(user)
        return {"user_id": user_id, "device_tokens": list(saved.device_tokens)}

    def remove_device_token(self, user_id: str, token: str) -> Dict[str, Any]:
        user = self._users.get_by_id(user_id)
        if token not in user.device_tokens:
            return {"user_id": user_id, "device_tokens": list(user.device_tokens)}
        user.device_tokens = [item for item in user.device_tokens if item != token]
        user.version += 1
        saved = self._users.update(user)
        return {"user_id": user_id, "device_tokens": list(saved.device_tokens)}
