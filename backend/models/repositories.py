"""Repository interfaces for datastore-agnostic model access."""

from abc import ABC, abstractmethod
from typing import List, Optional

from .loans import LoanModel
from .plans import PlanModel
from .users import UserModel


class BaseRepository(ABC):
    """Common contract for CRUD operations."""

    @abstractmethod
    def create(self, model):
        """Persist a new model."""

    @abstractmethod
    def get_by_id(self, model_id: str):
        """Return model by identifier."""

    @abstractmethod
    def find_by_id(self, model_id: str):
        """Return model by identifier, or None when missing."""

    @abstractmethod
    def update(self, model):
        """Update existing model with optimistic version check."""

    @abstractmethod
    def delete(self, model_id: str) -> None:
        """Hard delete a model."""


class UserRepository(BaseRepository):
    """User data access abstraction."""

    @abstractmethod
    def create(self, model: UserModel) -> UserModel:
        """Persist a new user model."""

    @abstractmethod
    def get_by_id(self, model_id: str) -> UserModel:
        """Fetch a user by identifier.

        Raises:
            ModelNotFoundError: If user does not exist.
        """

    @abstractmethod
    def update(self, model: UserModel) -> UserModel:
        """Update user document.

        Raises:
            ModelNotFoundError: If user does not exist.
            VersionConflictError: If version does not follow the persisted document.
        """

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[UserModel]:
        """Return the user registered with `email`, if any."""

    @abstractmethod
    def find_borrower_by_id_number(self, id_number: str) -> Optional[UserModel]:
        """Return the borrower registered with `id_number`, if any."""

    @abstractmethod
    def list_by_role(self, role) -> List[UserModel]:
        """Return every active user holding `role`."""


class LoanRepository(BaseRepository):
    """Loan data access abstraction."""

    @abstractmethod
    def create(self, model: LoanModel) -> LoanModel:
        """Persist a new loan model."""

    @abstractmethod
    def get_by_id(self, model_id: str) -> LoanModel:
        """Fetch a loan by identifier.

        Raises:
            ModelNotFoundError: If loan does not exist.
        """

    @abstractmethod
    def update(self, model: LoanModel) -> LoanModel:
        """Update loan document.

        Raises:
            ModelNotFoundError: If loan does not exist.
            VersionConflictError: If version does not follow the persisted document.
        """

    @abstractmethod
    def list_all(self) -> List[LoanModel]:
        """Return every loan."""

    @abstractmethod
    def list_by_lender(self, lender_id: str) -> List[LoanModel]:
        """Return loans originated by one lender."""

    @abstractmethod
    def list_by_id_number(self, id_number: str, accepted_only: bool = False) -> List[LoanModel]:
        """Return loans issued against one borrower ID number."""

    @abstractmethod
    def list_confirmed_accepted(self) -> List[LoanModel]:
        """Return loans that are confirmed and accepted."""


class PlanRepository(BaseRepository):
    """Subscription plan data access abstraction."""

    @abstractmethod
    def create(self, model: PlanModel) -> PlanModel:
        """Persist a new plan."""

    @abstractmethod
    def get_by_id(self, model_id: str) -> PlanModel:
        """Fetch a plan by identifier.

        Raises:
            ModelNotFoundError: If plan does not exist.
        """

    @abstractmethod
    def update(self, model: PlanModel) -> PlanModel:
        """Update plan document."""

    @abstractmethod
    def list_all(self, active_only: bool = False) -> List[PlanModel]:
        """Return plans, optionally only active ones."""
