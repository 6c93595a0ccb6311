"""Shared base models and common type aliases."""

from datetime import datetime, timezone
from enum import Enum
import logging
from typing import Annotated, Any, Dict, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ModelValidationError


logger = logging.getLogger(__name__)

Money = int


def utc_now() -> datetime:
    """Return current UTC timestamp."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


def _to_storage(value: Any) -> Any:
    """Convert enums nested anywhere in a payload into their raw values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {key: _to_storage(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_to_storage(item) for item in value]
    return value


class BaseDocumentModel(BaseModel):
    """Base document schema for Firestore-backed domain models."""

    id: Optional[str] = Field(default=None, description="Document ID.")
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)
    version: int = Field(default=1, ge=1)
    is_deleted: bool = Field(default=False)

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=False,
    )

    def to_firestore(self) -> Dict[str, Any]:
        """Serialize model into a Firestore-ready document dictionary.

        Returns:
            Dict[str, Any]: Serialized model payload.

        Raises:
            ModelValidationError: If serialization fails.
        """
        try:
            return _to_storage(self.model_dump(exclude_none=True))
        except (TypeError, ValueError) as exc:
            logger.exception("Failed to serialize %s with id=%s", self.__class__.__name__, self.id)
            raise ModelValidationError(str(exc))

    def to_response(self) -> Dict[str, Any]:
        """Serialize model into a JSON-compatible dictionary for API responses."""
        return self.model_dump(mode="json")

    @classmethod
    def from_firestore(cls, data: Dict[str, Any], doc_id: Optional[str] = None):
        """Create model instance from Firestore document data.

        Args:
            data: Firestore document payload.
            doc_id: Optional Firestore document id.

        Raises:
            ModelValidationError: If payload parsing fails.
        """
        try:
            payload = dict(data)
            if doc_id is not None:
                payload["id"] = doc_id
            return cls(**payload)
        except ValidationError as exc:
            logger.exception("Failed to parse Firestore payload for %s doc_id=%s", cls.__name__, doc_id)
            raise ModelValidationError(str(exc))
