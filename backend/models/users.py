"""User domain model for lenders, borrowers, and admins."""

from datetime import datetime
import logging
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .base import BaseDocumentModel, UtcDatetime
from .enums import RiskLevel, UserRole


logger = logging.getLogger(__name__)

MAX_FRAUD_HISTORY = 10


class FraudHistoryEntry(BaseModel):
    """One past fraud assessment kept on the borrower record."""

    score: int = Field(..., ge=0, le=100)
    risk_level: RiskLevel
    flags: List[str] = Field(default_factory=list)
    checked_at: UtcDatetime
    reason: Optional[str] = Field(default=None)


class FraudDetectionSummary(BaseModel):
    """Latest fraud assessment plus a bounded rolling history."""

    score: int = Field(default=0, ge=0, le=100)
    risk_level: RiskLevel = Field(default=RiskLevel.LOW)
    flags: List[str] = Field(default_factory=list)
    last_checked_at: Optional[UtcDatetime] = Field(default=None)
    history: List[FraudHistoryEntry] = Field(default_factory=list)

    @field_validator("history")
    @classmethod
    def _keep_recent_history(cls, value: List[FraudHistoryEntry]) -> List[FraudHistoryEntry]:
        """Keep only the most recent assessments."""
        return list(value)[-MAX_FRAUD_HISTORY:]


class UserModel(BaseDocumentModel):
    """Represents one registered actor of the ledger."""

    user_id: str = Field(..., min_length=3)
    email: str = Field(..., min_length=5)
    user_name: str = Field(..., min_length=2)
    role: UserRole
    mobile_number: Optional[str] = Field(default=None, pattern=r"^\d{10}$")
    address: Optional[str] = Field(default=None)
    id_number: Optional[str] = Field(default=None, pattern=r"^\d{12}$")
    device_tokens: List[str] = Field(default_factory=list)
    is_active: bool = Field(default=True)

    current_plan_id: Optional[str] = Field(default=None)
    plan_purchase_date: Optional[UtcDatetime] = Field(default=None)
    plan_expiry_date: Optional[UtcDatetime] = Field(default=None)
    plan_order_id: Optional[str] = Field(default=None)
    plan_payment_id: Optional[str] = Field(default=None)
    pending_plan_order_id: Optional[str] = Field(default=None)
    pending_plan_id: Optional[str] = Field(default=None)

    fraud_detection: Optional[FraudDetectionSummary] = Field(default=None)

    @field_validator("role", mode="before")
    @classmethod
    def _parse_role(cls, value):
        """Accept role names and legacy numeric tags."""
        return UserRole.parse(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if "@" not in normalized:
            raise ValueError("email must contain '@'")
        return normalized

    @field_validator("device_tokens", mode="before")
    @classmethod
    def _normalize_device_tokens(cls, value: Optional[List[str]]) -> List[str]:
        """Drop blanks and duplicates while keeping registration order."""
        tokens: List[str] = []
        for token in value or []:
            text = str(token).strip()
            if text and text not in tokens:
                tokens.append(text)
        return tokens

    @model_validator(mode="after")
    def _borrower_requires_id_number(self) -> "UserModel":
        if self.role == UserRole.BORROWER and not self.id_number:
            raise ValueError("id_number is required for borrowers")
        return self

    def has_active_plan(self, now: datetime) -> bool:
        """Return whether a purchased plan is still unexpired at `now`."""
        return bool(self.current_plan_id and self.plan_expiry_date and self.plan_expiry_date > now)
