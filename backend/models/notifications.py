"""Notification and password-reset records kept in the document store."""

from typing import Any, Dict, Optional

from pydantic import Field

from .base import BaseDocumentModel, UtcDatetime


class NotificationModel(BaseDocumentModel):
    """A notification emitted for one user."""

    notification_id: str = Field(..., min_length=3)
    user_id: str = Field(..., min_length=3)
    kind: str = Field(..., min_length=2)
    title: str = Field(default="")
    body: str = Field(default="")
    data: Dict[str, Any] = Field(default_factory=dict)
    device_token_count: int = Field(default=0, ge=0)
    delivered: bool = Field(default=False)
    error: Optional[str] = Field(default=None)


class PasswordResetCodeModel(BaseDocumentModel):
    """A short-lived reset code keyed by email."""

    email: str = Field(..., min_length=5)
    code: str = Field(..., pattern=r"^\d{6}$")
    expires_at: UtcDatetime
    attempts: int = Field(default=0, ge=0)
