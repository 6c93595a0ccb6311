"""Password reset codes kept in a TTL document collection keyed by email.

Codes live in the document store rather than process memory, so restarts
and multiple instances see the same in-flight resets. Changing the password
itself belongs to the identity provider.
"""

from datetime import datetime, timedelta
import logging
import secrets
from typing import Any, Callable, Dict

from common.common_functions import utc_now
from models.exceptions import ModelNotFoundError, ModelValidationError, StateConflictError
from models.notifications import PasswordResetCodeModel
from models.repositories import UserRepository

from .mailer import Mailer


logger = logging.getLogger(__name__)

MAX_VERIFY_ATTEMPTS = 5


def generate_reset_code() -> str:
    """Return a random 6-digit code."""
    return "{0:06d}".format(secrets.randbelow(1000000))


class PasswordResetService:
    """Issues, verifies, and consumes short-lived reset codes."""

    def __init__(
        self,
        store: Any,
        user_repository: UserRepository,
        mailer: Mailer,
        collection_name: str = "password_reset_codes",
        ttl_minutes: int = 10,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._store = store
        self._users = user_repository
        self._mailer = mailer
        self._collection_name = collection_name
        self._ttl_minutes = ttl_minutes
        self._clock = clock

    @staticmethod
    def _key(email: str) -> str:
        normalized = (email or "").strip().lower()
        if "@" not in normalized:
            raise ModelValidationError("A valid email is required")
        return normalized

    def request_code(self, email: str) -> Dict[str, Any]:
        """Store a fresh code for a registered email and mail it out."""
        key = self._key(email)
        if self._users.find_by_email(key) is None:
            raise ModelNotFoundError("No account is registered with this email")
        now = self._clock()
        record = PasswordResetCodeModel(
            id=key,
            email=key,
            code=generate_reset_code(),
            expires_at=now + timedelta(minutes=self._ttl_minutes),
            created_at=now,
            updated_at=now,
        )
        self._store.set_document(
            collection_name=self._collection_name,
            document_id=key,
            payload=record.to_firestore(),
            merge=False,
        )
        self._mailer.send_password_reset_code(key, record.code, self._ttl_minutes)
        logger.info("Password reset code issued email=%s", key)
        return {"email": key, "expires_at": record.expires_at.isoformat()}

    def verify_code(self, email: str, code: str) -> Dict[str, Any]:
        """Check a code and consume it on success.

        Raises:
            StateConflictError: CODE_EXPIRED, INVALID_CODE or TOO_MANY_ATTEMPTS.
        """
        key = self._key(email)
        payload = self._store.get_document(self._collection_name, key)
        if payload is None:
            raise StateConflictError("No reset code was requested for this email", code="INVALID_CODE")
        record = PasswordResetCodeModel.from_firestore(payload, doc_id=key)

        if self._clock() > record.expires_at:
            self._store.delete_document(self._collection_name, key)
            raise StateConflictError("Reset code has expired", code="CODE_EXPIRED")
        if str(code or "").strip() != record.code:
            record.attempts += 1
            if record.attempts >= MAX_VERIFY_ATTEMPTS:
                self._store.delete_document(self._collection_name, key)
                raise StateConflictError("Too many invalid attempts; request a new code", code="TOO_MANY_ATTEMPTS")
            self._store.update_document(self._collection_name, key, {"attempts": record.attempts})
            raise StateConflictError("Invalid reset code", code="INVALID_CODE")

        self._store.delete_document(self._collection_name, key)
        logger.info("Password reset code verified email=%s", key)
        return {"email": key, "verified": True}
