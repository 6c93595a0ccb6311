"""Outbound email over SMTP. Delivery is best-effort and never raises."""

from email.message import EmailMessage
import logging
import smtplib
from typing import Optional


logger = logging.getLogger(__name__)


class Mailer:
    """Small SMTP sender for transactional messages."""

    def __init__(
        self,
        enabled: bool,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_address: str = "no-reply@loanledger.local",
        timeout_sec: int = 15,
    ) -> None:
        self._enabled = bool(enabled)
        self._host = (host or "").strip()
        self._port = int(port)
        self._username = username
        self._password = password
        self._from_address = from_address
        self._timeout_sec = timeout_sec

    @property
    def is_configured(self) -> bool:
        return self._enabled and bool(self._host)

    def send(self, to_address: str, subject: str, body: str) -> bool:
        """Send one plain-text message. Returns False when skipped or failed."""
        if not self.is_configured:
            logger.info("Mail disabled; skipped message to=%s subject=%s", to_address, subject)
            return False
        message = EmailMessage()
        message["From"] = self._from_address
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(body)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout_sec) as client:
                client.starttls()
                if self._username and self._password:
                    client.login(self._username, self._password)
                client.send_message(message)
            logger.info("Mail sent to=%s subject=%s", to_address, subject)
            return True
        except (smtplib.SMTPException, OSError):
            logger.exception("Mail delivery failed to=%s subject=%s", to_address, subject)
            return False

    def send_password_reset_code(self, to_address: str, code: str, ttl_minutes: int) -> bool:
        body = (
            "Your password reset code is {0}.\n\n"
            "It expires in {1} minutes. If you did not request a reset, ignore this email."
        ).format(code, ttl_minutes)
        return self.send(to_address, "Password Reset Code", body)
