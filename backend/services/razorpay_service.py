"""Razorpay orders for online disbursements and plan purchases, plus checkout signature checks."""

import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional
from urllib import error, request


logger = logging.getLogger(__name__)

KEY_PREFIXES = {"rzp_test_": "test", "rzp_live_": "live"}


class RazorpayService:
    """Small REST client: the ledger only opens orders and verifies checkout signatures."""

    def __init__(
        self,
        enabled: bool,
        key_id: Optional[str],
        key_secret: Optional[str],
        api_base_url: str,
        timeout_sec: int = 15,
    ) -> None:
        self._enabled = bool(enabled)
        self._key_id = (key_id or "").strip()
        self._key_secret = (key_secret or "").strip()
        self._api_base_url = api_base_url.rstrip("/")
        self._timeout_sec = max(1, int(timeout_sec))

    @property
    def is_configured(self) -> bool:
        """True when enabled in config and both credentials are present."""
        return self._enabled and bool(self._key_id) and bool(self._key_secret)

    @property
    def key_mode(self) -> str:
        for prefix, mode in KEY_PREFIXES.items():
            if self._key_id.startswith(prefix):
                return mode
        return "unknown"

    @property
    def key_id_masked(self) -> str:
        """Key id safe for logs: first eight and last four characters."""
        if len(self._key_id) <= 8:
            return self._key_id[:2] + "***" if self._key_id else ""
        return "{0}***{1}".format(self._key_id[:8], self._key_id[-4:])

    @property
    def public_key_id(self) -> str:
        """Key id handed to the checkout widget."""
        return self._key_id

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST JSON with basic auth and decode the JSON reply.

        Raises:
            RuntimeError: If the client is not configured or Razorpay refuses the call.
        """
        if not self.is_configured:
            raise RuntimeError("Razorpay is not configured. Check razorpay.enabled/key_id/key_secret.")

        credentials = base64.b64encode("{0}:{1}".format(self._key_id, self._key_secret).encode("utf-8"))
        req = request.Request(
            url=self._api_base_url + path,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={
                "Authorization": "Basic " + credentials.decode("utf-8"),
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "LoanLedgerBackend/1.0",
            },
        )
        try:
            with request.urlopen(req, timeout=self._timeout_sec) as response:
                raw = response.read().decode("utf-8")
        except error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            logger.exception("Razorpay rejected path=%s status=%s", path, exc.code)
            raise RuntimeError("Razorpay API error status={0} body={1}".format(exc.code, detail))
        except error.URLError as exc:
            logger.exception("Razorpay unreachable path=%s", path)
            raise RuntimeError("Razorpay network error: {0}".format(exc))
        return json.loads(raw) if raw else {}

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Open an auto-captured order; `amount_minor` is in paise.

        Razorpay caps receipts at 40 characters, so longer ones are cut.
        """
        if amount_minor <= 0:
            raise ValueError("amount_minor must be > 0")
        order = self._post(
            "/v1/orders",
            {
                "amount": int(amount_minor),
                "currency": currency.upper(),
                "receipt": receipt[:40],
                "payment_capture": 1,
                "notes": notes or {},
            },
        )
        logger.info(
            "Razorpay order opened order_id=%s amount_minor=%s receipt=%s",
            order.get("id"),
            amount_minor,
            receipt,
        )
        return order

    def verify_payment_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Compare `signature` with HMAC-SHA256 over ``order_id|payment_id`` keyed by the secret."""
        if not self._key_secret:
            logger.warning("Signature check skipped: no Razorpay key_secret configured.")
            return False
        digest = hmac.new(
            self._key_secret.encode("utf-8"),
            "{0}|{1}".format(order_id, payment_id).encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()
        return hmac.compare_digest(digest, (signature or "").strip())
