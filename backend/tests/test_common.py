"""Unit tests for shared helpers, configuration, and gateway signatures."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys
import tempfile
import unittest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from common.common_functions import add_months, as_int, days_until, percentage, whole_days_between
from common.pagination import normalize_page, paginate
from core.config import load_settings
from services.razorpay_service import RazorpayService
from tests.support import GATEWAY_SECRET, sign


class DateHelperTests(unittest.TestCase):
    """Validate calendar and day arithmetic."""

    def test_add_months_clamps_day(self) -> None:
        """Month-end dates clamp to the shorter month."""
        start = datetime(2026, 1, 31, 12, 0, tzinfo=timezone.utc)
        self.assertEqual(add_months(start, 1), datetime(2026, 2, 28, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(add_months(start, 12), datetime(2027, 1, 31, 12, 0, tzinfo=timezone.utc))
        self.assertEqual(add_months(datetime(2027, 11, 30), 3), datetime(2028, 2, 29))

    def test_day_counts(self) -> None:
        """Elapsed days floor; remaining days ceil; both stay non-negative."""
        now = datetime(2026, 1, 15, tzinfo=timezone.utc)
        self.assertEqual(whole_days_between(now - timedelta(days=1, hours=23), now), 1)
        self.assertEqual(whole_days_between(now, now - timedelta(days=3)), 0)
        self.assertEqual(days_until(now + timedelta(days=2, hours=1), now), 3)
        self.assertEqual(days_until(now - timedelta(hours=1), now), 0)
        self.assertEqual(days_until(None, now), 0)

    def test_number_helpers(self) -> None:
        """Conversions fall back to defaults and percentages round."""
        self.assertEqual(as_int("12.7"), 12)
        self.assertEqual(as_int("abc", 5), 5)
        self.assertEqual(percentage(1, 3), 33.33)
        self.assertEqual(percentage(5, 0), 0.0)


class PaginationTests(unittest.TestCase):
    """Validate page slicing."""

    def test_last_partial_page(self) -> None:
        """The final page holds the remainder."""
        items, meta = paginate(list(range(25)), page=3, limit=10)
        self.assertEqual(items, [20, 21, 22, 23, 24])
        self.assertEqual(meta, {"totalDocuments": 25, "currentPage": 3, "totalPages": 3, "limit": 10})

    def test_junk_and_empty_input(self) -> None:
        """Bad page values clamp to one and empty lists have zero pages."""
        self.assertEqual(normalize_page("abc", -4), (1, 1))
        self.assertEqual(normalize_page(None, None), (1, 10))
        items, meta = paginate([], page=1, limit=10)
        self.assertEqual(items, [])
        self.assertEqual(meta["totalPages"], 0)


class RazorpaySignatureTests(unittest.TestCase):
    """Validate checkout signature verification."""

    def setUp(self) -> None:
        """Build a gateway client with a known secret."""
        self.gateway = RazorpayService(
            enabled=True,
            key_id="rzp_test_abcd1234wxyz",
            key_secret=GATEWAY_SECRET,
            api_base_url="https://api.razorpay.invalid/",
        )

    def test_signature_round_trip(self) -> None:
        """Only the matching HMAC verifies."""
        self.assertTrue(self.gateway.verify_payment_signature("order_1", "pay_1", sign("order_1", "pay_1")))
        self.assertFalse(self.gateway.verify_payment_signature("order_1", "pay_2", sign("order_1", "pay_1")))
        self.assertFalse(self.gateway.verify_payment_signature("order_1", "pay_1", ""))

    def test_key_diagnostics(self) -> None:
        """Key mode and masking come from the key id."""
        self.assertTrue(self.gateway.is_configured)
        self.assertEqual(self.gateway.key_mode, "test")
        self.assertEqual(self.gateway.key_id_masked, "rzp_test***wxyz")
        disabled = RazorpayService(enabled=False, key_id="k", key_secret="s", api_base_url="https://x")
        self.assertFalse(disabled.is_configured)
        with self.assertRaises(RuntimeError):
            disabled.create_order(100, "INR", "rcpt_1")


class SettingsTests(unittest.TestCase):
    """Validate YAML configuration loading."""

    def test_bundled_config(self) -> None:
        """The shipped config keeps integrations off."""
        settings = load_settings()
        self.assertFalse(settings.firebase_enabled)
        self.assertFalse(settings.razorpay_enabled)
        self.assertEqual(settings.loan_confirmation_code, "1234")
        self.assertEqual(settings.loan_min_amount, 1000)

    def test_missing_and_partial_files_use_defaults(self) -> None:
        """Absent keys fall back to defaults and junk values are coerced."""
        missing = load_settings(Path(tempfile.gettempdir()) / "does-not-exist-loan-ledger.yml")
        self.assertEqual(missing.port, 8000)
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yml"
            path.write_text("app:\n  port: not-a-number\nloans:\n  min_amount: 2500\n", encoding="utf-8")
            settings = load_settings(path)
        self.assertEqual(settings.port, 8000)
        self.assertEqual(settings.loan_min_amount, 2500)
        self.assertEqual(settings.razorpay_currency, "INR")


if __name__ == "__main__":
    unittest.main()
