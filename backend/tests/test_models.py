"""Unit tests for Firestore-ready domain models."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys
import unittest

from pydantic import ValidationError


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.enums import ConfirmationStatus, InstallmentFrequency, PaymentMode, PaymentType, PlanDuration, RiskLevel, UserRole
from models.exceptions import ModelNotFoundError, ModelValidationError, StateConflictError
from models.loans import LoanModel
from models.payments import PaymentHistoryEntry
from models.plans import PlanModel
from models.users import MAX_FRAUD_HISTORY, FraudDetectionSummary, FraudHistoryEntry, UserModel


START = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)


def _loan(**overrides) -> LoanModel:
    fields = {
        "loan_id": "loan_1",
        "lender_id": "lender_001",
        "borrower_name": "Asha Verma",
        "id_number": "999988887777",
        "mobile_number": "9876543210",
        "address": "12 Market Road, Pune",
        "amount": 5000,
        "purpose": "Shop inventory",
        "loan_start_date": START,
        "loan_end_date": START + timedelta(days=60),
    }
    fields.update(overrides)
    return LoanModel(**fields)


def _payment(**overrides) -> PaymentHistoryEntry:
    fields = {
        "payment_id": "pay_1",
        "amount": 1000,
        "payment_mode": PaymentMode.CASH,
        "payment_type": PaymentType.ONE_TIME,
    }
    fields.update(overrides)
    return PaymentHistoryEntry(**fields)


class EnumTests(unittest.TestCase):
    """Test enum parsing helpers."""

    def test_role_parse_accepts_names_and_legacy_tags(self) -> None:
        """Names are case-insensitive and 0/1/2 map to admin/lender/borrower."""
        self.assertEqual(UserRole.parse("lender"), UserRole.LENDER)
        self.assertEqual(UserRole.parse(0), UserRole.ADMIN)
        self.assertEqual(UserRole.parse("2"), UserRole.BORROWER)
        with self.assertRaises(ValueError):
            UserRole.parse("merchant")

    def test_cadence_lengths(self) -> None:
        """Frequencies and plan durations expose their lengths."""
        self.assertEqual(InstallmentFrequency.QUARTERLY.days, 90)
        self.assertEqual(PlanDuration.ONE_YEAR.months, 12)


class UserModelTests(unittest.TestCase):
    """Test user model normalization and rules."""

    def test_user_model_happy_path(self) -> None:
        """Email is lowercased and device tokens are deduplicated."""
        user = UserModel(
            user_id="borrower_001",
            email=" Asha@Example.COM ",
            user_name="Asha Verma",
            role="BORROWER",
            id_number="999988887777",
            device_tokens=["tok_a", " ", "tok_b", "tok_a"],
        )
        self.assertEqual(user.email, "asha@example.com")
        self.assertEqual(user.device_tokens, ["tok_a", "tok_b"])
        self.assertFalse(user.has_active_plan(START))

    def test_borrower_requires_id_number(self) -> None:
        """Borrowers must carry a 12-digit ID number; lenders need not."""
        with self.assertRaises(ValidationError):
            UserModel(user_id="borrower_002", email="b@example.com", user_name="Bee", role=UserRole.BORROWER)
        with self.assertRaises(ValidationError):
            UserModel(
                user_id="borrower_002",
                email="b@example.com",
                user_name="Bee",
                role=UserRole.BORROWER,
                id_number="1234",
            )
        lender = UserModel(user_id="lender_002", email="l@example.com", user_name="Lee", role=1)
        self.assertEqual(lender.role, UserRole.LENDER)

    def test_plan_activity_follows_expiry(self) -> None:
        """A plan counts only while its expiry lies in the future."""
        lender = UserModel(
            user_id="lender_002",
            email="l@example.com",
            user_name="Lee",
            role=UserRole.LENDER,
            current_plan_id="plan_1",
            plan_expiry_date=START + timedelta(days=1),
        )
        self.assertTrue(lender.has_active_plan(START))
        self.assertFalse(lender.has_active_plan(START + timedelta(days=1)))

    def test_fraud_history_is_bounded(self) -> None:
        """Only the most recent assessments are kept."""
        entries = [
            FraudHistoryEntry(score=index, risk_level=RiskLevel.LOW, checked_at=START + timedelta(days=index))
            for index in range(MAX_FRAUD_HISTORY + 3)
        ]
        summary = FraudDetectionSummary(history=entries)
        self.assertEqual(len(summary.history), MAX_FRAUD_HISTORY)
        self.assertEqual(summary.history[0].score, 3)


class LoanModelTests(unittest.TestCase):
    """Test loan invariants and payment entries."""

    def test_remaining_amount_is_derived(self) -> None:
        """Remaining amount tracks total paid and never goes negative."""
        loan = _loan()
        self.assertEqual(loan.remaining_amount, 5000)
        loan.total_paid = 2000
        self.assertEqual(loan.remaining_amount, 3000)
        loan.total_paid = 6000
        self.assertEqual(loan.remaining_amount, 0)

    def test_end_date_must_follow_start(self) -> None:
        """Reject zero-length loans and non-positive amounts."""
        with self.assertRaises(ValidationError):
            _loan(loan_end_date=START)
        with self.assertRaises(ValidationError):
            _loan(amount=0)

    def test_naive_dates_are_treated_as_utc(self) -> None:
        """Timezone-less input is stored as UTC."""
        loan = _loan(loan_start_date=datetime(2026, 1, 15, 9, 0), loan_end_date=datetime(2026, 3, 16, 9, 0))
        self.assertEqual(loan.loan_start_date, START)

    def test_find_payment(self) -> None:
        """Lookup returns the entry or raises when absent."""
        loan = _loan(payment_history=[_payment()])
        self.assertEqual(loan.find_payment("pay_1").amount, 1000)
        self.assertEqual(len(loan.pending_payments()), 1)
        with self.assertRaises(ModelNotFoundError):
            loan.find_payment("pay_missing")

    def test_payment_resolution_is_terminal(self) -> None:
        """A payment resolves once and stays resolved."""
        entry = _payment(payment_type=PaymentType.INSTALLMENT, installment_number=1)
        entry.resolve(ConfirmationStatus.CONFIRMED, "lender_001", START, notes="received")
        self.assertEqual(entry.confirmed_by, "lender_001")
        self.assertFalse(entry.is_pending)
        with self.assertRaises(StateConflictError) as ctx:
            entry.resolve(ConfirmationStatus.REJECTED, "lender_001", START)
        self.assertEqual(ctx.exception.code, "PAYMENT_ALREADY_RESOLVED")
        self.assertEqual(_loan(payment_history=[entry]).confirmed_installment_count(), 1)

    def test_firestore_round_trip_uses_raw_values(self) -> None:
        """Stored payloads hold plain strings and parse back into the model."""
        loan = _loan(payment_history=[_payment()])
        payload = loan.to_firestore()
        self.assertIs(type(payload["payment_status"]), str)
        self.assertEqual(payload["payment_history"][0]["payment_mode"], "cash")
        self.assertEqual(payload["remaining_amount"], 5000)
        restored = LoanModel.from_firestore(payload, doc_id="loan_1")
        self.assertEqual(restored.id, "loan_1")
        self.assertEqual(restored.payment_history[0].payment_mode, PaymentMode.CASH)

    def test_bad_payload_raises_model_error(self) -> None:
        """Unparseable documents surface as model validation errors."""
        with self.assertRaises(ModelValidationError):
            LoanModel.from_firestore({"loan_id": "loan_1"}, doc_id="loan_1")


class PlanModelTests(unittest.TestCase):
    """Test plan defaults."""

    def test_unlimited_loans_cannot_be_disabled(self) -> None:
        """Every plan unlocks unlimited loans."""
        plan = PlanModel(
            plan_id="plan_1",
            plan_name="Starter",
            duration="1 month",
            price_monthly=299,
            plan_features={"unlimited_loans": False, "priority_support": True},
        )
        self.assertTrue(plan.plan_features.unlimited_loans)
        self.assertEqual(plan.identity_key()["plan_name"], "starter")
        with self.assertRaises(ValidationError):
            PlanModel(plan_id="plan_2", plan_name="Bad", duration="5 weeks", price_monthly=299)


if __name__ == "__main__":
    unittest.main()
