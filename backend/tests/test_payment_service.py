"""Unit tests for payment submission, lender decisions, and the overdue sweep."""

from datetime import timedelta
from pathlib import Path
import sys
import unittest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.enums import ConfirmationStatus, PaymentStatus
from models.exceptions import (
    AccessDeniedError,
    ModelNotFoundError,
    ModelValidationError,
    StateConflictError,
    VersionConflictError,
)
from services.loan_access import save_loan
from tests.support import BORROWER_ID, LENDER_ID, LedgerHarness


class PaymentServiceTests(unittest.TestCase):
    """Validate two-phase payment reconciliation."""

    def setUp(self) -> None:
        """Seed one lender, one borrower, and one accepted loan of 5000."""
        self.harness = LedgerHarness()
        self.harness.add_lender()
        self.harness.add_borrower()
        self.payments = self.harness.services.payments
        self.loans = self.harness.services.loans
        self.loan_id = self.harness.accepted_loan_id(amount=5000)

    def _submit(self, amount: int, payment_type: str = "one-time", loan_id: str = None) -> dict:
        return self.payments.submit_payment(
            borrower_id=BORROWER_ID,
            loan_id=loan_id or self.loan_id,
            amount=amount,
            payment_mode="cash",
            payment_type=payment_type,
        )

    def test_partial_then_final_payment_settles_loan(self) -> None:
        """Totals move only on confirmation and the loan ends up paid."""
        first = self._submit(2000)
        loan = self.loans.get_by_id(self.loan_id)
        self.assertEqual(loan.total_paid, 0)
        self.assertEqual(loan.remaining_amount, 5000)
        self.assertEqual(first["payment_confirmation"], "pending")
        self.assertEqual(first["after_confirmation"]["projected_remaining_amount"], 3000)
        self.assertEqual(first["after_confirmation"]["projected_status"], "part paid")

        confirmed = self.payments.confirm_payment(LENDER_ID, self.loan_id, first["payment"]["payment_id"])
        self.assertEqual(confirmed["total_paid"], 2000)
        self.assertEqual(confirmed["remaining_amount"], 3000)
        self.assertEqual(confirmed["payment_status"], "part paid")

        second = self._submit(3000)
        confirmed = self.payments.confirm_payment(LENDER_ID, self.loan_id, second["payment"]["payment_id"])
        self.assertEqual(confirmed["total_paid"], 5000)
        self.assertEqual(confirmed["remaining_amount"], 0)
        self.assertEqual(confirmed["payment_status"], "paid")

        with self.assertRaises(StateConflictError) as ctx:
            self._submit(100)
        self.assertEqual(ctx.exception.code, "ALREADY_PAID")

    def test_installment_due_date_advances_on_confirmation_only(self) -> None:
        """Submitting leaves the schedule alone; confirming moves it one period."""
        loan_id = self.harness.accepted_loan_id(amount=6000, installment_count=3, installment_frequency="monthly")
        original_due = self.loans.get_by_id(loan_id).installment_plan.next_due_date
        self.assertEqual(original_due, self.harness.now + timedelta(days=30))

        submitted = self._submit(2000, payment_type="installment", loan_id=loan_id)
        self.assertEqual(submitted["installment_number"], 1)
        self.assertEqual(self.loans.get_by_id(loan_id).installment_plan.next_due_date, original_due)

        self.payments.confirm_payment(LENDER_ID, loan_id, submitted["payment"]["payment_id"])
        loan = self.loans.get_by_id(loan_id)
        self.assertEqual(loan.installment_plan.next_due_date, original_due + timedelta(days=30))
        self.assertEqual(loan.installment_plan.paid_installments, 1)

        second = self._submit(2000, payment_type="installment", loan_id=loan_id)
        self.assertEqual(second["installment_number"], 2)

    def test_reject_requires_reason_and_keeps_totals(self) -> None:
        """Rejection needs a reason and never changes amounts."""
        submitted = self._submit(1500)
        payment_id = submitted["payment"]["payment_id"]
        with self.assertRaises(ModelValidationError):
            self.payments.reject_payment(LENDER_ID, self.loan_id, payment_id, "   ")

        rejected = self.payments.reject_payment(LENDER_ID, self.loan_id, payment_id, "Cash not received")
        self.assertEqual(rejected["total_paid"], 0)
        self.assertEqual(rejected["payment"]["confirmation_status"], "rejected")
        self.assertEqual(rejected["payment"]["notes"], "Rejected: Cash not received")

    def test_resolved_payment_cannot_be_resolved_again(self) -> None:
        """Confirmed and rejected are terminal."""
        payment_id = self._submit(1000)["payment"]["payment_id"]
        self.payments.confirm_payment(LENDER_ID, self.loan_id, payment_id)
        with self.assertRaises(StateConflictError) as ctx:
            self.payments.confirm_payment(LENDER_ID, self.loan_id, payment_id)
        self.assertEqual(ctx.exception.code, "PAYMENT_ALREADY_RESOLVED")
        with self.assertRaises(StateConflictError):
            self.payments.reject_payment(LENDER_ID, self.loan_id, payment_id, "late")
        self.assertEqual(self.loans.get_by_id(self.loan_id).total_paid, 1000)

    def test_unknown_payment_and_foreign_lender(self) -> None:
        """Only the owning lender can decide, and only on existing entries."""
        payment_id = self._submit(1000)["payment"]["payment_id"]
        with self.assertRaises(ModelNotFoundError):
            self.payments.confirm_payment(LENDER_ID, self.loan_id, "pay_missing")
        self.harness.add_lender(user_id="lender_002", id_number="555566667777")
        with self.assertRaises(AccessDeniedError):
            self.payments.confirm_payment("lender_002", self.loan_id, payment_id)

    def test_submission_guards(self) -> None:
        """Amount, enums, ownership, and acceptance are checked before writing."""
        with self.assertRaises(ModelValidationError):
            self._submit(0)
        with self.assertRaises(ModelValidationError) as ctx:
            self._submit(5001)
        self.assertEqual(ctx.exception.code, "PAYMENT_EXCEEDS_REMAINING")
        with self.assertRaises(ModelValidationError):
            self.payments.submit_payment(BORROWER_ID, self.loan_id, 100, "cheque", "one-time")

        self.harness.add_borrower(user_id="borrower_002", id_number="123412341234")
        with self.assertRaises(AccessDeniedError):
            self.payments.submit_payment("borrower_002", self.loan_id, 100, "cash", "one-time")

        pending = self.harness.create_loan(amount=2000)
        with self.assertRaises(StateConflictError) as ctx:
            self._submit(500, loan_id=pending["loan"]["loan_id"])
        self.assertEqual(ctx.exception.code, "LOAN_NOT_ACCEPTED")
        self.assertEqual(self.loans.get_by_id(self.loan_id).payment_history, [])

    def test_pending_payments_count_against_remaining(self) -> None:
        """Two submissions cannot together exceed what is owed."""
        first = self._submit(4000)
        with self.assertRaises(ModelValidationError) as ctx:
            self._submit(4000)
        self.assertEqual(ctx.exception.code, "PAYMENT_EXCEEDS_REMAINING")

        second = self._submit(1000)
        self.payments.confirm_payment(LENDER_ID, self.loan_id, first["payment"]["payment_id"])
        confirmed = self.payments.confirm_payment(LENDER_ID, self.loan_id, second["payment"]["payment_id"])
        self.assertEqual(confirmed["total_paid"], 5000)
        self.assertEqual(confirmed["payment_status"], "paid")

    def test_confirm_refuses_entry_larger_than_remaining(self) -> None:
        """A stored entry bigger than the balance stays pending instead of overpaying."""
        payment_id = self._submit(1000)["payment"]["payment_id"]
        loan = self.loans.get_by_id(self.loan_id)
        loan.total_paid = 4500
        save_loan(self.loans, loan)

        with self.assertRaises(StateConflictError) as ctx:
            self.payments.confirm_payment(LENDER_ID, self.loan_id, payment_id)
        self.assertEqual(ctx.exception.code, "PAYMENT_EXCEEDS_REMAINING")
        loan = self.loans.get_by_id(self.loan_id)
        self.assertEqual(loan.total_paid, 4500)
        self.assertEqual(loan.find_payment(payment_id).confirmation_status, ConfirmationStatus.PENDING)

    def test_submission_after_end_date_marks_overdue_without_sweep(self) -> None:
        """Submitting on a late loan flags it overdue but leaves totals alone."""
        loan_id = self.harness.accepted_loan_id(amount=3000, days=2)
        self.harness.clock.advance(days=5)

        submitted = self._submit(1000, loan_id=loan_id)
        self.assertEqual(submitted["loan_summary"]["payment_status"], "overdue")
        loan = self.loans.get_by_id(loan_id)
        self.assertEqual(loan.payment_status, PaymentStatus.OVERDUE)
        self.assertTrue(loan.overdue_details.is_overdue)
        self.assertEqual(loan.overdue_details.overdue_days, 3)
        self.assertEqual(loan.overdue_details.overdue_amount, 3000)
        self.assertEqual(loan.total_paid, 0)

    def test_overdue_sweep_marks_loan_once(self) -> None:
        """A loan one day past its end date is flagged, and a rerun is a no-op."""
        loan_id = self.harness.accepted_loan_id(amount=3000, days=2)
        self.harness.clock.advance(days=3)

        result = self.payments.run_overdue_sweep()
        self.assertEqual(result["updated"], 1)
        loan = self.loans.get_by_id(loan_id)
        self.assertEqual(loan.payment_status, PaymentStatus.OVERDUE)
        self.assertTrue(loan.overdue_details.is_overdue)
        self.assertEqual(loan.overdue_details.overdue_days, 1)
        self.assertEqual(loan.overdue_details.overdue_amount, 3000)

        rerun = self.payments.run_overdue_sweep()
        self.assertEqual(rerun["updated"], 0)
        self.assertEqual(len(self.harness.notifications(LENDER_ID, "loan_overdue")), 1)
        self.assertEqual(len(self.harness.notifications(BORROWER_ID, "loan_overdue")), 1)

    def test_confirming_overdue_loan_in_full_clears_overdue(self) -> None:
        """Paying off an overdue loan resets its overdue details."""
        loan_id = self.harness.accepted_loan_id(amount=3000, days=2)
        self.harness.clock.advance(days=5)
        self.payments.run_overdue_sweep()

        payment_id = self._submit(3000, loan_id=loan_id)["payment"]["payment_id"]
        self.payments.confirm_payment(LENDER_ID, loan_id, payment_id)
        loan = self.loans.get_by_id(loan_id)
        self.assertEqual(loan.payment_status, PaymentStatus.PAID)
        self.assertFalse(loan.overdue_details.is_overdue)
        self.assertEqual(loan.overdue_details.overdue_amount, 0)

    def test_stale_loan_write_raises_version_conflict(self) -> None:
        """Two writers holding the same version cannot both save."""
        first = self.loans.get_by_id(self.loan_id)
        second = self.loans.get_by_id(self.loan_id)
        first.purpose = "Updated by first writer"
        save_loan(self.loans, first)
        second.purpose = "Updated by second writer"
        with self.assertRaises(VersionConflictError):
            save_loan(self.loans, second)
        self.assertEqual(self.loans.get_by_id(self.loan_id).purpose, "Updated by first writer")

    def test_pending_list_and_history_statistics(self) -> None:
        """Lender queue and borrower log reflect every submitted entry."""
        confirmed_id = self._submit(1000)["payment"]["payment_id"]
        self.payments.confirm_payment(LENDER_ID, self.loan_id, confirmed_id)
        self.harness.clock.advance(minutes=5)
        self._submit(500)

        queue = self.payments.list_pending_payments(LENDER_ID, page=1, limit=10)
        self.assertEqual(len(queue["items"]), 1)
        self.assertEqual(queue["items"][0]["amount"], 500)
        self.assertEqual(queue["pagination"]["totalDocuments"], 1)

        history = self.payments.get_payment_history(BORROWER_ID, self.loan_id)
        self.assertEqual(history["statistics"][ConfirmationStatus.CONFIRMED.value], {"count": 1, "amount": 1000})
        self.assertEqual(history["statistics"][ConfirmationStatus.PENDING.value], {"count": 1, "amount": 500})
        self.assertEqual(history["payments"][0]["amount"], 500)
        self.assertEqual(history["loan_summary"]["remaining_amount"], 4000)

    def test_lender_is_notified_of_submission(self) -> None:
        """Each submission raises a notification for the lender."""
        self._submit(700)
        records = self.harness.notifications(LENDER_ID, "payment_submitted")
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0]["title"], "New Payment Submitted")


if __name__ == "__main__":
    unittest.main()
