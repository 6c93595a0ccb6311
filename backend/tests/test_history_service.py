"""Unit tests for loan history queries, borrower views, and lender statistics."""

from datetime import timedelta
from pathlib import Path
import sys
import unittest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.exceptions import AccessDeniedError
from services.history_service import LoanFilters
from tests.support import BORROWER_ID, BORROWER_ID_NUMBER, LENDER_ID, LedgerHarness


class HistoryServiceTests(unittest.TestCase):
    """Validate read-side reporting."""

    def setUp(self) -> None:
        """Seed two lenders, one borrower, and a small loan book."""
        self.harness = LedgerHarness()
        self.harness.add_lender()
        self.harness.add_lender(user_id="lender_002", id_number="555566667777")
        self.harness.add_borrower()
        self.history = self.harness.services.history
        self.payments = self.harness.services.payments

        self.paid_loan = self.harness.accepted_loan_id(amount=2000, installment_count=2)
        submitted = self.payments.submit_payment(BORROWER_ID, self.paid_loan, 1000, "cash", "installment")
        self.payments.confirm_payment(LENDER_ID, self.paid_loan, submitted["payment"]["payment_id"])
        submitted = self.payments.submit_payment(BORROWER_ID, self.paid_loan, 1000, "online", "installment")
        self.payments.confirm_payment(LENDER_ID, self.paid_loan, submitted["payment"]["payment_id"])

        self.harness.clock.advance(hours=1)
        self.open_loan = self.harness.accepted_loan_id(amount=8000)
        self.payments.submit_payment(BORROWER_ID, self.open_loan, 500, "cash", "one-time")

        self.harness.clock.advance(hours=1)
        self.other_loan = self.harness.create_loan(lender_id="lender_002", amount=3000)["loan"]["loan_id"]

    def test_borrower_view_summarises_all_loans(self) -> None:
        """Totals cover every loan against the borrower's ID number."""
        result = self.history.get_borrower_loans(BORROWER_ID, LoanFilters())
        summary = result["summary"]
        self.assertEqual(summary["total_loans"], 3)
        self.assertEqual(summary["completed_loans"], 1)
        self.assertEqual(summary["active_loans"], 2)
        self.assertEqual(summary["total_amount_borrowed"], 13000)
        self.assertEqual(summary["total_amount_paid"], 2000)
        self.assertEqual(summary["total_amount_remaining"], 11000)

        rows = {row["loan_id"]: row for row in result["items"]}
        paid_details = rows[self.paid_loan]["installment_details"]
        self.assertEqual(paid_details["paid_installments"], 2)
        self.assertEqual(
            [item["installment_label"] for item in paid_details["installment_breakdown"]],
            ["Installment 1", "Installment 2"],
        )
        self.assertEqual(rows[self.open_loan]["pending_payments"], {"count": 1, "amount": 500})
        self.assertNotIn("confirmation_code", rows[self.other_loan])

    def test_filters_and_ordering(self) -> None:
        """Filters narrow results and rows come newest first."""
        newest_first = self.history.history_all(LoanFilters())
        self.assertEqual(
            [row["loan_id"] for row in newest_first["items"]],
            [self.other_loan, self.open_loan, self.paid_loan],
        )
        by_status = self.history.history_all(LoanFilters(status="paid"))
        self.assertEqual([row["loan_id"] for row in by_status["items"]], [self.paid_loan])
        by_amount = self.history.history_all(LoanFilters(min_amount=2500, max_amount=5000))
        self.assertEqual([row["loan_id"] for row in by_amount["items"]], [self.other_loan])
        self.assertEqual(self.history.history_all(LoanFilters(search="asha"))["pagination"]["totalDocuments"], 3)
        self.assertEqual(self.history.history_all(LoanFilters(search="ravi"))["pagination"]["totalDocuments"], 0)
        late_start = self.history.history_all(LoanFilters(start_date=self.harness.now - timedelta(minutes=30)))
        self.assertEqual([row["loan_id"] for row in late_start["items"]], [self.other_loan])

    def test_pagination(self) -> None:
        """Pages slice the filtered list."""
        page_two = self.history.history_all(LoanFilters(), page=2, limit=2)
        self.assertEqual(len(page_two["items"]), 1)
        self.assertEqual(
            page_two["pagination"],
            {"totalDocuments": 3, "currentPage": 2, "totalPages": 2, "limit": 2},
        )

    def test_scoped_histories(self) -> None:
        """Lender and pair histories only include matching loans."""
        by_lender = self.history.history_by_lender("lender_002", LoanFilters())
        self.assertEqual([row["loan_id"] for row in by_lender["items"]], [self.other_loan])
        self.assertEqual(by_lender["lender"]["user_id"], "lender_002")

        pair = self.history.history_by_borrower_and_lender(BORROWER_ID, LENDER_ID, LoanFilters())
        self.assertEqual(pair["pagination"]["totalDocuments"], 2)

        by_borrower = self.history.history_by_borrower(BORROWER_ID, LoanFilters())
        self.assertEqual(by_borrower["borrower"]["user_id"], BORROWER_ID)
        with self.assertRaises(AccessDeniedError):
            self.history.history_by_borrower(LENDER_ID, LoanFilters())

    def test_lender_statistics(self) -> None:
        """Portfolio totals add up for the lender's own loans."""
        stats = self.history.get_lender_statistics(LENDER_ID)
        self.assertEqual(stats["total_loans"], 2)
        self.assertEqual(stats["total_lent"], 10000)
        self.assertEqual(stats["total_received"], 2000)
        self.assertEqual(stats["outstanding_amount"], 8000)
        self.assertEqual(stats["pending_payment_count"], 1)
        self.assertEqual(stats["by_payment_status"]["paid"], 1)
        self.assertEqual(stats["by_acceptance_status"]["accepted"], 2)
        self.assertEqual(stats["recovery_percentage"], 20.0)

    def test_recent_activities(self) -> None:
        """The feed is newest first and honours the limit."""
        activities = self.history.get_recent_activities(LENDER_ID, limit=20)
        kinds = [item["type"] for item in activities]
        self.assertIn("loan_created", kinds)
        self.assertIn("loan_paid", kinds)
        self.assertEqual(kinds.count("payment_received"), 2)
        stamps = [item["timestamp"] for item in activities]
        self.assertEqual(stamps, sorted(stamps, reverse=True))
        self.assertEqual(len(self.history.get_recent_activities(LENDER_ID, limit=2)), 2)

    def test_lender_list_and_id_number_stats(self) -> None:
        """The lender's book and per-ID stats only count that lender's loans."""
        listing = self.history.list_lender_loans(LENDER_ID, LoanFilters())
        self.assertEqual(listing["pagination"]["totalDocuments"], 2)
        self.assertIn("pending_confirmations", listing["items"][0])

        stats = self.history.get_loan_stats_by_id_number(LENDER_ID, BORROWER_ID_NUMBER)
        self.assertEqual(stats["loans_taken_count"], 2)
        self.assertEqual(stats["loans_paid_count"], 1)
        self.assertEqual(stats["outstanding_amount"], 8000)


if __name__ == "__main__":
    unittest.main()
