"""Unit tests for profile edits and the borrower directory."""

from pathlib import Path
import sys
import unittest


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from models.enums import UserRole
from models.exceptions import ModelNotFoundError, ModelValidationError, StateConflictError
from tests.support import BORROWER_ID, LENDER_ID, LedgerHarness


class ProfileUpdateTests(unittest.TestCase):
    """Validate self-service profile edits."""

    def setUp(self) -> None:
        """Seed three lenders, two of whom lent to the borrower."""
        self.harness = LedgerHarness()
        self.harness.add_lender()
        self.harness.add_lender(user_id="lender_002", id_number="555566667777")
        self.harness.add_lender(user_id="lender_003", id_number="444455556666")
        self.harness.add_borrower(user_name="Asha Verma")
        self.users = self.harness.services.user_service
        self.harness.create_loan()
        self.harness.create_loan()
        self.harness.accepted_loan_id(lender_id="lender_002")

    def test_mobile_change_notifies_each_lender_once(self) -> None:
        """Every lender holding a loan against the borrower hears about the new number."""
        updated = self.users.update_profile(BORROWER_ID, {"mobile_number": "9123456789"})
        self.assertEqual(updated["mobile_number"], "9123456789")

        for lender_id in (LENDER_ID, "lender_002"):
            records = self.harness.notifications(lender_id, "mobile_number_change")
            self.assertEqual(len(records), 1)
            self.assertEqual(records[0]["title"], "Borrower Mobile Number Changed")
            self.assertEqual(records[0]["body"], "Asha Verma changed the mobile number from 9876543210 to 9123456789")
        self.assertEqual(self.harness.notifications("lender_003", "mobile_number_change"), [])

    def test_unchanged_mobile_and_other_fields_are_silent(self) -> None:
        """Editing the name or resubmitting the same number sends nothing."""
        updated = self.users.update_profile(
            BORROWER_ID,
            {"user_name": "Asha V", "address": "4 Lake View, Pune", "mobile_number": "9876543210"},
        )
        self.assertEqual(updated["user_name"], "Asha V")
        self.assertEqual(updated["address"], "4 Lake View, Pune")
        self.assertEqual(self.harness.notifications(LENDER_ID, "mobile_number_change"), [])

    def test_lender_mobile_change_is_not_announced(self) -> None:
        """Only borrower number changes fan out."""
        self.users.update_profile(LENDER_ID, {"mobile_number": "9000000009"})
        self.assertEqual(self.harness.notifications(LENDER_ID, "mobile_number_change"), [])
        self.assertEqual(self.harness.notifications("lender_002", "mobile_number_change"), [])

    def test_profile_edit_guards(self) -> None:
        """Unknown fields, bad values, and taken emails are refused without writing."""
        with self.assertRaises(ModelValidationError):
            self.users.update_profile(BORROWER_ID, {"role": "ADMIN"})
        with self.assertRaises(ModelValidationError):
            self.users.update_profile(BORROWER_ID, {})
        with self.assertRaises(ModelValidationError):
            self.users.update_profile(BORROWER_ID, {"mobile_number": "12345"})
        with self.assertRaises(StateConflictError) as ctx:
            self.users.update_profile(BORROWER_ID, {"email": "lender_001@example.com"})
        self.assertEqual(ctx.exception.code, "EMAIL_EXISTS")
        with self.assertRaises(ModelNotFoundError):
            self.users.update_profile("ghost_001", {"user_name": "Ghost"})

        stored = self.harness.services.users.get_by_id(BORROWER_ID)
        self.assertEqual(stored.mobile_number, "9876543210")
        self.assertEqual(stored.email, "borrower_001@example.com")
        self.assertEqual(stored.role, UserRole.BORROWER)

    def test_email_change_is_normalized(self) -> None:
        updated = self.users.update_profile(BORROWER_ID, {"email": "  Asha@Example.com "})
        self.assertEqual(updated["email"], "asha@example.com")
        self.assertEqual(self.harness.services.users.find_by_email("asha@example.com").user_id, BORROWER_ID)


class BorrowerDirectoryTests(unittest.TestCase):
    """Validate borrower listing, lookup, and search."""

    def setUp(self) -> None:
        """Seed three borrowers, one lender, and one admin."""
        self.harness = LedgerHarness()
        self.harness.add_lender()
        self.harness.add_admin()
        self.harness.add_borrower(user_name="Asha Verma")
        self.harness.add_user(
            "borrower_002",
            UserRole.BORROWER,
            user_name="Ravi Kumar",
            id_number="123412341234",
            mobile_number="9988776655",
        )
        self.harness.add_user(
            "borrower_003",
            UserRole.BORROWER,
            user_name="Nitasha Rao",
            id_number="567856785678",
            mobile_number="9811122233",
        )
        self.users = self.harness.services.user_service

    def test_list_borrowers_paginates_borrowers_only(self) -> None:
        """Lenders and admins never show up in the directory."""
        first = self.users.list_borrowers(page=1, limit=2)
        self.assertEqual(len(first["items"]), 2)
        self.assertEqual(first["pagination"]["totalDocuments"], 3)
        self.assertEqual(first["pagination"]["totalPages"], 2)
        second = self.users.list_borrowers(page=2, limit=2)
        ids = {item["user_id"] for item in first["items"] + second["items"]}
        self.assertEqual(ids, {BORROWER_ID, "borrower_002", "borrower_003"})

    def test_get_borrower(self) -> None:
        """Only borrower profiles resolve."""
        self.assertEqual(self.users.get_borrower("borrower_002")["user_name"], "Ravi Kumar")
        with self.assertRaises(ModelNotFoundError):
            self.users.get_borrower(LENDER_ID)
        with self.assertRaises(ModelNotFoundError):
            self.users.get_borrower("borrower_missing")

    def test_search_by_name_id_number_and_mobile(self) -> None:
        """Names and mobiles match on fragments, ID numbers only exactly."""
        by_name = self.users.search_borrowers("asha")
        self.assertEqual({item["user_id"] for item in by_name["items"]}, {BORROWER_ID, "borrower_003"})

        by_id = self.users.search_borrowers("123412341234")
        self.assertEqual([item["user_id"] for item in by_id["items"]], ["borrower_002"])
        self.assertEqual(self.users.search_borrowers("12341234")["items"], [])

        by_mobile = self.users.search_borrowers("98111")
        self.assertEqual([item["user_id"] for item in by_mobile["items"]], ["borrower_003"])
        self.assertEqual(by_mobile["pagination"]["totalDocuments"], 1)

    def test_blank_search_is_refused(self) -> None:
        with self.assertRaises(ModelValidationError):
            self.users.search_borrowers("   ")


if __name__ == "__main__":
    unittest.main()
