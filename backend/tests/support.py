"""Shared fixtures: a frozen clock, an in-memory service graph, and seed helpers."""

from datetime import datetime, timedelta, timezone
import hashlib
import hmac
from pathlib import Path
import sys
from typing import Any, Dict, List, Optional


PROJECT_ROOT = Path(__file__).resolve().parents[2]
BACKEND_ROOT = PROJECT_ROOT / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from api.router import build_services
from core import InMemoryDocumentStore, load_settings
from models.enums import UserRole
from models.users import UserModel
from services.razorpay_service import RazorpayService


BASE_TIME = datetime(2026, 1, 15, 9, 0, tzinfo=timezone.utc)

LENDER_ID = "lender_001"
LENDER_ID_NUMBER = "111122223333"
BORROWER_ID = "borrower_001"
BORROWER_ID_NUMBER = "999988887777"
ADMIN_ID = "admin_001"

GATEWAY_SECRET = "test_secret_key"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = BASE_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> datetime:
        self.now = self.now + timedelta(**delta)
        return self.now


class FakeRazorpayService(RazorpayService):
    """Gateway double that issues orders locally and signs with a known secret."""

    def __init__(self) -> None:
        super().__init__(
            enabled=True,
            key_id="rzp_test_abcd1234wxyz",
            key_secret=GATEWAY_SECRET,
            api_base_url="https://api.razorpay.invalid",
        )
        self.orders: List[Dict[str, Any]] = []

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        order = {
            "id": "order_{0:04d}".format(len(self.orders) + 1),
            "amount": int(amount_minor),
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        self.orders.append(order)
        return order


def sign(order_id: str, payment_id: str, secret: str = GATEWAY_SECRET) -> str:
    message = "{0}|{1}".format(order_id, payment_id).encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


class LedgerHarness:
    """Every service wired over one in-memory store and one frozen clock."""

    def __init__(self, gateway: Optional[RazorpayService] = None, push_sender=None) -> None:
        self.clock = FrozenClock()
        self.settings = load_settings()
        self.store = InMemoryDocumentStore()
        self.gateway = gateway
        self.services = build_services(
            self.settings,
            store=self.store,
            gateway=gateway,
            push_sender=push_sender,
            clock=self.clock,
        )

    @property
    def now(self) -> datetime:
        return self.clock.now

    def add_user(self, user_id: str, role: UserRole, **fields: Any) -> UserModel:
        payload = {
            "user_id": user_id,
            "email": "{0}@example.com".format(user_id),
            "user_name": user_id.replace("_", " ").title(),
            "role": role,
        }
        payload.update(fields)
        return self.services.users.create(UserModel(**payload))

    def add_lender(
        self,
        user_id: str = LENDER_ID,
        id_number: Optional[str] = LENDER_ID_NUMBER,
        with_plan: bool = True,
        **fields: Any,
    ) -> UserModel:
        if with_plan:
            fields.setdefault("current_plan_id", "plan_seed")
            fields.setdefault("plan_purchase_date", self.now)
            fields.setdefault("plan_expiry_date", self.now + timedelta(days=30))
        return self.add_user(user_id, UserRole.LENDER, id_number=id_number, mobile_number="9000000001", **fields)

    def add_borrower(self, user_id: str = BORROWER_ID, id_number: str = BORROWER_ID_NUMBER, **fields: Any) -> UserModel:
        return self.add_user(user_id, UserRole.BORROWER, id_number=id_number, mobile_number="9876543210", **fields)

    def add_admin(self, user_id: str = ADMIN_ID) -> UserModel:
        return self.add_user(user_id, UserRole.ADMIN)

    def create_loan(
        self,
        lender_id: str = LENDER_ID,
        id_number: str = BORROWER_ID_NUMBER,
        amount: int = 5000,
        days: int = 60,
        **overrides: Any,
    ) -> Dict[str, Any]:
        payload = {
            "lender_id": lender_id,
            "borrower_name": "Asha Verma",
            "id_number": id_number,
            "mobile_number": "9876543210",
            "address": "12 Market Road, Pune",
            "amount": amount,
            "purpose": "Shop inventory",
            "loan_start_date": self.now,
            "loan_end_date": self.now + timedelta(days=days),
        }
        payload.update(overrides)
        return self.services.lifecycle.create_loan(**payload)

    def accepted_loan_id(self, lender_id: str = LENDER_ID, **kwargs: Any) -> str:
        """Create a loan and confirm it with the code, which also accepts it."""
        created = self.create_loan(lender_id=lender_id, **kwargs)
        loan_id = created["loan"]["loan_id"]
        self.services.lifecycle.verify_confirmation_code(lender_id, loan_id, created["confirmation_code"])
        return loan_id

    def notifications(self, user_id: str, kind: Optional[str] = None) -> List[Dict[str, Any]]:
        records = self.services.notifier.list_for_user(user_id, limit=200)
        if kind is None:
            return records
        return [record for record in records if record.get("kind") == kind]
