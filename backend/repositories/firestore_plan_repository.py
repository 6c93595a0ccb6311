"""Firestore implementation of the subscription plan repository."""

from typing import List

from models.plans import PlanModel
from models.repositories import PlanRepository

from .base_repository import FirestoreDocumentRepository


class FirestorePlanRepository(FirestoreDocumentRepository, PlanRepository):
    """Persist and fetch plan documents keyed by `plan_id`."""

    model_cls = PlanModel
    id_field = "plan_id"
    entity_name = "Plan"

    def list_all(self, active_only: bool = False) -> List[PlanModel]:
        filters = [("is_active", "==", True)] if active_only else None
        return self._query(filters=filters, order_by="created_at", descending=True)
