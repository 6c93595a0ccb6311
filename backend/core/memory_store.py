"""In-memory document store mirroring the FirebaseClientManager surface.

Used when Firebase is disabled and throughout the test suite. Documents are
copied on the way in and out so callers never share mutable state with the
store.
"""

import copy
from datetime import datetime, timezone
import logging
from threading import RLock
from typing import Any, Dict, List, Optional, Sequence, Tuple


logger = logging.getLogger(__name__)

FilterTuple = Tuple[str, str, Any]


def _utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def _orderable_sort_key(value: Any) -> tuple:
    """Return a safe sortable tuple for heterogeneous document values."""
    if value is None:
        return (3, 0.0, "")
    if isinstance(value, bool):
        return (0, float(int(value)), "")
    if isinstance(value, (int, float)):
        return (0, float(value), "")
    if isinstance(value, datetime):
        return (0, value.timestamp(), "")
    return (1, 0.0, str(value))


def _matches_filters(payload: Dict[str, Any], filters: Sequence[FilterTuple]) -> bool:
    """Evaluate Firestore-like filters against one document."""
    for field_name, operator, expected_value in filters:
        actual_value = payload.get(field_name)
        if operator == "==":
            if actual_value != expected_value:
                return False
        elif operator == "!=":
            if actual_value == expected_value:
                return False
        elif operator == ">":
            if actual_value is None or actual_value <= expected_value:
                return False
        elif operator == ">=":
            if actual_value is None or actual_value < expected_value:
                return False
        elif operator == "<":
            if actual_value is None or actual_value >= expected_value:
                return False
        elif operator == "<=":
            if actual_value is None or actual_value > expected_value:
                return False
        elif operator == "in":
            if actual_value not in expected_value:
                return False
        else:
            raise ValueError("Unsupported filter operator: {0}".format(operator))
    return True


class InMemoryDocumentStore:
    """Thread-safe dictionary-backed document store."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _bucket(self, collection_name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(collection_name, {})

    @staticmethod
    def _export(document_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        result = copy.deepcopy(payload)
        result["id"] = document_id
        return result

    def set_document(
        self,
        collection_name: str,
        document_id: str,
        payload: Dict[str, Any],
        merge: bool = False,
    ) -> Dict[str, Any]:
        """Create or replace a document."""
        with self._lock:
            bucket = self._bucket(collection_name)
            safe_payload = copy.deepcopy(payload)
            safe_payload.setdefault("created_at", _utc_now())
            safe_payload.setdefault("updated_at", _utc_now())
            if merge and document_id in bucket:
                merged = dict(bucket[document_id])
                merged.update(safe_payload)
                bucket[document_id] = merged
            else:
                bucket[document_id] = safe_payload
            return self._export(document_id, bucket[document_id])

    def get_document(self, collection_name: str, document_id: str) -> Optional[Dict[str, Any]]:
        """Get one document by id."""
        with self._lock:
            payload = self._bucket(collection_name).get(document_id)
            if payload is None:
                return None
            return self._export(document_id, payload)

    def update_document(
        self,
        collection_name: str,
        document_id: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Merge fields into a document, creating it when missing."""
        with self._lock:
            bucket = self._bucket(collection_name)
            merged = dict(bucket.get(document_id, {}))
            merged.update(copy.deepcopy(payload))
            merged["updated_at"] = _utc_now()
            bucket[document_id] = merged
            return self._export(document_id, merged)

    def replace_document_if_version(
        self,
        collection_name: str,
        document_id: str,
        payload: Dict[str, Any],
        expected_version: int,
    ) -> bool:
        """Replace a document only while its stored version equals `expected_version`."""
        with self._lock:
            bucket = self._bucket(collection_name)
            current = bucket.get(document_id)
            if current is None:
                return False
            if int(current.get("version", 1)) != int(expected_version):
                return False
            safe_payload = copy.deepcopy(payload)
            safe_payload["updated_at"] = _utc_now()
            bucket[document_id] = safe_payload
            return True

    def delete_document(self, collection_name: str, document_id: str) -> None:
        """Hard delete a document; missing documents are ignored."""
        with self._lock:
            self._bucket(collection_name).pop(document_id, None)

    def query_documents(
        self,
        collection_name: str,
        filters: Optional[Sequence[FilterTuple]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return documents matching every filter."""
        with self._lock:
            records = [
                self._export(document_id, payload)
                for document_id, payload in self._bucket(collection_name).items()
                if _matches_filters(payload, filters or [])
            ]
        if order_by:
            records.sort(key=lambda item: _orderable_sort_key(item.get(order_by)), reverse=descending)
        if limit is not None:
            records = records[: int(limit)]
        return records
