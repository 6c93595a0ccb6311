"""Firestore document access for the loan ledger collections."""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from google.cloud import firestore
from google.oauth2 import service_account


logger = logging.getLogger(__name__)

FilterTuple = Tuple[str, str, Any]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _snapshot_payload(snapshot: Any) -> Dict[str, Any]:
    """Flatten a snapshot into its fields plus the document id."""
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


class FirebaseClientManager:
    """Thin Firestore wrapper used by every repository.

    `InMemoryDocumentStore` mirrors this method surface so repositories work
    against either backend.
    """

    def __init__(self, project_id: Optional[str] = None, credentials_path: Optional[str] = None) -> None:
        """Connect with a service account file, or with ambient credentials when none is given."""
        try:
            kwargs: Dict[str, Any] = {}
            if project_id:
                kwargs["project"] = project_id
            if credentials_path:
                kwargs["credentials"] = service_account.Credentials.from_service_account_file(credentials_path)
            self._client = firestore.Client(**kwargs)
            logger.info(
                "Firestore client ready project_id=%s service_account=%s",
                project_id,
                bool(credentials_path),
            )
        except Exception:
            logger.exception("Could not create Firestore client project_id=%s", project_id)
            raise

    def _ref(self, collection_name: str, document_id: str) -> Any:
        return self._client.collection(collection_name).document(document_id)

    def set_document(
        self,
        collection_name: str,
        document_id: str,
        payload: Dict[str, Any],
        merge: bool = False,
    ) -> Dict[str, Any]:
        """Write a document and return what was stored.

        Timestamps already present in `payload` win over the defaults.
        """
        ref = self._ref(collection_name, document_id)
        stamped = {"created_at": _utc_now(), "updated_at": _utc_now()}
        stamped.update(payload)
        try:
            ref.set(stamped, merge=merge)
            return _snapshot_payload(ref.get())
        except Exception:
            logger.exception("Firestore set failed %s/%s merge=%s", collection_name, document_id, merge)
            raise

    def get_document(self, collection_name: str, document_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = self._ref(collection_name, document_id).get()
        except Exception:
            logger.exception("Firestore get failed %s/%s", collection_name, document_id)
            raise
        return _snapshot_payload(snapshot) if snapshot.exists else None

    def update_document(
        self,
        collection_name: str,
        document_id: str,
        payload: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Merge `payload` into a document, creating it when absent."""
        ref = self._ref(collection_name, document_id)
        changes = dict(payload, updated_at=_utc_now())
        try:
            ref.set(changes, merge=True)
            return _snapshot_payload(ref.get())
        except Exception:
            logger.exception("Firestore merge failed %s/%s", collection_name, document_id)
            raise

    def replace_document_if_version(
        self,
        collection_name: str,
        document_id: str,
        payload: Dict[str, Any],
        expected_version: int,
    ) -> bool:
        """Compare-and-set on the `version` field inside one transaction.

        Returns:
            bool: False when the document is gone or another writer bumped the version.
        """
        ref = self._ref(collection_name, document_id)

        @firestore.transactional
        def _swap(transaction: Any) -> bool:
            snapshot = ref.get(transaction=transaction)
            if not snapshot.exists:
                return False
            stored_version = int((snapshot.to_dict() or {}).get("version", 1))
            if stored_version != int(expected_version):
                logger.info(
                    "Version moved %s/%s expected=%s stored=%s",
                    collection_name,
                    document_id,
                    expected_version,
                    stored_version,
                )
                return False
            transaction.set(ref, dict(payload, updated_at=_utc_now()))
            return True

        try:
            return _swap(self._client.transaction())
        except Exception:
            logger.exception("Firestore versioned write failed %s/%s", collection_name, document_id)
            raise

    def delete_document(self, collection_name: str, document_id: str) -> None:
        """Hard delete; Firestore treats a missing document as already deleted."""
        try:
            self._ref(collection_name, document_id).delete()
        except Exception:
            logger.exception("Firestore delete failed %s/%s", collection_name, document_id)
            raise

    def query_documents(
        self,
        collection_name: str,
        filters: Optional[Sequence[FilterTuple]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Return documents matching every `(field, op, value)` filter.

        Ordering on a field combined with equality filters needs a composite
        index in Firestore; the repositories mostly sort in Python instead.
        """
        query = self._client.collection(collection_name)
        for field_name, operator, value in filters or []:
            query = query.where(filter=firestore.FieldFilter(field_name, operator, value))
        if order_by:
            direction = firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(int(limit))
        try:
            return [_snapshot_payload(snapshot) for snapshot in query.stream()]
        except Exception:
            logger.exception("Firestore query failed collection=%s filters=%s", collection_name, filters)
            raise
