"""Shared Firestore-backed repository with optimistic version checks."""

import logging
from typing import Any, List, Optional, Sequence, Tuple, Type

from models.base import BaseDocumentModel, utc_now
from models.exceptions import ModelNotFoundError, VersionConflictError


logger = logging.getLogger(__name__)

FilterTuple = Tuple[str, str, Any]


class FirestoreDocumentRepository:
    """Persist and fetch one model type from a document collection.

    `store` is either a `FirebaseClientManager` or an `InMemoryDocumentStore`;
    both expose the same document methods.
    """

    model_cls: Type[BaseDocumentModel] = BaseDocumentModel
    id_field = "id"
    entity_name = "Document"

    def __init__(self, store: Any, collection_name: str) -> None:
        self._store = store
        self._collection_name = collection_name
        logger.info("Initialized %s collection=%s", self.__class__.__name__, collection_name)

    @property
    def collection_name(self) -> str:
        return self._collection_name

    def _document_id(self, model: BaseDocumentModel) -> str:
        return str(getattr(model, self.id_field))

    def _not_found(self, model_id: str) -> ModelNotFoundError:
        return ModelNotFoundError("{0} not found: {1}".format(self.entity_name, model_id))

    def create(self, model):
        """Create and persist a document keyed by the model's identifier."""
        document_id = self._document_id(model)
        try:
            stored = self._store.set_document(
                collection_name=self._collection_name,
                document_id=document_id,
                payload=model.to_firestore(),
                merge=False,
            )
            return self.model_cls.from_firestore(stored, doc_id=document_id)
        except Exception:
            logger.exception("Failed to create %s id=%s", self.entity_name, document_id)
            raise

    def find_by_id(self, model_id: str):
        """Return the model or None when the document does not exist."""
        payload = self._store.get_document(self._collection_name, model_id)
        if payload is None:
            return None
        return self.model_cls.from_firestore(payload, doc_id=model_id)

    def get_by_id(self, model_id: str):
        """Fetch a model by identifier.

        Raises:
            ModelNotFoundError: If document does not exist.
        """
        model = self.find_by_id(model_id)
        if model is None:
            raise self._not_found(model_id)
        return model

    def update(self, model):
        """Replace a document using optimistic version checks.

        The caller bumps `model.version` by one before saving. The write only
        lands while the stored version still equals `model.version - 1`.

        Raises:
            ModelNotFoundError: If the document does not exist.
            VersionConflictError: If another writer got there first.
        """
        document_id = self._document_id(model)
        current = self.get_by_id(document_id)
        if model.version <= current.version:
            raise VersionConflictError(
                "Version conflict for {0} id={1}".format(self.entity_name, document_id)
            )
        model.updated_at = utc_now()
        written = self._store.replace_document_if_version(
            collection_name=self._collection_name,
            document_id=document_id,
            payload=model.to_firestore(),
            expected_version=model.version - 1,
        )
        if not written:
            raise VersionConflictError(
                "Version conflict for {0} id={1}".format(self.entity_name, document_id)
            )
        return self.get_by_id(document_id)

    def delete(self, model_id: str) -> None:
        """Hard delete a document.

        Raises:
            ModelNotFoundError: If document does not exist.
        """
        if self._store.get_document(self._collection_name, model_id) is None:
            raise self._not_found(model_id)
        self._store.delete_document(self._collection_name, model_id)

    def _query(
        self,
        filters: Optional[Sequence[FilterTuple]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List:
        try:
            payloads = self._store.query_documents(
                collection_name=self._collection_name,
                filters=filters,
                order_by=order_by,
                descending=descending,
            )
            return [self.model_cls.from_firestore(payload, doc_id=payload.get("id")) for payload in payloads]
        except Exception:
            logger.exception("Failed to query %s collection=%s", self.entity_name, self._collection_name)
            raise
