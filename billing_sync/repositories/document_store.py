"""Key-path document store used for subscription records, event tombstones and OAuth state.

Two backends share one interface:
- InMemoryDocumentStore: thread-safe dict storage for local runs and tests
- FirestoreDocumentStore: Cloud Firestore through the Firebase Admin SDK
"""

import copy
import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from google.api_core.exceptions import Conflict, NotFound
from google.cloud import firestore

from billing_sync.logging_config import get_logger

logger = get_logger(__name__)


class DocumentNotFoundError(Exception):
    """Raised when updating a document that does not exist."""

    pass


class DocumentStore(ABC):
    """Document store addressed by slash-separated paths (``collection/doc/collection/doc``)."""

    @abstractmethod
    def get(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the document data, or None if it does not exist."""

    @abstractmethod
    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Write a document. With merge=True, only the given fields are overwritten."""

    @abstractmethod
    def update(self, path: str, data: Dict[str, Any]) -> None:
        """Overwrite the given fields of an existing document.

        Raises:
            DocumentNotFoundError: If the document does not exist
        """

    @abstractmethod
    def create(self, path: str, data: Dict[str, Any]) -> bool:
        """Atomically create a document if it does not exist.

        Returns:
            True if created, False if a document already existed (nothing written)
        """

    @abstractmethod
    def pop(self, path: str) -> Optional[Dict[str, Any]]:
        """Atomically read and delete a document. Returns None if it did not exist."""


class InMemoryDocumentStore(DocumentStore):
    """In-memory document storage.

    Thread-safe; documents are copied on the way in and out so callers cannot
    mutate stored state.
    """

    def __init__(self):
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.RLock()

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._documents.get(path)
            return copy.deepcopy(document) if document is not None else None

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        with self._lock:
            if merge and path in self._documents:
                self._documents[path].update(copy.deepcopy(data))
            else:
                self._documents[path] = copy.deepcopy(data)

    def update(self, path: str, data: Dict[str, Any]) -> None:
        with self._lock:
            if path not in self._documents:
                raise DocumentNotFoundError(f"Document not found: {path}")
            self._documents[path].update(copy.deepcopy(data))

    def create(self, path: str, data: Dict[str, Any]) -> bool:
        with self._lock:
            if path in self._documents:
                return False
            self._documents[path] = copy.deepcopy(data)
            return True

    def pop(self, path: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self._documents.pop(path, None)

    def exists(self, path: str) -> bool:
        with self._lock:
            return path in self._documents

    def count(self) -> int:
        with self._lock:
            return len(self._documents)

    def clear(self) -> None:
        """Remove all documents.

        Warning: This removes all data. Use with caution.
        """
        with self._lock:
            self._documents.clear()

    def __len__(self) -> int:
        return self.count()

    def __contains__(self, path: str) -> bool:
        return self.exists(path)

    def __repr__(self) -> str:
        return f"InMemoryDocumentStore(documents={self.count()})"


class FirestoreDocumentStore(DocumentStore):
    """Cloud Firestore backend."""

    def __init__(self, client: firestore.Client):
        self._client = client

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        snapshot = self._client.document(path).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._client.document(path).set(data, merge=merge)

    def update(self, path: str, data: Dict[str, Any]) -> None:
        try:
            self._client.document(path).update(data)
        except NotFound as e:
            raise DocumentNotFoundError(f"Document not found: {path}") from e

    def create(self, path: str, data: Dict[str, Any]) -> bool:
        try:
            self._client.document(path).create(data)
            return True
        except Conflict:
            # AlreadyExists is a Conflict subclass
            logger.debug("document_already_exists", path=path)
            return False

    def pop(self, path: str) -> Optional[Dict[str, Any]]:
        reference = self._client.document(path)
        transaction = self._client.transaction()
        return _pop_in_transaction(transaction, reference)


@firestore.transactional
def _pop_in_transaction(transaction, reference) -> Optional[Dict[str, Any]]:
    snapshot = reference.get(transaction=transaction)
    if not snapshot.exists:
        return None
    transaction.delete(reference)
    return snapshot.to_dict() or {}
