"""Tests for the document store backends."""

from threading import Thread
from unittest.mock import MagicMock

import pytest
from google.api_core.exceptions import AlreadyExists, NotFound

from billing_sync.repositories.document_store import (
    DocumentNotFoundError,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
)


@pytest.fixture
def memory_store():
    store = InMemoryDocumentStore()
    yield store
    store.clear()


class TestInMemoryDocumentStore:
    """Test in-memory semantics."""

    def test_store_initializes_empty(self, memory_store):
        assert memory_store.count() == 0
        assert len(memory_store) == 0
        assert memory_store.get("users/u1/subscription/status") is None

    def test_set_and_get(self, memory_store):
        memory_store.set("a/1", {"x": 1})

        assert memory_store.get("a/1") == {"x": 1}
        assert "a/1" in memory_store

    def test_set_without_merge_replaces(self, memory_store):
        memory_store.set("a/1", {"x": 1, "y": 2})
        memory_store.set("a/1", {"x": 3})

        assert memory_store.get("a/1") == {"x": 3}

    def test_merge_preserves_other_fields(self, memory_store):
        memory_store.set("a/1", {"x": 1, "y": 2})
        memory_store.set("a/1", {"x": 3}, merge=True)

        assert memory_store.get("a/1") == {"x": 3, "y": 2}

    def test_merge_creates_missing_document(self, memory_store):
        memory_store.set("a/1", {"x": 1}, merge=True)
        assert memory_store.get("a/1") == {"x": 1}

    def test_update_requires_existing_document(self, memory_store):
        with pytest.raises(DocumentNotFoundError):
            memory_store.update("a/1", {"x": 1})
        assert memory_store.get("a/1") is None

    def test_update_merges(self, memory_store):
        memory_store.set("a/1", {"x": 1, "y": 2})
        memory_store.update("a/1", {"y": 5})

        assert memory_store.get("a/1") == {"x": 1, "y": 5}

    def test_create_is_first_writer_wins(self, memory_store):
        assert memory_store.create("a/1", {"x": 1}) is True
        assert memory_store.create("a/1", {"x": 2}) is False
        assert memory_store.get("a/1") == {"x": 1}

    def test_pop_removes(self, memory_store):
        memory_store.set("a/1", {"x": 1})

        assert memory_store.pop("a/1") == {"x": 1}
        assert memory_store.pop("a/1") is None
        assert "a/1" not in memory_store

    def test_returned_documents_are_copies(self, memory_store):
        memory_store.set("a/1", {"nested": {"x": 1}})

        document = memory_store.get("a/1")
        document["nested"]["x"] = 99

        assert memory_store.get("a/1") == {"nested": {"x": 1}}

    def test_concurrent_create_admits_exactly_one(self, memory_store):
        results = []

        def worker():
            results.append(memory_store.create("stripe_events/evt_1", {"processed": True}))

        threads = [Thread(target=worker) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert results.count(True) == 1
        assert results.count(False) == 19


class TestFirestoreDocumentStore:
    """Test the Firestore backend against a mocked client."""

    @pytest.fixture
    def client(self):
        return MagicMock()

    def test_get_missing(self, client):
        client.document.return_value.get.return_value.exists = False

        assert FirestoreDocumentStore(client).get("a/1") is None
        client.document.assert_called_with("a/1")

    def test_get_existing(self, client):
        snapshot = client.document.return_value.get.return_value
        snapshot.exists = True
        snapshot.to_dict.return_value = {"x": 1}

        assert FirestoreDocumentStore(client).get("a/1") == {"x": 1}

    def test_set_passes_merge(self, client):
        FirestoreDocumentStore(client).set("a/1", {"x": 1}, merge=True)

        client.document.return_value.set.assert_called_once_with({"x": 1}, merge=True)

    def test_update_missing_raises(self, client):
        client.document.return_value.update.side_effect = NotFound("missing")

        with pytest.raises(DocumentNotFoundError):
            FirestoreDocumentStore(client).update("a/1", {"x": 1})

    def test_create_conflict_returns_false(self, client):
        client.document.return_value.create.side_effect = AlreadyExists("exists")

        assert FirestoreDocumentStore(client).create("a/1", {"x": 1}) is False

    def test_create_success(self, client):
        assert FirestoreDocumentStore(client).create("a/1", {"x": 1}) is True
        client.document.return_value.create.assert_called_once_with({"x": 1})
