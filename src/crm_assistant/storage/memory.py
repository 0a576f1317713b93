"""In-memory record store for tests and local development."""

from __future__ import annotations

import copy
import threading
from uuid import uuid4

from crm_assistant.storage.base import Document, Listener, RecordNotFoundError, Unsubscribe
from crm_assistant.storage.subscriptions import SubscriptionHub


class InMemoryRecordStore:
    """Document collections kept in process memory, keyed by collection path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._collections: dict[str, dict[str, Document]] = {}
        self._hub = SubscriptionHub()

    def migrate(self) -> None:
        return None

    def create(self, path: str, data: Document) -> str:
        record_id = uuid4().hex
        with self._lock:
            collection = self._collections.setdefault(path, {})
            collection[record_id] = _without_id(data)
        self._publish(path)
        return record_id

    def get(self, path: str, record_id: str) -> Document | None:
        with self._lock:
            document = self._collections.get(path, {}).get(record_id)
            if document is None:
                return None
            return {"id": record_id, **copy.deepcopy(document)}

    def list(self, path: str) -> list[Document]:
        with self._lock:
            collection = self._collections.get(path, {})
            return [
                {"id": record_id, **copy.deepcopy(collection[record_id])}
                for record_id in sorted(collection)
            ]

    def update(self, path: str, record_id: str, patch: Document) -> None:
        with self._lock:
            collection = self._collections.get(path, {})
            current = collection.get(record_id)
            if current is None:
                raise RecordNotFoundError(f"Record {record_id} does not exist in {path}")
            collection[record_id] = {**current, **_without_id(patch)}
        self._publish(path)

    def set(self, path: str, record_id: str, data: Document, *, merge: bool = True) -> None:
        with self._lock:
            collection = self._collections.setdefault(path, {})
            current = collection.get(record_id, {}) if merge else {}
            collection[record_id] = {**current, **_without_id(data)}
        self._publish(path)

    def delete(self, path: str, record_id: str) -> None:
        with self._lock:
            collection = self._collections.get(path, {})
            if record_id not in collection:
                raise RecordNotFoundError(f"Record {record_id} does not exist in {path}")
            del collection[record_id]
        self._publish(path)

    def subscribe(self, path: str, listener: Listener) -> Unsubscribe:
        unsubscribe = self._hub.add(path, listener)
        listener(self.list(path))
        return unsubscribe

    def _publish(self, path: str) -> None:
        if self._hub.has_listeners(path):
            self._hub.publish(path, self.list(path))


def _without_id(data: Document) -> Document:
    return {key: copy.deepcopy(value) for key, value in data.items() if key != "id"}
