"""Record store interface: per-collection document CRUD plus live subscription."""

from __future__ import annotations

from typing import Any, Callable, Protocol

from crm_assistant.storage.models import CollectionKind

Document = dict[str, Any]
Listener = Callable[[list[Document]], None]
Unsubscribe = Callable[[], None]


class RecordNotFoundError(KeyError):
    """Raised when a mutation targets a document id that does not exist."""


def collection_path(app_id: str, user_id: str, kind: CollectionKind) -> str:
    """Namespace a collection per application instance and per user identity."""
    if not app_id or not user_id:
        raise ValueError("app_id and user_id are required to build a collection path")
    return f"artifacts/{app_id}/users/{user_id}/{kind}"


class RecordStore(Protocol):
    def migrate(self) -> None: ...

    def create(self, path: str, data: Document) -> str: ...

    def get(self, path: str, record_id: str) -> Document | None: ...

    def list(self, path: str) -> list[Document]: ...

    def update(self, path: str, record_id: str, patch: Document) -> None: ...

    def set(self, path: str, record_id: str, data: Document, *, merge: bool = True) -> None: ...

    def delete(self, path: str, record_id: str) -> None: ...

    def subscribe(self, path: str, listener: Listener) -> Unsubscribe: ...
