"""Listener registry used by store backends to push collection snapshots."""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

from crm_assistant.storage.base import Document, Listener, Unsubscribe

logger = logging.getLogger(__name__)


class SubscriptionHub:
    """Fan out ordered record sets to every listener of a collection path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def add(self, path: str, listener: Listener) -> Unsubscribe:
        with self._lock:
            self._listeners[path].append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(path, [])
                if listener in listeners:
                    listeners.remove(listener)

        return _unsubscribe

    def has_listeners(self, path: str) -> bool:
        with self._lock:
            return bool(self._listeners.get(path))

    def publish(self, path: str, documents: list[Document]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(path, []))
        for listener in listeners:
            try:
                listener([dict(document) for document in documents])
            except Exception:  # noqa: BLE001
                logger.exception("store_subscription event=listener_failed path=%s", path)
