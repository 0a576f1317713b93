"""Per-user workspace: live entity snapshots plus the CRUD façade over the record store."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Literal, TypeVar

from pydantic import BaseModel

from crm_assistant.storage.base import Document, RecordStore, Unsubscribe, collection_path
from crm_assistant.storage.models import (
    CollectionKind,
    Contact,
    Deal,
    NotificationPreferences,
    Profile,
    Project,
)

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel", bound=BaseModel)
SettingsDocument = Literal["profile", "notifications"]

_SETTINGS_MODELS: dict[str, type[BaseModel]] = {
    "profile": Profile,
    "notifications": NotificationPreferences,
}


class WorkspaceSnapshot(BaseModel):
    """Point-in-time view of a user's records, ordered by id."""

    contacts: list[Contact]
    deals: list[Deal]
    projects: list[Project]


class CrmWorkspace:
    """Holds the current record sets for one user and mutates them through the store.

    Snapshots are only replaced by store subscription callbacks; the façade
    methods never write them directly.
    """

    def __init__(self, store: RecordStore, *, app_id: str, user_id: str) -> None:
        self.store = store
        self.app_id = app_id
        self.user_id = user_id
        self.contacts: list[Contact] = []
        self.deals: list[Deal] = []
        self.projects: list[Project] = []
        self._unsubscribers: list[Unsubscribe] = [
            store.subscribe(self._path("contacts"), self._listener("contacts", Contact)),
            store.subscribe(self._path("deals"), self._listener("deals", Deal)),
            store.subscribe(self._path("projects"), self._listener("projects", Project)),
        ]

    def snapshot(self) -> WorkspaceSnapshot:
        return WorkspaceSnapshot(
            contacts=list(self.contacts),
            deals=list(self.deals),
            projects=list(self.projects),
        )

    def close(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    async def add_contact(self, data: dict[str, Any]) -> str:
        return await self._create("contacts", data)

    async def update_contact(self, record_id: str, patch: dict[str, Any]) -> None:
        await self._update("contacts", record_id, patch)

    async def delete_contact(self, record_id: str) -> None:
        await self._delete("contacts", record_id)

    async def add_deal(self, data: dict[str, Any]) -> str:
        return await self._create("deals", data)

    async def update_deal(self, record_id: str, patch: dict[str, Any]) -> None:
        await self._update("deals", record_id, patch)

    async def delete_deal(self, record_id: str) -> None:
        await self._delete("deals", record_id)

    async def add_project(self, data: dict[str, Any]) -> str:
        return await self._create("projects", data)

    async def update_project(self, record_id: str, patch: dict[str, Any]) -> None:
        await self._update("projects", record_id, patch)

    async def delete_project(self, record_id: str) -> None:
        await self._delete("projects", record_id)

    async def load_settings(self, name: SettingsDocument) -> BaseModel:
        model = _SETTINGS_MODELS[name]
        document = await asyncio.to_thread(self.store.get, self._path("settings"), name)
        if document is None:
            return model()
        document.pop("id", None)
        return model.model_validate(document)

    async def save_settings(self, name: SettingsDocument, data: dict[str, Any]) -> BaseModel:
        path = self._path("settings")
        try:
            await asyncio.to_thread(self.store.set, path, name, data, merge=True)
        except Exception:
            logger.exception("crud event=save_failed path=%s record_id=%s", path, name)
            raise
        return await self.load_settings(name)

    async def _create(self, kind: CollectionKind, data: dict[str, Any]) -> str:
        path = self._path(kind)
        try:
            record_id = await asyncio.to_thread(self.store.create, path, data)
        except Exception:
            logger.exception("crud event=create_failed path=%s", path)
            raise
        logger.info("crud event=created kind=%s record_id=%s user_id=%s", kind, record_id, self.user_id)
        return record_id

    async def _update(self, kind: CollectionKind, record_id: str, patch: dict[str, Any]) -> None:
        path = self._path(kind)
        try:
            await asyncio.to_thread(self.store.update, path, record_id, patch)
        except Exception:
            logger.exception("crud event=update_failed path=%s record_id=%s", path, record_id)
            raise
        logger.info("crud event=updated kind=%s record_id=%s user_id=%s", kind, record_id, self.user_id)

    async def _delete(self, kind: CollectionKind, record_id: str) -> None:
        path = self._path(kind)
        try:
            await asyncio.to_thread(self.store.delete, path, record_id)
        except Exception:
            logger.exception("crud event=delete_failed path=%s record_id=%s", path, record_id)
            raise
        logger.info("crud event=deleted kind=%s record_id=%s user_id=%s", kind, record_id, self.user_id)

    def _path(self, kind: CollectionKind) -> str:
        return collection_path(self.app_id, self.user_id, kind)

    def _listener(
        self, attribute: str, model: type[TModel]
    ) -> Callable[[list[Document]], None]:
        def _on_snapshot(documents: list[Document]) -> None:
            setattr(self, attribute, [model.model_validate(document) for document in documents])

        return _on_snapshot


class WorkspaceRegistry:
    """Lazily opens one workspace per user identity."""

    def __init__(self, store: RecordStore, *, app_id: str) -> None:
        self.store = store
        self.app_id = app_id
        self._workspaces: dict[str, CrmWorkspace] = {}

    def get(self, user_id: str) -> CrmWorkspace:
        workspace = self._workspaces.get(user_id)
        if workspace is None:
            workspace = CrmWorkspace(self.store, app_id=self.app_id, user_id=user_id)
            self._workspaces[user_id] = workspace
        return workspace

    def close(self) -> None:
        for workspace in self._workspaces.values():
            workspace.close()
        self._workspaces.clear()
