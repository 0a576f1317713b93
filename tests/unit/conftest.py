from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from crm_assistant.api.main import create_app
from crm_assistant.config.settings import Settings
from crm_assistant.crm.workspace import CrmWorkspace

from doubles import RecordingStore, ScriptedExtractor

APP_ID = "test-app"
USER_ID = "user-1"


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def workspace(store: RecordingStore) -> Iterator[CrmWorkspace]:
    ws = CrmWorkspace(store, app_id=APP_ID, user_id=USER_ID)
    yield ws
    ws.close()


@pytest.fixture
def extractor() -> ScriptedExtractor:
    return ScriptedExtractor()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        app_id=APP_ID,
        default_user_id="local-user",
        storage_backend="memory",
    )


@pytest.fixture
def client(
    store: RecordingStore, extractor: ScriptedExtractor, settings: Settings
) -> Iterator[TestClient]:
    app = create_app(storage=store, extractor=extractor, settings_override=settings)
    with TestClient(app) as test_client:
        yield test_client
