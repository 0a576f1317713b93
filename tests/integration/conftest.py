from __future__ import annotations

import os
import uuid
from collections.abc import Iterator

import pytest

from crm_assistant.storage.postgres import PostgresRecordStore


@pytest.fixture
def postgres_store() -> Iterator[PostgresRecordStore]:
    if os.getenv("RUN_POSTGRES_INTEGRATION_TESTS") != "1":
        pytest.skip(
            "Set RUN_POSTGRES_INTEGRATION_TESTS=1 and CRM_DATABASE_URL "
            "to run integration tests against PostgreSQL."
        )
    database_url = os.getenv("CRM_DATABASE_URL")
    if not database_url:
        pytest.skip("CRM_DATABASE_URL is required for integration tests.")

    store = PostgresRecordStore(database_url)
    store.migrate()
    yield store


@pytest.fixture
def app_id() -> str:
    # Each test writes under its own namespace so runs never see each other's rows.
    return f"it-{uuid.uuid4().hex[:12]}"
