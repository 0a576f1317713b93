"""PostgreSQL-backed document store with automatic table migration."""

from __future__ import annotations

import json
import logging
import threading
import uuid
from datetime import UTC, datetime
from typing import Any

from crm_assistant.storage.base import Document, Listener, RecordNotFoundError, Unsubscribe
from crm_assistant.storage.subscriptions import SubscriptionHub

logger = logging.getLogger(__name__)


class PostgresRecordStore:
    """Persist collection documents as JSONB rows keyed by (collection path, record id).

    Subscriptions are served in-process: listeners registered on this instance
    receive the refreshed record set after every mutation made through it.
    """

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("CRM_ASSISTANT_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()
        self._hub = SubscriptionHub()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    collection_path TEXT NOT NULL,
                    record_id TEXT NOT NULL,
                    data JSONB NOT NULL DEFAULT '{}'::jsonb,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (collection_path, record_id)
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_records_updated_at
                ON records(updated_at DESC)
                """)
            conn.commit()

    def create(self, path: str, data: Document) -> str:
        record_id = uuid.uuid4().hex
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO records (collection_path, record_id, data, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (path, record_id, self._json_wrapper(_without_id(data)), now, now),
            )
            conn.commit()
        logger.info("record_store event=created path=%s record_id=%s", path, record_id)
        self._publish(path)
        return record_id

    def get(self, path: str, record_id: str) -> Document | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT record_id, data FROM records WHERE collection_path = %s AND record_id = %s",
                (path, record_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_document(row)

    def list(self, path: str) -> list[Document]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT record_id, data
                FROM records
                WHERE collection_path = %s
                ORDER BY record_id
                """,
                (path,),
            ).fetchall()
        return [self._row_to_document(row) for row in rows]

    def update(self, path: str, record_id: str, patch: Document) -> None:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE records
                SET data = data || %s,
                    updated_at = %s
                WHERE collection_path = %s AND record_id = %s
                """,
                (self._json_wrapper(_without_id(patch)), datetime.now(tz=UTC), path, record_id),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record {record_id} does not exist in {path}")
        logger.info("record_store event=updated path=%s record_id=%s", path, record_id)
        self._publish(path)

    def set(self, path: str, record_id: str, data: Document, *, merge: bool = True) -> None:
        now = datetime.now(tz=UTC)
        conflict_update = "records.data || EXCLUDED.data" if merge else "EXCLUDED.data"
        with self._lock, self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO records (collection_path, record_id, data, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s)
                ON CONFLICT (collection_path, record_id)
                DO UPDATE SET data = {conflict_update}, updated_at = EXCLUDED.updated_at
                """,
                (path, record_id, self._json_wrapper(_without_id(data)), now, now),
            )
            conn.commit()
        self._publish(path)

    def delete(self, path: str, record_id: str) -> None:
        with self._lock, self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE collection_path = %s AND record_id = %s",
                (path, record_id),
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(f"Record {record_id} does not exist in {path}")
        logger.info("record_store event=deleted path=%s record_id=%s", path, record_id)
        self._publish(path)

    def subscribe(self, path: str, listener: Listener) -> Unsubscribe:
        unsubscribe = self._hub.add(path, listener)
        listener(self.list(path))
        return unsubscribe

    def _publish(self, path: str) -> None:
        if self._hub.has_listeners(path):
            self._hub.publish(path, self.list(path))

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Jsonb
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Jsonb

    @staticmethod
    def _parse_json_object(raw: Any) -> dict[str, Any]:
        if isinstance(raw, str):
            parsed = json.loads(raw)
        else:
            parsed = raw
        if isinstance(parsed, dict):
            return parsed
        return {}

    @classmethod
    def _row_to_document(cls, row: Any) -> Document:
        return {"id": str(row["record_id"]), **cls._parse_json_object(row["data"])}


def _without_id(data: Document) -> Document:
    return {key: value for key, value in data.items() if key != "id"}
