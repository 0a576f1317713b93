"""Record store backends and entity models."""

from crm_assistant.storage.base import RecordNotFoundError, RecordStore, collection_path
from crm_assistant.storage.memory import InMemoryRecordStore
from crm_assistant.storage.models import Contact, Deal, Project, ProjectTask
from crm_assistant.storage.postgres import PostgresRecordStore

__all__ = [
    "Contact",
    "Deal",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "Project",
    "ProjectTask",
    "RecordNotFoundError",
    "RecordStore",
    "collection_path",
]
