"""Entity models shared by the API, the workspace snapshot and the chat pipeline."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field

CollectionKind = Literal["contacts", "deals", "projects", "settings"]

DealStage = Literal[
    "Initial Contact",
    "First Meeting Scheduled",
    "First Meeting Held",
    "Proposal Sent",
    "Proposal Accepted (Won)",
]

# Board order, left to right.
PIPELINE_STAGES: tuple[DealStage, ...] = (
    "Initial Contact",
    "First Meeting Scheduled",
    "First Meeting Held",
    "Proposal Sent",
    "Proposal Accepted (Won)",
)
WON_STAGE: DealStage = "Proposal Accepted (Won)"


def today_iso() -> str:
    return date.today().isoformat()


class ContactFields(BaseModel):
    name: str = ""
    company: str = ""
    title: str = ""
    email: str = ""
    phone: str = ""
    notes: str = ""
    last_contacted: str = Field(default_factory=today_iso)


class Contact(ContactFields):
    """Stored contact document."""

    id: str


class DealFields(BaseModel):
    name: str = ""
    company: str = ""
    value: float = 0
    stage: DealStage = "Initial Contact"
    expected_close_date: str = Field(default_factory=today_iso)
    probability: float = Field(default=50, ge=0, le=100)
    notes: str = ""


class Deal(DealFields):
    """Stored deal document."""

    id: str


class ProjectTask(BaseModel):
    id: str
    name: str
    completed: bool = False


class ProjectFields(BaseModel):
    name: str = ""
    client: str = ""
    start_date: str = Field(default_factory=today_iso)
    end_date: str = Field(default_factory=today_iso)
    progress: float = Field(default=0, ge=0, le=100)
    description: str = ""
    tasks: list[ProjectTask] = Field(default_factory=list)


class Project(ProjectFields):
    """Stored project document with its nested task list."""

    id: str


class Profile(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    company: str = ""
    bio: str = ""


class NotificationPreferences(BaseModel):
    email_notifications: bool = False
    deal_reminders: bool = False
    task_notifications: bool = False
    weekly_reports: bool = False
