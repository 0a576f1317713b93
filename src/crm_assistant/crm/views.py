"""Derived view state computed from workspace snapshots."""

from __future__ import annotations

from datetime import date
from typing import Literal, Sequence, TypeVar
from uuid import uuid4

from pydantic import BaseModel, Field

from crm_assistant.storage.models import (
    PIPELINE_STAGES,
    WON_STAGE,
    Contact,
    Deal,
    DealStage,
    Project,
    ProjectTask,
)

TNamed = TypeVar("TNamed", Contact, Deal, Project)


class ActivityItem(BaseModel):
    type: Literal["contact", "deal", "project"]
    name: str
    date: str
    stage: str | None = None
    client: str | None = None


class DashboardSummary(BaseModel):
    total_contacts: int = 0
    active_deals: int = 0
    pipeline_value: float = 0
    closed_deals: int = 0
    recent_activity: list[ActivityItem] = Field(default_factory=list)
    upcoming_deals: list[Deal] = Field(default_factory=list)


def build_dashboard(
    contacts: Sequence[Contact],
    deals: Sequence[Deal],
    projects: Sequence[Project],
    *,
    recent_limit: int = 5,
    upcoming_limit: int = 3,
) -> DashboardSummary:
    open_deals = [deal for deal in deals if deal.stage != WON_STAGE]
    activity = [
        *(ActivityItem(type="contact", name=c.name, date=c.last_contacted or "N/A") for c in contacts),
        *(
            ActivityItem(type="deal", name=d.name, stage=d.stage, date=d.expected_close_date or "N/A")
            for d in deals
        ),
        *(
            ActivityItem(type="project", name=p.name, client=p.client, date=p.start_date or "N/A")
            for p in projects
        ),
    ]
    # Undated entries sort last.
    activity.sort(key=lambda item: _parse_date(item.date) or date.min, reverse=True)
    upcoming = sorted(open_deals, key=lambda deal: _parse_date(deal.expected_close_date) or date.max)

    return DashboardSummary(
        total_contacts=len(contacts),
        active_deals=len(open_deals),
        pipeline_value=sum(deal.value or 0 for deal in open_deals),
        closed_deals=len(deals) - len(open_deals),
        recent_activity=activity[:recent_limit],
        upcoming_deals=upcoming[:upcoming_limit],
    )


def filter_contacts(contacts: Sequence[Contact], query: str) -> list[Contact]:
    """Case-insensitive substring search over name, company and email."""
    needle = query.strip().lower()
    if not needle:
        return list(contacts)
    return [
        contact
        for contact in contacts
        if needle in contact.name.lower()
        or needle in contact.company.lower()
        or needle in contact.email.lower()
    ]


def deals_by_stage(deals: Sequence[Deal]) -> dict[str, list[Deal]]:
    board: dict[str, list[Deal]] = {stage: [] for stage in PIPELINE_STAGES}
    for deal in deals:
        board.setdefault(deal.stage, []).append(deal)
    return board


def can_move_deal(current_stage: DealStage, new_stage: DealStage) -> bool:
    """Forward moves go one stage at a time; moving back or straight to won is always allowed."""
    current_index = PIPELINE_STAGES.index(current_stage)
    new_index = PIPELINE_STAGES.index(new_stage)
    return new_index == current_index + 1 or new_index < current_index or new_stage == WON_STAGE


def project_status(project: Project) -> str:
    return "Completed" if project.progress == 100 else "In Progress"


def find_by_name(records: Sequence[TNamed], name: str | None) -> list[TNamed]:
    """Return every record whose name equals ``name`` ignoring case, in snapshot order."""
    if not name:
        return []
    target = name.lower()
    return [record for record in records if record.name.lower() == target]


def append_task(tasks: Sequence[ProjectTask], name: str) -> list[ProjectTask]:
    taken = {task.id for task in tasks}
    task_id = str(uuid4())
    while task_id in taken:
        task_id = str(uuid4())
    return [*tasks, ProjectTask(id=task_id, name=name, completed=False)]


def toggle_task(tasks: Sequence[ProjectTask], task_id: str) -> list[ProjectTask]:
    return [
        task.model_copy(update={"completed": not task.completed}) if task.id == task_id else task
        for task in tasks
    ]


def remove_task(tasks: Sequence[ProjectTask], task_id: str) -> list[ProjectTask]:
    return [task for task in tasks if task.id != task_id]


def _parse_date(raw: str | None) -> date | None:
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except ValueError:
        return None
