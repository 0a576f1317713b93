"""Execute node: dispatch a confirmed draft against the CRUD façade."""

from __future__ import annotations

import logging
from datetime import date

from crm_assistant.chat import messages
from crm_assistant.chat.schemas import ExtractedData
from crm_assistant.chat.state import ActionDraft, ChatState
from crm_assistant.crm.views import append_task, find_by_name
from crm_assistant.crm.workspace import CrmWorkspace
from crm_assistant.storage.models import ContactFields, DealFields, ProjectFields

logger = logging.getLogger(__name__)


async def run(state: ChatState, *, workspace: CrmWorkspace) -> ChatState:
    draft = state.get("draft")
    if draft is None:
        return {"draft": None, "reply": messages.CLARIFY}

    try:
        reply = await execute_draft(draft, workspace)
    except Exception:  # noqa: BLE001
        logger.exception("chat_execute event=failed intent=%s", draft.intent)
        reply = messages.SAVE_FAILED
    # The draft is spent whether the action succeeded, failed or found nothing.
    return {"draft": None, "reply": reply}


async def execute_draft(draft: ActionDraft, workspace: CrmWorkspace) -> str:
    data = ExtractedData.model_validate(draft.fields)
    today = date.today().isoformat()
    logger.info("chat_execute event=start intent=%s user_id=%s", draft.intent, workspace.user_id)

    if draft.intent == "add_contact":
        contact = ContactFields.model_validate(
            {
                "name": data.name or "",
                "company": data.company or "",
                "title": data.title or "",
                "email": data.email or "",
                "phone": data.phone or "",
                "notes": data.notes or "",
                "last_contacted": data.last_contacted or today,
            }
        )
        await workspace.add_contact(contact.model_dump())
        return messages.contact_added(data.name or "")

    if draft.intent == "update_deal":
        deal_name = data.deal_name or ""
        matches = find_by_name(workspace.deals, deal_name)
        if not matches:
            return messages.deal_not_found(deal_name)
        if len(matches) > 1:
            logger.warning(
                "chat_execute event=ambiguous_name kind=deals name=%s matches=%d chosen=%s",
                deal_name,
                len(matches),
                matches[0].id,
            )
        target = matches[0]
        changes = {
            "stage": data.stage if data.stage is not None else target.stage,
            "value": data.value if data.value is not None else target.value,
            "expected_close_date": data.expected_close_date or target.expected_close_date,
            "probability": (
                data.probability if data.probability is not None else target.probability
            ),
            "notes": data.notes if data.notes is not None else target.notes,
        }
        # Range checks run on the merged record before any write.
        merged = DealFields.model_validate({**target.model_dump(exclude={"id"}), **changes})
        await workspace.update_deal(target.id, merged.model_dump(include=set(changes)))
        return messages.deal_updated(deal_name)

    if draft.intent == "add_project":
        project_name = data.project_name or data.name or ""
        project = ProjectFields.model_validate(
            {
                "name": project_name,
                "client": data.project_client or data.client or "",
                "start_date": data.start_date or today,
                "end_date": data.end_date or today,
                "progress": data.progress if data.progress is not None else 0,
                "description": data.description or "",
                "tasks": [],
            }
        )
        await workspace.add_project(project.model_dump())
        return messages.project_added(project_name)

    if draft.intent == "add_task_to_project":
        project_name = data.project_name or ""
        task_name = data.task_name or ""
        matches = find_by_name(workspace.projects, project_name)
        if not matches:
            return messages.project_not_found(project_name)
        if len(matches) > 1:
            logger.warning(
                "chat_execute event=ambiguous_name kind=projects name=%s matches=%d chosen=%s",
                project_name,
                len(matches),
                matches[0].id,
            )
        target = matches[0]
        tasks = append_task(target.tasks, task_name)
        await workspace.update_project(
            target.id,
            {"tasks": [task.model_dump() for task in tasks]},
        )
        return messages.task_added(task_name, project_name)

    return messages.CLARIFY
