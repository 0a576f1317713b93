"""Assistant reply texts."""

from __future__ import annotations

import json
from typing import Any

GREETING = (
    "Hello! I'm your CRM assistant. How can I help you today? "
    "You can ask me to add a contact, update a deal, or manage a project."
)
CANCELLED = "Okay, I've cancelled the operation. What else can I help you with?"
YES_OR_NO = "Please respond with 'yes' or 'no'."
CLARIFY = (
    "I'm not sure how to help with that. Could you please rephrase or tell me what "
    "you'd like to do (e.g., 'add contact', 'update deal', 'add project')?"
)
COULD_NOT_PROCESS = "I apologize, I couldn't process that request. Please try again."
TROUBLE_CONNECTING = "I'm having trouble connecting to the AI. Please try again later."
SAVE_FAILED = "An error occurred while trying to save the information. Please try again."


def need_more_information(missing_fields: list[str]) -> str:
    return f"I need more information. Please provide the following: {', '.join(missing_fields)}."


def forced_confirmation(fields: dict[str, Any]) -> str:
    return (
        "I have gathered the information and am ready to proceed. "
        f"Please confirm with 'yes' or 'no'. Details: {json.dumps(fields, ensure_ascii=False)}"
    )


def contact_added(name: str) -> str:
    return f'Contact "{name}" added successfully!'


def deal_updated(name: str) -> str:
    return f'Deal "{name}" updated successfully!'


def deal_not_found(name: str) -> str:
    return f'Deal "{name}" not found. Please specify an existing deal.'


def project_added(name: str) -> str:
    return f'Project "{name}" added successfully!'


def task_added(task_name: str, project_name: str) -> str:
    return f'Task "{task_name}" added to project "{project_name}" successfully!'


def project_not_found(name: str) -> str:
    return f'Project "{name}" not found. Please specify an existing project.'
