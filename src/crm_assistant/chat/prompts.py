"""System instruction sent with every extraction request."""

from __future__ import annotations

from crm_assistant.crm.workspace import WorkspaceSnapshot
from crm_assistant.storage.models import PIPELINE_STAGES

_EXAMPLES = """\
User: "Add a new contact named John Doe from Acme Corp, email john@acme.com"
JSON: {"intent": "add_contact", "data": {"name": "John Doe", "company": "Acme Corp", "email": "john@acme.com"}, "missingFields": [], "confirmationMessage": "I have the following details for a new contact: Name: John Doe, Company: Acme Corp, Email: john@acme.com. Is this correct?"}
User: "Update the deal 'Acme Project' to 'Proposal Accepted (Won)'"
JSON: {"intent": "update_deal", "data": {"dealName": "Acme Project", "stage": "Proposal Accepted (Won)"}, "missingFields": [], "confirmationMessage": "I will update the deal 'Acme Project' to 'Proposal Accepted (Won)'. Confirm?"}
User: "Create a new project for Google called 'Website Redesign', starting tomorrow and ending in 3 months."
JSON: {"intent": "add_project", "data": {"projectClient": "Google", "projectName": "Website Redesign", "startDate": "2024-07-17", "endDate": "2024-10-17"}, "missingFields": [], "confirmationMessage": "I will create a project named 'Website Redesign' for Google from 2024-07-17 to 2024-10-17. Is this correct?"}
User: "Add a task 'Design wireframes' to project 'Website Redesign'"
JSON: {"intent": "add_task_to_project", "data": {"projectName": "Website Redesign", "taskName": "Design wireframes"}, "missingFields": [], "confirmationMessage": "I will add 'Design wireframes' to the 'Website Redesign' project. Confirm?"}
User: "Add a contact"
JSON: {"intent": "add_contact", "data": {}, "missingFields": ["name", "company", "email"], "confirmationMessage": ""}"""


def build_system_prompt(snapshot: WorkspaceSnapshot, *, today: str) -> str:
    contacts = _names(contact.name for contact in snapshot.contacts)
    deals = _names(deal.name for deal in snapshot.deals)
    projects = _names(project.name for project in snapshot.projects)
    return (
        "You are a CRM assistant. You help the user manage contacts, the sales pipeline "
        "and client projects.\n"
        "Identify the user's intent from the whole conversation and extract every detail "
        "they gave for it. Carry details over from earlier turns.\n"
        "If required details are missing, list them in 'missingFields' and leave "
        "'confirmationMessage' empty.\n"
        "When you have enough to act, write a 'confirmationMessage' that repeats every "
        "collected detail and asks the user to answer 'yes' or 'no'.\n"
        "If the intent is unclear, set intent to 'none'.\n"
        "A deal or project being updated must match one of the existing names below; "
        "if it does not, ask the user to clarify instead of confirming.\n"
        "Dates must be in YYYY-MM-DD format.\n"
        f"Today is {today}.\n"
        f"Pipeline stages: {', '.join(PIPELINE_STAGES)}.\n"
        f"Existing contacts: {contacts}.\n"
        f"Existing deals: {deals}.\n"
        f"Existing projects: {projects}.\n"
        "Examples:\n"
        f"{_EXAMPLES}"
    )


def _names(names) -> str:
    joined = ", ".join(name for name in names if name)
    return joined or "None"
