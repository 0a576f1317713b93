"""Structured output contract of the intent extraction service."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from crm_assistant.storage.models import PIPELINE_STAGES, DealStage

IntentKind = Literal["add_contact", "update_deal", "add_project", "add_task_to_project", "none"]
INTENT_KINDS: tuple[str, ...] = (
    "add_contact",
    "update_deal",
    "add_project",
    "add_task_to_project",
    "none",
)


class WireModel(BaseModel):
    """Accepts the camelCase names the model emits and ignores anything unknown."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ExtractedData(WireModel):
    # Contact
    name: str | None = None
    company: str | None = None
    title: str | None = None
    email: str | None = None
    phone: str | None = None
    notes: str | None = None
    last_contacted: str | None = Field(default=None, alias="lastContacted")
    # Deal
    deal_name: str | None = Field(default=None, alias="dealName")
    deal_company: str | None = Field(default=None, alias="dealCompany")
    value: float | None = None
    stage: DealStage | None = None
    expected_close_date: str | None = Field(default=None, alias="expectedCloseDate")
    probability: float | None = None
    # Project
    project_name: str | None = Field(default=None, alias="projectName")
    project_client: str | None = Field(default=None, alias="projectClient")
    client: str | None = None
    start_date: str | None = Field(default=None, alias="startDate")
    end_date: str | None = Field(default=None, alias="endDate")
    progress: float | None = None
    description: str | None = None
    # Task
    project_id: str | None = Field(default=None, alias="projectId")
    task_name: str | None = Field(default=None, alias="taskName")

    def as_fields(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ExtractionResponse(WireModel):
    intent: IntentKind = "none"
    data: ExtractedData = Field(default_factory=ExtractedData)
    missing_fields: list[str] = Field(default_factory=list, alias="missingFields")
    confirmation_message: str = Field(default="", alias="confirmationMessage")

    @field_validator("data", mode="before")
    @classmethod
    def _data_or_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("missing_fields", mode="before")
    @classmethod
    def _missing_as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("confirmation_message", mode="before")
    @classmethod
    def _message_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value


def _string(**extra: Any) -> dict[str, Any]:
    return {"type": "STRING", **extra}


def _number() -> dict[str, Any]:
    return {"type": "NUMBER"}


# Gemini responseSchema (OpenAPI subset); every data field is optional.
RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "intent": _string(enum=list(INTENT_KINDS)),
        "data": {
            "type": "OBJECT",
            "properties": {
                "name": _string(),
                "company": _string(),
                "title": _string(),
                "email": _string(),
                "phone": _string(),
                "notes": _string(),
                "lastContacted": _string(description="YYYY-MM-DD"),
                "dealName": _string(),
                "dealCompany": _string(),
                "value": _number(),
                "stage": _string(enum=list(PIPELINE_STAGES)),
                "expectedCloseDate": _string(description="YYYY-MM-DD"),
                "probability": _number(),
                "projectName": _string(),
                "projectClient": _string(),
                "client": _string(),
                "startDate": _string(description="YYYY-MM-DD"),
                "endDate": _string(description="YYYY-MM-DD"),
                "progress": _number(),
                "description": _string(),
                "projectId": _string(),
                "taskName": _string(),
            },
        },
        "missingFields": {"type": "ARRAY", "items": _string()},
        "confirmationMessage": _string(),
    },
    "required": ["intent"],
}
