"""Typed state contract for the conversational action workflow."""

from typing import Any, Literal, TypedDict

from pydantic import BaseModel, Field

from crm_assistant.chat.schemas import IntentKind

DraftStage = Literal["gathering", "awaiting_confirmation"]
PipelineStage = Literal["idle", "gathering", "awaiting_confirmation"]


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class ActionDraft(BaseModel):
    """The one in-progress action, accumulated across turns until confirmed or dropped."""

    intent: IntentKind
    fields: dict[str, Any] = Field(default_factory=dict)
    stage: DraftStage


class ChatState(TypedDict, total=False):
    utterance: str
    transcript: list[ChatTurn]
    draft: ActionDraft | None
    confirmed: bool
    reply: str


def initial_state(
    utterance: str,
    transcript: list[ChatTurn],
    draft: ActionDraft | None,
) -> ChatState:
    return {
        "utterance": utterance,
        "transcript": list(transcript),
        "draft": draft,
        "confirmed": False,
        "reply": "",
    }
