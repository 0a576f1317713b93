"""Request and response bodies that only exist at the HTTP boundary."""

from __future__ import annotations

from pydantic import BaseModel, Field

from crm_assistant.chat.state import ChatTurn, PipelineStage
from crm_assistant.storage.models import DealStage


class MoveDealRequest(BaseModel):
    stage: DealStage


class AddTaskRequest(BaseModel):
    name: str = Field(min_length=1)


class ChatMessageRequest(BaseModel):
    text: str


class ChatSessionView(BaseModel):
    session_id: str
    stage: PipelineStage
    pending: bool
    transcript: list[ChatTurn] = Field(default_factory=list)


class ChatReplyView(ChatSessionView):
    # None when the submitted text was blank and nothing was appended.
    reply: ChatTurn | None = None
