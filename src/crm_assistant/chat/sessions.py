"""Memory-only registry of chat sessions; transcripts are gone when the process exits."""

from __future__ import annotations

from dataclasses import dataclass
from uuid import uuid4

from crm_assistant.chat.extraction import IntentExtractor
from crm_assistant.chat.pipeline import ConversationPipeline
from crm_assistant.crm.workspace import CrmWorkspace


@dataclass
class ChatSession:
    session_id: str
    user_id: str
    pipeline: ConversationPipeline


class ChatSessionRegistry:
    def __init__(self, extractor: IntentExtractor) -> None:
        self.extractor = extractor
        self._sessions: dict[str, ChatSession] = {}

    def open(self, workspace: CrmWorkspace) -> ChatSession:
        session = ChatSession(
            session_id=str(uuid4()),
            user_id=workspace.user_id,
            pipeline=ConversationPipeline(extractor=self.extractor, workspace=workspace),
        )
        self._sessions[session.session_id] = session
        return session

    def get(self, session_id: str, *, user_id: str) -> ChatSession | None:
        session = self._sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    def close(self, session_id: str, *, user_id: str) -> bool:
        if self.get(session_id, user_id=user_id) is None:
            return False
        del self._sessions[session_id]
        return True
