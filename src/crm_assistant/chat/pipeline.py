"""Conversational action pipeline: transcript, draft and the confirmation gate."""

from __future__ import annotations

import logging

from crm_assistant.chat import messages
from crm_assistant.chat.extraction import IntentExtractor
from crm_assistant.chat.state import ActionDraft, ChatTurn, PipelineStage, initial_state
from crm_assistant.chat.workflow import build_graph
from crm_assistant.crm.workspace import CrmWorkspace

logger = logging.getLogger(__name__)


class PipelineBusyError(RuntimeError):
    """A turn is already in flight for this pipeline."""


class ConversationPipeline:
    """Owns one chat session's transcript and its single in-progress action draft.

    Each call to ``submit_utterance`` appends exactly one user turn and one
    assistant turn. Records are only mutated after the draft reached
    ``awaiting_confirmation`` and the very next answer was yes.
    """

    def __init__(
        self,
        *,
        extractor: IntentExtractor,
        workspace: CrmWorkspace,
        greet: bool = True,
    ) -> None:
        self.workspace = workspace
        self.transcript: list[ChatTurn] = []
        self.draft: ActionDraft | None = None
        self._pending = False
        self._graph = build_graph(extractor=extractor, workspace=workspace)
        if greet:
            self.transcript.append(ChatTurn(role="assistant", text=messages.GREETING))

    @property
    def stage(self) -> PipelineStage:
        return self.draft.stage if self.draft is not None else "idle"

    @property
    def is_pending(self) -> bool:
        return self._pending

    async def submit_utterance(self, text: str) -> ChatTurn | None:
        utterance = text.strip()
        if not utterance:
            return None
        if self._pending:
            raise PipelineBusyError("A message is already being processed")

        self._pending = True
        self.transcript.append(ChatTurn(role="user", text=utterance))
        stage_before = self.stage
        try:
            result = await self._graph.ainvoke(
                initial_state(utterance, self.transcript, self.draft)
            )
        finally:
            self._pending = False

        self.draft = result.get("draft")
        reply = ChatTurn(role="assistant", text=result.get("reply") or messages.COULD_NOT_PROCESS)
        self.transcript.append(reply)
        logger.info(
            "chat_turn event=completed user_id=%s stage_before=%s stage_after=%s",
            self.workspace.user_id,
            stage_before,
            self.stage,
        )
        return reply
