"""Extract node: ask the extraction service what the user wants and update the draft."""

from __future__ import annotations

import logging

from crm_assistant.chat import messages
from crm_assistant.chat.extraction import (
    ExtractionResponseError,
    ExtractionServiceError,
    IntentExtractor,
)
from crm_assistant.chat.schemas import ExtractionResponse
from crm_assistant.chat.state import ActionDraft, ChatState
from crm_assistant.crm.workspace import WorkspaceSnapshot

logger = logging.getLogger(__name__)


async def run(
    state: ChatState,
    *,
    extractor: IntentExtractor,
    snapshot: WorkspaceSnapshot,
) -> ChatState:
    transcript = state.get("transcript", [])
    try:
        response = await extractor.extract(transcript, snapshot)
    except ExtractionResponseError as exc:
        logger.warning("chat_extract event=malformed_response reason=%s", exc)
        return {"draft": None, "reply": messages.COULD_NOT_PROCESS}
    except ExtractionServiceError as exc:
        logger.warning("chat_extract event=service_unavailable reason=%s", exc)
        return {"draft": None, "reply": messages.TROUBLE_CONNECTING}
    except Exception:  # noqa: BLE001
        logger.exception("chat_extract event=failed")
        return {"draft": None, "reply": messages.TROUBLE_CONNECTING}

    logger.info(
        "chat_extract event=extracted intent=%s missing_fields=%d has_confirmation=%s",
        response.intent,
        len(response.missing_fields),
        bool(response.confirmation_message),
    )
    return apply_extraction(response)


def apply_extraction(response: ExtractionResponse) -> ChatState:
    """Map one extraction result onto the next draft and the reply for this turn."""
    fields = response.data.as_fields()
    recognized = response.intent != "none"

    if recognized and response.confirmation_message:
        draft = ActionDraft(intent=response.intent, fields=fields, stage="awaiting_confirmation")
        return {"draft": draft, "reply": response.confirmation_message}

    if response.missing_fields:
        draft = ActionDraft(intent=response.intent, fields=fields, stage="gathering")
        return {"draft": draft, "reply": messages.need_more_information(response.missing_fields)}

    if recognized and fields:
        # Never act on a complete extraction without an explicit yes from the user.
        draft = ActionDraft(intent=response.intent, fields=fields, stage="awaiting_confirmation")
        return {"draft": draft, "reply": messages.forced_confirmation(fields)}

    return {"draft": None, "reply": messages.CLARIFY}
