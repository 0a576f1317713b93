"""Confirm node: read a yes/no answer to a pending confirmation prompt."""

from __future__ import annotations

from crm_assistant.chat import messages
from crm_assistant.chat.state import ChatState

AFFIRMATIVE = frozenset({"yes", "y"})
NEGATIVE = frozenset({"no", "n"})


def run(state: ChatState) -> ChatState:
    answer = state.get("utterance", "").strip().lower()
    if answer in AFFIRMATIVE:
        return {"confirmed": True}
    if answer in NEGATIVE:
        return {"confirmed": False, "draft": None, "reply": messages.CANCELLED}
    # Anything else keeps the draft waiting for an answer.
    return {"confirmed": False, "reply": messages.YES_OR_NO}
