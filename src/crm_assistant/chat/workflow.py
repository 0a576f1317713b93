"""LangGraph workflow for one conversational turn."""

from langgraph.graph import END, START, StateGraph

from crm_assistant.chat.extraction import IntentExtractor
from crm_assistant.chat.nodes import confirm, execute, extract
from crm_assistant.chat.state import ChatState
from crm_assistant.crm.workspace import CrmWorkspace


def build_graph(*, extractor: IntentExtractor, workspace: CrmWorkspace):
    def _route_turn(state: ChatState) -> str:
        draft = state.get("draft")
        if draft is not None and draft.stage == "awaiting_confirmation":
            return "confirm"
        return "extract"

    def _route_answer(state: ChatState) -> str:
        return "execute" if state.get("confirmed", False) else "done"

    async def _extract(state: ChatState) -> ChatState:
        return await extract.run(state, extractor=extractor, snapshot=workspace.snapshot())

    async def _execute(state: ChatState) -> ChatState:
        return await execute.run(state, workspace=workspace)

    graph = StateGraph(ChatState)

    graph.add_node("confirm", confirm.run)
    graph.add_node("extract", _extract)
    graph.add_node("execute", _execute)

    graph.add_conditional_edges(START, _route_turn, {"confirm": "confirm", "extract": "extract"})
    graph.add_conditional_edges("confirm", _route_answer, {"execute": "execute", "done": END})
    graph.add_edge("extract", END)
    graph.add_edge("execute", END)

    return graph.compile()
