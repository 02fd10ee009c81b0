"""
Agent feature: LangGraph state machine with ReAct loop.

Architecture:
  User Message → Agent (LLM) → Tool Decision → ToolRegistry.invoke → Agent → Response

Every tool call goes through the registry, so the model only ever sees the
registry's declarations and every call is validated against the same schema.
Registry errors are fed back to the model as tool messages so it can retry
with a valid name or corrected arguments.
"""

import json
import logging
from typing import Annotated, TypedDict

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, SystemMessage, ToolMessage
from langgraph.graph import StateGraph, END, START
from langgraph.graph.message import add_messages

from studyhub.core.exceptions import AppBaseError
from studyhub.core.llm_provider import create_llm
from studyhub.features.agent.prompts import build_system_prompt
from studyhub.features.agent.registry import ToolRegistry

logger = logging.getLogger(__name__)


# ── State Definition ─────────────────────────────────────
class AgentState(TypedDict):
    """State passed through the LangGraph graph."""
    messages: Annotated[list[BaseMessage], add_messages]
    user_id: str
    user_name: str
    installed_plugins: list[dict]


def bindable_tools(registry: ToolRegistry) -> list[dict]:
    """Registry declarations in the OpenAI-style tool format LangChain binds."""
    return [
        {"type": "function", "function": declaration}
        for declaration in registry.get_tool_declarations(normalize_types=False)
    ]


def _tool_content(result) -> str:
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, default=str)


def build_agent_graph(registry: ToolRegistry, llm: BaseChatModel | None = None):
    """Build the LangGraph ReAct agent graph over a tool registry.

    Returns:
        Compiled graph ready to invoke.
    """
    llm = llm or create_llm()
    llm_with_tools = llm.bind_tools(bindable_tools(registry))
    tool_names = registry.names()

    # ── Node: Agent (LLM decision) ──────────────────────
    def agent_node(state: AgentState) -> dict:
        """LLM processes messages and decides: respond or call tool."""
        system_msg = SystemMessage(content=build_system_prompt(
            user_name=state.get("user_name") or "there",
            tool_names=tool_names,
            installed_plugins=state.get("installed_plugins"),
        ))
        response = llm_with_tools.invoke([system_msg, *state["messages"]])
        return {"messages": [response]}

    # ── Routing: should we call tools or end? ────────────
    def should_continue(state: AgentState) -> str:
        last_message = state["messages"][-1]
        if getattr(last_message, "tool_calls", None):
            return "tools"
        return END

    # ── Node: Tools (through the registry) ──────────────
    async def tool_node(state: AgentState) -> dict:
        last_message = state["messages"][-1]
        user_id = state.get("user_id", "")
        results = []

        for tc in last_message.tool_calls:
            try:
                result = await registry.invoke(user_id, tc["name"], tc.get("args") or {})
                content = _tool_content(result)
            except AppBaseError as e:
                logger.warning(f"Tool {tc['name']} failed: {type(e).__name__}: {e.message}")
                content = _tool_content({
                    "error": e.message,
                    "detail": e.detail,
                    "type": type(e).__name__,
                })

            results.append(ToolMessage(
                content=content,
                tool_call_id=tc["id"],
                name=tc["name"],
            ))

        return {"messages": results}

    # ── Build Graph ──────────────────────────────────────
    graph = StateGraph(AgentState)
    graph.add_node("agent", agent_node)
    graph.add_node("tools", tool_node)

    graph.add_edge(START, "agent")
    graph.add_conditional_edges("agent", should_continue, {"tools": "tools", END: END})
    graph.add_edge("tools", "agent")

    return graph.compile()
