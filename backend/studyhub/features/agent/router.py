"""
Agent feature: tool catalog, direct tool execution and chat routes.
"""

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, HTTPException, status
from langchain_core.messages import AIMessage, HumanMessage, ToolMessage
from pydantic import BaseModel
from supabase import Client

from studyhub.config import get_settings
from studyhub.core.dependencies import (
    get_agent_graph,
    get_current_user_id,
    get_db,
    get_tool_registry,
)
from studyhub.core.exceptions import (
    InvalidArgumentsError,
    SchemaTranslationError,
    ToolExecutionFailedError,
    ToolNotFoundError,
    app_error_to_http,
)
from studyhub.features.agent.registry import ToolRegistry
from studyhub.features.plugins.runtime import (
    get_installed_plugin_tools,
    get_installed_plugins_summary,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class ExecuteToolRequest(BaseModel):
    args: Any = None


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str
    history: list[ChatTurn] = []
    user_name: str | None = None


class ToolResult(BaseModel):
    tool_name: str
    tool_args: dict = {}
    result: str


class ChatResponse(BaseModel):
    response: str
    tool_results: list[ToolResult] = []
    tools_used: list[str] = []


def extract_text(content) -> str:
    """Flatten LangChain message content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type", "text") == "text" and "text" in item:
                parts.append(item["text"])
            elif isinstance(item, str):
                parts.append(item)
        return "".join(parts)
    return str(content)


@router.get("/tools")
async def list_tools(
    include_plugins: bool = True,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    registry: ToolRegistry = Depends(get_tool_registry),
):
    """Function declarations the model can call (Gemini format)."""
    try:
        declarations = registry.get_tool_declarations()
    except SchemaTranslationError as e:
        logger.error(f"Tool catalog broken: {e.message} ({e.detail})")
        raise app_error_to_http(e, status.HTTP_500_INTERNAL_SERVER_ERROR)

    if include_plugins:
        declarations += get_installed_plugin_tools(db, user_id)
    return {"data": declarations}


@router.post("/tools/{name}/execute")
async def execute_tool(
    name: str,
    data: ExecuteToolRequest,
    user_id: str = Depends(get_current_user_id),
    registry: ToolRegistry = Depends(get_tool_registry),
):
    """Run one registered tool for the current user."""
    try:
        result = await registry.invoke(user_id, name, data.args)
    except ToolNotFoundError as e:
        raise app_error_to_http(e, status.HTTP_404_NOT_FOUND)
    except InvalidArgumentsError as e:
        raise app_error_to_http(e, status.HTTP_422_UNPROCESSABLE_ENTITY)
    except ToolExecutionFailedError as e:
        raise app_error_to_http(e, status.HTTP_502_BAD_GATEWAY)
    return {"data": result}


@router.post("/chat", response_model=ChatResponse)
async def chat(
    data: ChatRequest,
    user_id: str = Depends(get_current_user_id),
    db: Client = Depends(get_db),
    graph=Depends(get_agent_graph),
):
    """Run one agent turn: the model may call registered tools before answering."""
    messages = [
        HumanMessage(content=turn.content) if turn.role == "user" else AIMessage(content=turn.content)
        for turn in data.history
    ]
    messages.append(HumanMessage(content=data.message))

    state = {
        "messages": messages,
        "user_id": user_id,
        "user_name": data.user_name or "there",
        "installed_plugins": get_installed_plugins_summary(db, user_id),
    }

    try:
        result = await graph.ainvoke(
            state,
            config={"recursion_limit": get_settings().AGENT_RECURSION_LIMIT},
        )
    except Exception as e:
        logger.error(f"Agent turn failed for user {user_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"error": "Agent turn failed", "detail": str(e), "type": type(e).__name__},
        )

    new_messages = result["messages"][len(messages):]
    call_args = {}
    tool_results = []
    for msg in new_messages:
        if isinstance(msg, AIMessage):
            for tc in msg.tool_calls:
                call_args[tc["id"]] = tc.get("args") or {}
        elif isinstance(msg, ToolMessage):
            tool_results.append(ToolResult(
                tool_name=msg.name or "",
                tool_args=call_args.get(msg.tool_call_id, {}),
                result=extract_text(msg.content)[:2000],
            ))

    return ChatResponse(
        response=extract_text(result["messages"][-1].content),
        tool_results=tool_results,
        tools_used=list(dict.fromkeys(r.tool_name for r in tool_results)),
    )
