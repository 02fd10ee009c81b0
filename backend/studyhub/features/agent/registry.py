"""
Agent feature: tool registry and invoker.

Every capability the agent can call is a ToolDescriptor: a name, a description
for the model, a pydantic model describing its arguments and an execute
function `(caller_id, validated_args) -> result`. Coroutine functions are awaited
on the event loop; plain functions run in a worker thread. The same pydantic model is
used to validate arguments and to build the function declaration, so the two
never drift apart.

The registry is a plain object built at startup (see catalog.build_registry)
and handed to whoever needs it; tests build their own.
"""

import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterator

from pydantic import BaseModel, ValidationError

from studyhub.core.exceptions import (
    InvalidArgumentsError,
    ToolExecutionFailedError,
    ToolNotFoundError,
)
from studyhub.features.agent.schema import build_declarations, to_function_declaration

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[str, BaseModel], Any | Awaitable[Any]]


@dataclass(frozen=True)
class ToolDescriptor:
    """Static shape of one invocable capability."""
    name: str
    description: str
    parameters: type[BaseModel]
    execute: ExecuteFn = field(repr=False)


class ToolRegistry:
    """Name -> ToolDescriptor mapping with validated dispatch."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}

    def register(self, descriptor: ToolDescriptor) -> None:
        """Insert or overwrite the descriptor under its name (last write wins).

        The parameter schema is translated once here so a broken schema fails
        at startup instead of on the first catalog request.
        """
        to_function_declaration(descriptor)
        if descriptor.name in self._tools:
            logger.warning(f"Tool '{descriptor.name}' registered twice, replacing previous descriptor")
        self._tools[descriptor.name] = descriptor
        logger.debug(f"Registered tool: {descriptor.name}")

    def lookup(self, name: str) -> ToolDescriptor | None:
        return self._tools.get(name)

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDescriptor]:
        return iter(list(self._tools.values()))

    # ── Catalog ──────────────────────────────────────────

    def get_tool_declarations(self, normalize_types: bool = True) -> list[dict]:
        """Function declarations for every registered tool.

        Args:
            normalize_types: True gives Gemini's upper-case SchemaType tags;
                False keeps plain JSON-schema casing (used by LangChain binding).
        """
        return build_declarations(self, normalize_types=normalize_types)

    # ── Invocation ───────────────────────────────────────

    async def invoke(self, caller_id: str, name: str, raw_args: Any) -> Any:
        """Resolve, validate and execute a tool on behalf of `caller_id`.

        Raises:
            ToolNotFoundError: `name` is not registered.
            InvalidArgumentsError: `raw_args` do not match the parameter model.
            ToolExecutionFailedError: the tool's execute function raised.
        """
        descriptor = self._tools.get(name)
        if descriptor is None:
            logger.info(f"Tool lookup failed: {name}")
            raise ToolNotFoundError(name)

        try:
            args = descriptor.parameters.model_validate({} if raw_args is None else raw_args)
        except ValidationError as e:
            logger.info(f"Tool {name} rejected arguments: {e.error_count()} error(s)")
            raise InvalidArgumentsError(name, json.loads(e.json(include_url=False))) from e

        logger.info(f"Calling tool: {name} for user {caller_id}")
        try:
            if inspect.iscoroutinefunction(descriptor.execute):
                result = await descriptor.execute(caller_id, args)
            else:
                # Sync tools do blocking Supabase and LLM I/O.
                result = await asyncio.to_thread(descriptor.execute, caller_id, args)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.error(f"Tool {name} error: {e}")
            raise ToolExecutionFailedError(name, e) from e

        return result
