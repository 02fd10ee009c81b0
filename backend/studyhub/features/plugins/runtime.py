"""
Plugins feature: merge installed plugins' AI tool definitions into the catalog.

Plugin authors ship tool definitions in the `plugins.ai_tools` JSONB column.
That column is user-controlled, so every definition is checked against a
strict whitelist before it becomes a function declaration; anything else is
skipped with a warning. Declarations are namespaced `plugin__<name>` so they
can never shadow a built-in tool.
"""

import logging
import re
from typing import Any

from cachetools import TTLCache
from supabase import Client

from studyhub.config import get_settings
from studyhub.features.agent.schema import normalize_schema_types

logger = logging.getLogger(__name__)

PLUGIN_TOOL_PREFIX = "plugin__"
ALLOWED_TYPES = {"string", "number", "boolean", "object", "array"}
_NAME_RE = re.compile(r"^[a-z][a-z0-9_]{0,62}$")
_MAX_DESCRIPTION = 500

_declarations_cache: TTLCache = TTLCache(
    maxsize=1024, ttl=get_settings().PLUGIN_TOOLS_CACHE_TTL_SECONDS
)


def validate_tool_def(raw: Any) -> dict | None:
    """Return the definition if it passes the whitelist, else None."""
    if not isinstance(raw, dict):
        return None

    name = raw.get("name")
    if not isinstance(name, str) or not _NAME_RE.match(name):
        return None
    description = raw.get("description")
    if not isinstance(description, str) or len(description) > _MAX_DESCRIPTION:
        return None

    params = raw.get("parameters")
    if params is None:
        return raw
    if not isinstance(params, dict) or params.get("type") != "object":
        return None

    properties = params.get("properties")
    if properties is not None:
        if not isinstance(properties, dict):
            return None
        for prop in properties.values():
            if not isinstance(prop, dict) or prop.get("type") not in ALLOWED_TYPES:
                return None
            if "description" in prop and not isinstance(prop["description"], str):
                return None

    required = params.get("required")
    if required is not None:
        if not isinstance(required, list) or not all(isinstance(r, str) for r in required):
            return None

    return raw


def to_plugin_declaration(tool_def: dict) -> dict:
    """Validated plugin definition -> namespaced function declaration."""
    params = tool_def.get("parameters") or {}
    properties = {}
    for key, prop in (params.get("properties") or {}).items():
        schema = {"type": prop["type"], "nullable": False}
        if "description" in prop:
            schema["description"] = prop["description"]
        properties[key] = schema

    return {
        "name": f"{PLUGIN_TOOL_PREFIX}{tool_def['name']}",
        "description": f"[Plugin Tool] {tool_def['description']}",
        "parameters": normalize_schema_types({
            "type": "object",
            "properties": properties,
            "required": list(params.get("required") or []),
        }),
    }


def _installed_plugins(db: Client, user_id: str, columns: str) -> list[dict]:
    result = (
        db.table("installed_plugins")
        .select(f"plugin:plugin_id({columns})")
        .eq("user_id", user_id)
        .execute()
    )
    return [row["plugin"] for row in result.data or [] if row.get("plugin")]


def get_installed_plugin_tools(db: Client, user_id: str) -> list[dict]:
    """Function declarations from all of the user's installed plugins (cached)."""
    cached = _declarations_cache.get(user_id)
    if cached is not None:
        return cached

    declarations = []
    for plugin in _installed_plugins(db, user_id, "name, ai_tools"):
        ai_tools = plugin.get("ai_tools")
        if not isinstance(ai_tools, list):
            continue
        for raw in ai_tools:
            tool_def = validate_tool_def(raw)
            if tool_def is None:
                logger.warning(f"Skipping invalid tool def from plugin '{plugin.get('name')}': {raw!r}")
                continue
            declarations.append(to_plugin_declaration(tool_def))

    _declarations_cache[user_id] = declarations
    return declarations


def get_installed_plugins_summary(db: Client, user_id: str) -> list[dict]:
    """Short summary of installed plugins for the agent's system prompt."""
    summaries = []
    for plugin in _installed_plugins(db, user_id, "id, name, description, connector_type, ai_tools"):
        ai_tools = plugin.get("ai_tools")
        summaries.append({
            "pluginId": plugin.get("id", ""),
            "name": plugin.get("name") or "Unknown",
            "description": plugin.get("description"),
            "connectorType": plugin.get("connector_type"),
            "toolCount": len(ai_tools) if isinstance(ai_tools, list) else 0,
        })
    return summaries


def clear_plugin_tools_cache(user_id: str | None = None) -> None:
    """Drop cached declarations (after install/uninstall)."""
    if user_id is None:
        _declarations_cache.clear()
    else:
        _declarations_cache.pop(user_id, None)
