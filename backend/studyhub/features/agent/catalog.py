"""
Agent feature: the built-in tool catalog.

Each tool module exposes `register(registry)`. Adding a tool = adding a module
and listing it here.
"""

import logging

from studyhub.features.agent.registry import ToolRegistry
from studyhub.features.agent.tools import materials, navigation, study, whatsapp

logger = logging.getLogger(__name__)

TOOL_MODULES = [navigation, whatsapp, study, materials]


def build_registry() -> ToolRegistry:
    """Create a registry with every built-in tool registered exactly once."""
    registry = ToolRegistry()
    for module in TOOL_MODULES:
        module.register(registry)
    logger.info(f"Tool registry ready: {', '.join(registry.names())}")
    return registry
