"""
Agent tool: recent WhatsApp messages as extra conversation context.

Messages are written to agent_messages (type `whatsapp_message`) by the
WhatsApp bridge service; this tool only reads them.
"""

import logging

from pydantic import BaseModel, Field

from studyhub.config import get_settings
from studyhub.core.database import get_supabase_client
from studyhub.features.agent.registry import ToolDescriptor, ToolRegistry
from studyhub.features.agent.service import AgentMessagesService

logger = logging.getLogger(__name__)

_settings = get_settings()


class ReadWhatsappContextArgs(BaseModel):
    limit: int = Field(
        default=_settings.WHATSAPP_CONTEXT_DEFAULT_LIMIT,
        ge=1,
        le=_settings.WHATSAPP_CONTEXT_MAX_LIMIT,
        description=(
            f"Number of messages to retrieve, defaults to "
            f"{_settings.WHATSAPP_CONTEXT_DEFAULT_LIMIT}."
        ),
    )


def read_whatsapp_context(user_id: str, args: ReadWhatsappContextArgs) -> dict:
    service = AgentMessagesService(get_supabase_client())
    try:
        messages = service.recent_messages(
            user_id=user_id,
            message_type="whatsapp_message",
            limit=args.limit,
        )
    except Exception as e:
        logger.error(f"Error reading whatsapp context: {e}")
        raise

    return {
        "success": True,
        "messages": messages,
    }


read_whatsapp_context_tool = ToolDescriptor(
    name="read_whatsapp_context",
    description="Read recent WhatsApp messages sent by the user for additional context.",
    parameters=ReadWhatsappContextArgs,
    execute=read_whatsapp_context,
)


def register(registry: ToolRegistry) -> None:
    registry.register(read_whatsapp_context_tool)
