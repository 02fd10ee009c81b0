"""
Agent tool: site navigation intent.

The backend cannot redirect the browser itself, so the tool records a
`system_navigation` event; the web client listens for these and navigates.
"""

from pydantic import BaseModel, Field

from studyhub.core.database import get_supabase_client
from studyhub.features.agent.registry import ToolDescriptor, ToolRegistry
from studyhub.features.agent.service import AgentMessagesService


class NavigateSiteArgs(BaseModel):
    path: str = Field(description="The relative URL path to navigate to, starting with /")


def navigate_site(user_id: str, args: NavigateSiteArgs) -> dict:
    service = AgentMessagesService(get_supabase_client())
    service.record_message(
        user_id=user_id,
        content=f"Navigating to {args.path}",
        message_type="system_navigation",
        metadata={"path": args.path},
    )
    return {
        "success": True,
        "message": f"Navigation to {args.path} has been triggered.",
    }


navigate_site_tool = ToolDescriptor(
    name="navigate_site",
    description=(
        "Navigate the user to a different page within the application "
        "(e.g. /dashboard, /settings, /materials)."
    ),
    parameters=NavigateSiteArgs,
    execute=navigate_site,
)


def register(registry: ToolRegistry) -> None:
    registry.register(navigate_site_tool)
