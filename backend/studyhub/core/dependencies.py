"""
FastAPI dependency injection functions.
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from supabase import Client

from studyhub.core.database import get_supabase_client
from studyhub.core.security import decode_access_token
from studyhub.features.agent.graph import build_agent_graph
from studyhub.features.agent.registry import ToolRegistry

# Bearer token scheme for Swagger UI
bearer_scheme = HTTPBearer()


def get_db() -> Client:
    """Dependency: get Supabase client."""
    return get_supabase_client()


def user_id_from_token(token: str) -> str | None:
    """Return the `sub` claim of a valid token, else None."""
    payload = decode_access_token(token)
    if payload is None:
        return None
    return payload.get("sub") or None


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
) -> str:
    """Dependency: extract and validate user_id from JWT token.

    Returns:
        str: The user's UUID as string.

    Raises:
        HTTPException 401: If token is invalid, expired or has no subject.
    """
    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_tool_registry(request: Request) -> ToolRegistry:
    """Dependency: the registry built at startup (see main.lifespan)."""
    return request.app.state.tool_registry


def get_agent_graph(request: Request):
    """Dependency: the compiled agent graph, built lazily over the app's registry."""
    graph = getattr(request.app.state, "agent_graph", None)
    if graph is None:
        graph = build_agent_graph(request.app.state.tool_registry)
        request.app.state.agent_graph = graph
    return graph
