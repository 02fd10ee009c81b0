"""
Agent feature: service layer for the agent_messages event log.
"""

from supabase import Client


class AgentMessagesService:
    """Caller-scoped reads and writes on the agent_messages table."""

    def __init__(self, db: Client):
        self.db = db

    def record_message(
        self,
        user_id: str,
        content: str,
        message_type: str,
        metadata: dict | None = None,
    ) -> dict | None:
        """Insert one event record for the user."""
        insert_data = {
            "user_id": user_id,
            "content": content,
            "type": message_type,
            "metadata": metadata or {},
        }
        result = self.db.table("agent_messages").insert(insert_data).execute()
        return result.data[0] if result.data else None

    def recent_messages(self, user_id: str, message_type: str, limit: int) -> list[dict]:
        """Most recent records of one kind, newest first."""
        result = (
            self.db.table("agent_messages")
            .select("*")
            .eq("user_id", user_id)
            .eq("type", message_type)
            .order("created_at", desc=True)
            .limit(limit)
            .execute()
        )
        return result.data or []
