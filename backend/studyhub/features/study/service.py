"""
Study feature: service layer for materials, study sessions and progress.

Used by the agent's study/material tools and by the plugin session host.
"""

import logging
from datetime import datetime, timezone

from supabase import Client

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ilike_value(query: str) -> str:
    """Double-quoted `%query%` pattern, safe inside a PostgREST `or=(...)` list."""
    escaped = query.replace("\\", "\\\\").replace('"', '\\"')
    return f'"%{escaped}%"'


class StudyService:
    """Caller-scoped operations on the study tables."""

    def __init__(self, db: Client):
        self.db = db

    # ── Queue & schedule ─────────────────────────────────

    def create_queue_item(self, user_id: str, topic: str, duration_seconds: int) -> dict | None:
        result = self.db.table("study_queue").insert({
            "user_id": user_id,
            "test_info": topic,
            "status": "scheduled",
            "estimated_time_seconds": duration_seconds,
        }).execute()
        return result.data[0] if result.data else None

    def schedule_session(
        self,
        user_id: str,
        queue_item_id: str,
        start_time: str,
        duration_seconds: int,
    ) -> None:
        """Insert an upcoming schedule entry and mark its queue item scheduled."""
        self.db.table("user_schedules").insert({
            "user_id": user_id,
            "queue_item_id": queue_item_id,
            "scheduled_start": start_time,
            "duration_seconds": duration_seconds,
            "status": "upcoming",
        }).execute()

        self.db.table("study_queue").update(
            {"status": "scheduled"}
        ).eq("id", queue_item_id).execute()

    # ── Notes & groups ───────────────────────────────────

    def add_note(self, user_id: str, content: str, category: str) -> None:
        self.db.table("user_notes").insert({
            "user_id": user_id,
            "content": content,
            "category": category,
        }).execute()

    def join_group(self, user_id: str, group_id: str) -> None:
        self.db.table("group_subscriptions").insert({
            "user_id": user_id,
            "group_id": group_id,
        }).execute()

    # ── Knowledge assessment ─────────────────────────────

    def get_knowledge_assessment(self, user_id: str) -> dict:
        """Concept -> mastery level map kept in user_preferences."""
        result = (
            self.db.table("user_preferences")
            .select("knowledge_assessment")
            .eq("user_id", user_id)
            .execute()
        )
        if not result.data:
            return {}
        return result.data[0].get("knowledge_assessment") or {}

    def save_knowledge_assessment(self, user_id: str, assessment: dict) -> None:
        self.db.table("user_preferences").upsert(
            {
                "user_id": user_id,
                "knowledge_assessment": assessment,
                "updated_at": _now_iso(),
            },
            on_conflict="user_id",
        ).execute()

    # ── Materials ────────────────────────────────────────

    def search_materials(self, query: str) -> dict:
        """Search global materials by title/overview and groups by name.

        Search errors degrade to empty results instead of failing the caller.
        """
        pattern = _ilike_value(query)
        try:
            materials = (
                self.db.table("materials")
                .select("*, subjects(name, color)")
                .or_(f"title.ilike.{pattern},overview.ilike.{pattern}")
                .limit(10)
                .execute()
            ).data or []
        except Exception as e:
            logger.error(f"Error searching materials: {e}")
            return {"materials": [], "groups": []}

        try:
            groups = (
                self.db.table("material_groups")
                .select("*")
                .ilike("name", f"%{query}%")
                .limit(5)
                .execute()
            ).data or []
        except Exception as e:
            logger.error(f"Error searching groups: {e}")
            groups = []

        return {"materials": materials, "groups": groups}

    def import_material(self, user_id: str, material_id: str, group_id: str | None = None) -> None:
        """Make a material active for the user, joining its group if given."""
        if group_id:
            self.db.table("group_subscriptions").upsert({
                "user_id": user_id,
                "group_id": group_id,
            }).execute()

        self._touch_session(user_id, material_id, {})

    def get_material(self, material_id: str) -> dict | None:
        """Material row with its sections in reading order."""
        result = self.db.table("materials").select("*").eq("id", material_id).execute()
        if not result.data:
            return None

        material = dict(result.data[0])
        material["sections"] = self._sections(material_id)
        return material

    def _sections(self, material_id: str) -> list[dict]:
        result = (
            self.db.table("material_sections")
            .select("*")
            .eq("material_id", material_id)
            .order("order_index")
            .execute()
        )
        return result.data or []

    # ── Study session progress ───────────────────────────

    def get_study_session(self, user_id: str, material_id: str) -> dict | None:
        result = (
            self.db.table("study_sessions")
            .select("*")
            .eq("user_id", user_id)
            .eq("material_id", material_id)
            .execute()
        )
        return result.data[0] if result.data else None

    def _touch_session(self, user_id: str, material_id: str, changes: dict) -> None:
        """Upsert the (user, material) session row; creates it on first use."""
        self.db.table("study_sessions").upsert(
            {
                "user_id": user_id,
                "material_id": material_id,
                "last_active": _now_iso(),
                **changes,
            },
            on_conflict="user_id,material_id",
        ).execute()

    def record_progress(self, user_id: str, material_id: str, progress: dict) -> None:
        """Touch the session; move the section pointer when the plugin reports one."""
        section_id = progress.get("sectionId")
        self._touch_session(user_id, material_id, {"current_section_id": section_id} if section_id else {})

    def record_quiz_result(self, user_id: str, material_id: str, result: dict) -> int:
        """Upsert concept mastery from a quiz result. Returns concepts written."""
        concepts = [c for c in result.get("concepts") or [] if isinstance(c, str)]
        mastery_level = "mastered" if result.get("correct") else "needs_review"

        for concept in concepts:
            self.db.table("user_progress").upsert(
                {
                    "user_id": user_id,
                    "material_id": material_id,
                    "concept": concept,
                    "mastery_level": mastery_level,
                    "last_updated": _now_iso(),
                },
                on_conflict="user_id,material_id,concept",
            ).execute()
        return len(concepts)

    def advance_section(self, user_id: str, material_id: str) -> dict | None:
        """Move the session to the section after the current one.

        Returns the new section, or None when the material is finished.
        """
        sections = self._sections(material_id)
        if not sections:
            return None

        session = self.get_study_session(user_id, material_id) or {}
        current_id = session.get("current_section_id")
        ids = [s.get("id") for s in sections]

        next_index = ids.index(current_id) + 1 if current_id in ids else 0
        if next_index >= len(sections):
            return None

        next_section = sections[next_index]
        self._touch_session(user_id, material_id, {"current_section_id": next_section["id"]})
        return next_section
