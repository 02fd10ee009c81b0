"""
Agent tools: study planning (sessions, notes, knowledge, groups).
"""

import json
import logging
from datetime import datetime
from enum import Enum

from langchain_core.exceptions import OutputParserException
from langchain_core.messages import HumanMessage
from langchain_core.output_parsers import JsonOutputParser
from pydantic import BaseModel, Field

from studyhub.core.database import get_supabase_client
from studyhub.core.llm_provider import create_llm
from studyhub.features.agent.prompts import KNOWLEDGE_EXTRACTION_PROMPT
from studyhub.features.agent.registry import ToolDescriptor, ToolRegistry
from studyhub.features.study.service import StudyService

logger = logging.getLogger(__name__)


class ScheduleSessionArgs(BaseModel):
    startTime: datetime = Field(description="ISO 8601 string for the session start time")
    durationMinutes: int = Field(gt=0, description="Duration of the session in minutes")
    topic: str = Field(description="Topic or focus of the study session")
    queueItemId: str | None = Field(
        default=None,
        description="Optional ID of a pending queue item to associate",
    )


def schedule_session(user_id: str, args: ScheduleSessionArgs) -> dict:
    service = StudyService(get_supabase_client())
    duration_seconds = args.durationMinutes * 60

    queue_item_id = args.queueItemId
    if not queue_item_id:
        item = service.create_queue_item(user_id, args.topic, duration_seconds)
        if item:
            queue_item_id = item["id"]

    if not queue_item_id:
        return {"success": False, "error": "Missing queue item"}

    service.schedule_session(
        user_id=user_id,
        queue_item_id=queue_item_id,
        start_time=args.startTime.isoformat(),
        duration_seconds=duration_seconds,
    )
    return {
        "success": True,
        "message": f"Scheduled {args.topic} for {args.startTime.strftime('%Y-%m-%d %H:%M')}",
    }


class NoteCategory(str, Enum):
    LEARNING_CONTEXT = "learning_context"
    REMINDER = "reminder"
    GENERAL = "general"


class AddNoteArgs(BaseModel):
    content: str = Field(description="The content of the note")
    category: NoteCategory = Field(description="Category of the note")


def add_note(user_id: str, args: AddNoteArgs) -> dict:
    StudyService(get_supabase_client()).add_note(user_id, args.content, args.category.value)
    return {"success": True, "note": args.content}


class UpdateKnowledgeArgs(BaseModel):
    knowledgeText: str = Field(description="Natural language description of user knowledge")


def _extract_knowledge(knowledge_text: str, current: dict) -> dict:
    """Ask the chat model for a {concept: mastery_level} map.

    Raises:
        OutputParserException: the reply is not a JSON object.
    """
    prompt = KNOWLEDGE_EXTRACTION_PROMPT.format(
        knowledge_text=knowledge_text,
        current_assessment=json.dumps(current, ensure_ascii=False),
    )
    reply = create_llm().invoke([HumanMessage(content=prompt)])
    parsed = JsonOutputParser().invoke(reply)
    if not isinstance(parsed, dict):
        raise OutputParserException(f"Expected a JSON object, got {type(parsed).__name__}")
    return {str(concept): level for concept, level in parsed.items() if isinstance(level, str)}


def update_knowledge(user_id: str, args: UpdateKnowledgeArgs) -> dict:
    service = StudyService(get_supabase_client())
    current = service.get_knowledge_assessment(user_id)

    try:
        extracted = _extract_knowledge(args.knowledgeText, current)
    except OutputParserException as e:
        logger.warning(f"Knowledge extraction for user {user_id} returned unusable output: {e}")
        return {
            "success": False,
            "error": "Could not understand the knowledge description",
            "updatedAssessment": current,
        }

    updated = {**current, **extracted}
    service.save_knowledge_assessment(user_id, updated)
    return {"success": True, "updatedAssessment": updated}


class JoinGroupArgs(BaseModel):
    groupId: str = Field(description="The UUID of the group to join")


def join_group(user_id: str, args: JoinGroupArgs) -> dict:
    StudyService(get_supabase_client()).join_group(user_id, args.groupId)
    return {"success": True, "message": "Successfully joined the group"}


study_tools = [
    ToolDescriptor(
        name="schedule_session",
        description="Schedule a new study session for the user",
        parameters=ScheduleSessionArgs,
        execute=schedule_session,
    ),
    ToolDescriptor(
        name="add_note",
        description=(
            "Save a note about the user's learning progress, context, "
            "or key details for later recall"
        ),
        parameters=AddNoteArgs,
        execute=add_note,
    ),
    ToolDescriptor(
        name="update_knowledge",
        description="Update the user's knowledge profile based on their description of what they know",
        parameters=UpdateKnowledgeArgs,
        execute=update_knowledge,
    ),
    ToolDescriptor(
        name="join_group",
        description="Join a study group by its ID",
        parameters=JoinGroupArgs,
        execute=join_group,
    ),
]


def register(registry: ToolRegistry) -> None:
    for descriptor in study_tools:
        registry.register(descriptor)
