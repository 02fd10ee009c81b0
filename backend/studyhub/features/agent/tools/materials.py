"""
Agent tools: discover and import study materials from the global library.
"""

from pydantic import BaseModel, Field

from studyhub.core.database import get_supabase_client
from studyhub.features.agent.registry import ToolDescriptor, ToolRegistry
from studyhub.features.study.service import StudyService


class SearchMaterialsArgs(BaseModel):
    query: str = Field(description="The search query (e.g., 'Biology Chapter 5')")


def search_materials(user_id: str, args: SearchMaterialsArgs) -> dict:
    found = StudyService(get_supabase_client()).search_materials(args.query)
    return {"success": True, "data": found}


class ImportMaterialArgs(BaseModel):
    materialId: str = Field(description="The UUID of the material to import")
    groupId: str | None = Field(
        default=None,
        description="Optional UUID of the group to join simultaneously",
    )


def import_material(user_id: str, args: ImportMaterialArgs) -> dict:
    StudyService(get_supabase_client()).import_material(user_id, args.materialId, args.groupId)
    return {"success": True, "message": "Material added to your library"}


material_tools = [
    ToolDescriptor(
        name="search_materials",
        description="Search the global library or groups for study materials (books, chapters, topics)",
        parameters=SearchMaterialsArgs,
        execute=search_materials,
    ),
    ToolDescriptor(
        name="import_material",
        description="Import a discovered material or group into the user's active library",
        parameters=ImportMaterialArgs,
        execute=import_material,
    ),
]


def register(registry: ToolRegistry) -> None:
    for descriptor in material_tools:
        registry.register(descriptor)
