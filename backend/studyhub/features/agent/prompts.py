"""
Agent feature: system prompt for the study assistant.
"""

from datetime import datetime, timezone


def build_system_prompt(
    user_name: str = "there",
    tool_names: list[str] | None = None,
    installed_plugins: list[dict] | None = None,
) -> str:
    """Build system prompt with current datetime and available tools injected."""
    now = datetime.now(timezone.utc)
    current_time = now.strftime("%H:%M UTC, %A %d %B %Y")

    tools_section = ", ".join(f"`{n}`" for n in tool_names or []) or "none"

    plugins_section = ""
    if installed_plugins:
        lines = [
            f"- {p['name']}: {p.get('description') or 'no description'} ({p.get('toolCount', 0)} tools)"
            for p in installed_plugins
        ]
        plugins_section = "\n\n## Installed plugins\n" + "\n".join(lines)

    return SYSTEM_PROMPT_TEMPLATE.format(
        user_name=user_name,
        current_time=current_time,
        tools_section=tools_section,
    ) + plugins_section


SYSTEM_PROMPT_TEMPLATE = """You are the StudyHub study coach of {user_name}.

## Current time: {current_time}

## Rules
1. **Use tools for facts**: schedules, notes, materials and messages come from tools. Never guess them.
2. **Fix your calls**: if a tool answers with an error, read the detail, correct the arguments and retry once.
3. **Navigation**: to open a page for the user, call `navigate_site` with a path starting with `/`.
4. **Be brief**: answer to the point, markdown when it helps.

## Available tools
{tools_section}
"""


KNOWLEDGE_EXTRACTION_PROMPT = """A student described what they already know:
"{knowledge_text}"

Their current knowledge assessment is: {current_assessment}

Extract the key concepts from the statement with a mastery level for each,
either "mastered" or "familiar". Reply with ONLY a JSON object mapping concept
name to mastery level, for example {{"photosynthesis": "mastered"}}.
"""
