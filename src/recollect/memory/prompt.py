"""System prompt and model context assembly."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..tools import ToolRegistry
from .tools import create_memory_tools

if TYPE_CHECKING:
    from .manager import MemoryManager

SYSTEM_PROMPT_BASE = """You are a helpful personal assistant with long-term memory.

You have access to the following tools:
{tools_description}

Remember what matters to the user and use your memory tools to look things up
before saying you don't know."""


def build_system_prompt(
    tools_schema: list[dict[str, Any]],
    facts_block: str = "",
    base_prompt: str = SYSTEM_PROMPT_BASE,
) -> str:
    """Build the system prompt with available tools and known facts.

    Args:
        tools_schema: List of tool schemas for the LLM.
        facts_block: Optional markdown block of known facts.
        base_prompt: Template with a ``{tools_description}`` placeholder.

    Returns:
        Complete system prompt string.
    """
    if not tools_schema:
        tools_desc = "No tools available."
    else:
        tools_desc = "\n".join(
            f"- {t['function']['name']}: {t['function']['description']}"
            for t in tools_schema
        )

    prompt = base_prompt.format(tools_description=tools_desc)

    if facts_block.strip():
        prompt += "\n\n" + facts_block

    return prompt


async def build_context_messages(
    manager: MemoryManager,
    tools_schema: list[dict[str, Any]] | None = None,
    token_budget: int | None = None,
    base_prompt: str = SYSTEM_PROMPT_BASE,
) -> list[dict[str, str]]:
    """System prompt followed by the conversation, ready for a model call.

    Without ``tools_schema`` the prompt lists the memory tools.

    Raises:
        Exception: Whatever the summarizer raises while building the context.
    """
    if tools_schema is None:
        tools_schema = ToolRegistry(create_memory_tools(manager)).get_tools_schema()
    system_prompt = build_system_prompt(tools_schema, manager.get_facts_for_context(), base_prompt)
    context = await manager.get_conversation_context(token_budget)
    return [{"role": "system", "content": system_prompt}, *context.messages]
