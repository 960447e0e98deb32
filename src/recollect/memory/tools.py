"""Memory tools the LLM uses to manage long-term facts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ..tools.base import Tool, ToolResult

if TYPE_CHECKING:
    from .manager import MemoryManager

CATEGORIES_HELP = (
    "Categories: user_info (name, location, job), preferences (likes, dislikes, style), "
    "projects (ongoing work), people (friends, family, colleagues), work (employer, role), "
    "notes (anything else), decisions (choices made and why)."
)


class RememberTool(Tool):
    """Tool for saving facts about the user."""

    def __init__(self, manager: MemoryManager) -> None:
        self.manager = manager

    @property
    def name(self) -> str:
        return "remember"

    @property
    def description(self) -> str:
        return (
            "Save important information about the user to long-term memory. "
            "Use this PROACTIVELY whenever the user shares something worth knowing later: "
            "their name, preferences, projects, people in their life, decisions. "
            "Saving the same category and subject again replaces the old content. "
            + CATEGORIES_HELP
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "category": {
                    "type": "string",
                    "description": "Category of the fact (e.g., 'user_info', 'preferences')",
                },
                "subject": {
                    "type": "string",
                    "description": "Short identifier of the fact within its category (e.g., 'name')",
                },
                "content": {
                    "type": "string",
                    "description": "The fact to remember (e.g., 'Lives in Buenos Aires')",
                },
            },
            "required": ["category", "subject", "content"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Save a fact to memory."""
        fields = {name: (kwargs.get(name) or "").strip() for name in ("category", "subject", "content")}
        missing = [name for name, value in fields.items() if not value]
        if missing:
            return ToolResult(
                success=False,
                output="",
                error=f"Missing required fields: {', '.join(missing)}",
            )

        fact_id = self.manager.save_fact(fields["category"], fields["subject"], fields["content"])
        return ToolResult(
            success=True,
            output=f"Remembered: {fields['subject']}",
            data={"id": fact_id, "category": fields["category"], "subject": fields["subject"]},
        )


class ForgetTool(Tool):
    """Tool for removing a fact."""

    def __init__(self, manager: MemoryManager) -> None:
        self.manager = manager

    @property
    def name(self) -> str:
        return "forget"

    @property
    def description(self) -> str:
        return (
            "Remove a fact from long-term memory when the user asks to forget it or it is "
            "no longer true. Identify it by Fact ID, or by Category + subject."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "id": {
                    "type": "integer",
                    "description": "Fact ID (from list_facts or memory_search)",
                },
                "category": {
                    "type": "string",
                    "description": "Category of the fact to remove",
                },
                "subject": {
                    "type": "string",
                    "description": "Subject of the fact to remove",
                },
            },
            "required": [],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        """Remove a fact by id, or by category and subject."""
        fact_id = kwargs.get("id")
        category = (kwargs.get("category") or "").strip()
        subject = (kwargs.get("subject") or "").strip()

        if fact_id is not None:
            deleted = self.manager.delete_fact(fact_id)
            target = f"fact {fact_id}"
        elif category and subject:
            deleted = self.manager.delete_fact_by_subject(category, subject)
            target = f"{category}/{subject}"
        else:
            return ToolResult(
                success=False,
                output="",
                error="Provide either id, or both category and subject",
            )

        if not deleted:
            return ToolResult(success=False, output="", error=f"Fact not found: {target}")
        return ToolResult(success=True, output=f"Forgot: {target}")


class ListFactsTool(Tool):
    """Tool for listing stored facts."""

    def __init__(self, manager: MemoryManager) -> None:
        self.manager = manager

    @property
    def name(self) -> str:
        return "list_facts"

    @property
    def description(self) -> str:
        return (
            "List all known facts about the user, optionally for one category. "
            "Use when the user asks 'what do you know about me?'."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "category": {
                    "type": "string",
                    "description": "Optional: filter by category",
                },
            },
            "required": [],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        category = (kwargs.get("category") or "").strip()
        facts = (
            self.manager.get_facts_by_category(category)
            if category
            else self.manager.get_all_facts()
        )

        if not facts:
            message = (
                f"No facts stored in category '{category}'" if category else "No facts stored yet"
            )
            return ToolResult(success=True, output=message, data={"facts": []})

        return ToolResult(
            success=True,
            output=f"{len(facts)} fact(s)",
            data={
                "facts": [
                    {
                        "id": f.id,
                        "category": f.category,
                        "subject": f.subject,
                        "content": f.content,
                    }
                    for f in facts
                ]
            },
        )


class MemorySearchTool(Tool):
    """Tool for hybrid search over facts."""

    def __init__(self, manager: MemoryManager) -> None:
        self.manager = manager

    @property
    def name(self) -> str:
        return "memory_search"

    @property
    def description(self) -> str:
        return (
            "Search long-term memory with hybrid semantic + keyword matching "
            "(70% semantic, 30% keyword when embeddings are available). "
            "Use this PROACTIVELY before answering questions that may depend on "
            "something the user told you earlier."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "Search query in natural language",
                },
            },
            "required": ["query"],
        }

    async def execute(self, **kwargs: Any) -> ToolResult:
        query = (kwargs.get("query") or "").strip()
        if not query:
            return ToolResult(success=False, output="", error="'query' is required")

        try:
            results = await self.manager.search_facts_hybrid(query)
        except Exception as e:
            return ToolResult(success=False, output="", error=f"Search failed: {e}")

        if not results:
            return ToolResult(
                success=True, output="No relevant facts found", data={"results": []}
            )

        return ToolResult(
            success=True,
            output=f"{len(results)} relevant fact(s)",
            data={
                "results": [
                    {
                        "id": r.fact.id,
                        "category": r.fact.category,
                        "subject": r.fact.subject,
                        "content": r.fact.content,
                        "score": round(r.score, 2),
                    }
                    for r in results
                ]
            },
        )


def create_memory_tools(manager: MemoryManager) -> list[Tool]:
    """All memory tools bound to one manager."""
    return [
        RememberTool(manager),
        ForgetTool(manager),
        ListFactsTool(manager),
        MemorySearchTool(manager),
    ]
