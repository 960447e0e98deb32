"""Base tool interface for LLM function calling."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class ToolResult:
    """Result from tool execution."""

    success: bool
    output: str
    error: str | None = None
    data: dict[str, Any] | None = None

    def to_content(self) -> str:
        """Render the result as the JSON text handed back to the LLM."""
        if not self.success:
            payload: dict[str, Any] = {"error": self.error or "Unknown error"}
        else:
            payload = {"message": self.output}
        if self.data:
            payload.update(self.data)
        return json.dumps(payload, ensure_ascii=False)


class Tool(ABC):
    """Base interface for all tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for LLM."""
        ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for tool parameters."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        """Execute the tool with given arguments."""
        ...

    def get_schema(self) -> dict[str, Any]:
        """Get tool schema for LLM function calling."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def validate_args(self, args: dict[str, Any]) -> tuple[bool, str | None]:
        """Validate argument types against the schema. Returns (valid, error_message).

        Missing fields are left to the tool, which knows which
        combinations of optional fields are acceptable.
        """
        properties = self.parameters.get("properties", {})

        for key, value in args.items():
            if key not in properties or value is None:
                continue
            expected_type = properties[key].get("type")
            if expected_type == "string" and not isinstance(value, str):
                return False, f"Argument '{key}' must be a string"
            if expected_type == "integer" and (
                not isinstance(value, int) or isinstance(value, bool)
            ):
                return False, f"Argument '{key}' must be an integer"
            if expected_type == "boolean" and not isinstance(value, bool):
                return False, f"Argument '{key}' must be a boolean"

        return True, None
