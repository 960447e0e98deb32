"""Tests for tool registry."""

import json

import pytest

from recollect.tools import Tool, ToolRegistry, ToolResult


class EchoTool(Tool):
    """Simple echo tool for testing."""

    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echoes the input message"

    @property
    def parameters(self) -> dict:
        return {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": "Message to echo"},
                "times": {"type": "integer", "description": "Repetitions"},
            },
            "required": ["message"],
        }

    async def execute(self, message: str, times: int = 1) -> ToolResult:
        return ToolResult(success=True, output=message * times)


class FailingTool(EchoTool):
    @property
    def name(self) -> str:
        return "failing"

    async def execute(self, **kwargs) -> ToolResult:
        raise RuntimeError("boom")


@pytest.fixture
def registry() -> ToolRegistry:
    return ToolRegistry()


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


def test_register_tool(registry: ToolRegistry, echo_tool: EchoTool):
    """Test registering a tool."""
    registry.register(echo_tool)

    assert "echo" in registry.list_tools()
    assert registry.get("echo") is echo_tool


def test_register_duplicate_raises(registry: ToolRegistry, echo_tool: EchoTool):
    """Test that registering duplicate tool raises error."""
    registry.register(echo_tool)

    with pytest.raises(ValueError, match="already registered"):
        registry.register(EchoTool())


def test_get_tools_schema(echo_tool: EchoTool):
    """Test getting tool schemas."""
    schemas = ToolRegistry([echo_tool]).get_tools_schema()

    assert len(schemas) == 1
    assert schemas[0]["type"] == "function"
    assert schemas[0]["function"]["name"] == "echo"


@pytest.mark.asyncio
async def test_dispatch_success(registry: ToolRegistry, echo_tool: EchoTool):
    """Test successful tool dispatch."""
    registry.register(echo_tool)

    result = await registry.dispatch("echo", {"message": "hi", "times": 2})

    assert result.success
    assert result.output == "hihi"


@pytest.mark.asyncio
async def test_dispatch_unknown_tool(registry: ToolRegistry):
    """Test dispatching unknown tool."""
    result = await registry.dispatch("unknown", {})

    assert not result.success
    assert "Unknown tool" in result.error


@pytest.mark.asyncio
async def test_dispatch_wrong_type(registry: ToolRegistry, echo_tool: EchoTool):
    """Test type validation of arguments."""
    registry.register(echo_tool)

    result = await registry.dispatch("echo", {"message": 123})

    assert not result.success
    assert "must be a string" in result.error


@pytest.mark.asyncio
async def test_dispatch_rejects_bool_for_integer(registry: ToolRegistry, echo_tool: EchoTool):
    """Booleans are not integers."""
    registry.register(echo_tool)

    result = await registry.dispatch("echo", {"message": "hi", "times": True})

    assert not result.success
    assert "must be an integer" in result.error


@pytest.mark.asyncio
async def test_dispatch_catches_exceptions(registry: ToolRegistry):
    """Tool exceptions become failed results."""
    registry.register(FailingTool())

    result = await registry.dispatch("failing", {"message": "hi"})

    assert not result.success
    assert result.error == "Tool execution failed: boom"


def test_result_to_content():
    """Results render as JSON with data merged in."""
    ok = ToolResult(success=True, output="done", data={"id": 3})
    failed = ToolResult(success=False, output="")

    assert json.loads(ok.to_content()) == {"message": "done", "id": 3}
    assert json.loads(failed.to_content()) == {"error": "Unknown error"}
