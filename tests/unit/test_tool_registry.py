"""
Unit tests for the tool registry.
"""

import json

import pytest

from article_agent.errors import SearchProviderError, ToolInputError
from article_agent.schemas import WriteSectionArgs
from article_agent.tools import Tool, ToolParameter, ToolRegistry, ToolResultStatus
from article_agent.tools.tool_registry import TOOL_ERROR_PREFIX


@pytest.fixture
def echo_tool():
    """Tool with flat parameters that echoes its input."""

    def echo(text: str, times: int = 1) -> str:
        return " ".join([text] * times)

    return Tool(
        name="echo",
        description="Echo text",
        parameters=[
            ToolParameter(name="text", type="string", description="Text"),
            ToolParameter(name="times", type="integer", description="Repeat", required=False),
        ],
        execute_fn=echo,
    )


def test_json_schema_from_parameters(echo_tool):
    schema = echo_tool.json_schema()
    assert schema["type"] == "object"
    assert set(schema["properties"]) == {"text", "times"}
    assert schema["required"] == ["text"]


def test_json_schema_from_args_model():
    tool = Tool(name="write_section", description="Write", args_model=WriteSectionArgs)
    schema = tool.json_schema()
    assert set(schema["required"]) == {"section_title", "markdown", "is_last"}
    assert schema["properties"]["is_last"]["type"] == "boolean"


def test_validate_rejects_unexpected_and_missing(echo_tool):
    with pytest.raises(ToolInputError, match="Unexpected"):
        echo_tool.validate_arguments({"text": "a", "loud": True})
    with pytest.raises(ToolInputError, match="Missing required parameter: text"):
        echo_tool.validate_arguments({})


def test_validate_rejects_bool_for_integer(echo_tool):
    with pytest.raises(ToolInputError, match="must be integer"):
        echo_tool.validate_arguments({"text": "a", "times": True})


def test_validate_args_model_reports_field():
    tool = Tool(name="write_section", description="Write", args_model=WriteSectionArgs)
    with pytest.raises(ToolInputError, match="is_last"):
        tool.validate_arguments({"section_title": "Intro", "markdown": "Hello"})


@pytest.mark.asyncio
async def test_execute_success(echo_tool):
    registry = ToolRegistry()
    registry.register(echo_tool)
    result = await registry.execute_tool("echo", {"text": "hi", "times": 2}, call_id="c1")
    assert result.status == ToolResultStatus.SUCCESS
    assert result.result == "hi hi"
    assert result.to_model_output() == "hi hi"


@pytest.mark.asyncio
async def test_execute_unknown_tool_is_error_result():
    result = await ToolRegistry().execute_tool("nope", {})
    assert not result.ok
    assert result.to_model_output() == f"{TOOL_ERROR_PREFIX}Tool nope not found"


@pytest.mark.asyncio
async def test_invalid_arguments_become_error_result(echo_tool):
    result = await echo_tool.execute({"text": 5})
    assert result.status == ToolResultStatus.ERROR
    assert "must be string" in result.error


@pytest.mark.asyncio
async def test_async_execute_fn_and_structured_result():
    async def lookup(query: str):
        return {"query": query, "results": []}

    tool = Tool(
        name="lookup",
        description="Lookup",
        parameters=[ToolParameter(name="query", type="string", description="Query")],
        execute_fn=lookup,
    )
    result = await tool.execute({"query": "remote work"})
    assert result.ok
    assert json.loads(result.to_model_output()) == {"query": "remote work", "results": []}


@pytest.mark.asyncio
async def test_provider_error_becomes_error_result():
    def broken(query: str):
        raise SearchProviderError("Web search failed: timeout")

    tool = Tool(
        name="web_search",
        description="Search",
        parameters=[ToolParameter(name="query", type="string", description="Query")],
        execute_fn=broken,
    )
    result = await tool.execute({"query": "x"})
    assert not result.ok
    assert result.error == "Web search failed: timeout"


@pytest.mark.asyncio
async def test_unexpected_exception_propagates():
    def broken(query: str):
        raise RuntimeError("database is locked")

    tool = Tool(
        name="boom",
        description="Boom",
        parameters=[ToolParameter(name="query", type="string", description="Query")],
        execute_fn=broken,
    )
    with pytest.raises(RuntimeError, match="database is locked"):
        await tool.execute({"query": "x"})


def test_register_lists_tool_and_overwrites(echo_tool):
    registry = ToolRegistry()
    registry.register(echo_tool)
    registry.register(echo_tool)
    assert registry.list_tools() == ["echo"]
    assert registry.get_tool("echo") is echo_tool
    assert registry.get_tool("missing") is None
