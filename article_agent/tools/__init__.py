"""Tools the writer agent can call."""

from article_agent.tools.article_tools import ArticleToolEffects, ArticleToolkit
from article_agent.tools.search_tools import (
    GuidelineLibrary,
    TavilySearchTool,
    create_file_search_tool,
    create_web_search_tool,
)
from article_agent.tools.tool_registry import (
    Tool,
    ToolParameter,
    ToolRegistry,
    ToolResult,
    ToolResultStatus,
)

__all__ = [
    "ArticleToolEffects",
    "ArticleToolkit",
    "GuidelineLibrary",
    "TavilySearchTool",
    "Tool",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
    "ToolResultStatus",
    "create_file_search_tool",
    "create_web_search_tool",
]
