"""
Retrieval tools: file search over local guideline documents and Tavily web search.

Both are auxiliary to generation. Provider failures are raised as
SearchProviderError so the registry hands them back to the model as tool errors.
"""

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from tavily import TavilyClient

from article_agent.errors import SearchProviderError
from article_agent.tools.tool_registry import Tool, ToolParameter

logger = logging.getLogger(__name__)

GUIDELINE_SUFFIXES = (".md", ".markdown", ".txt")
_TOKEN_RE = re.compile(r"[a-z0-9]+")
_HEADING_RE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$")


def _tokens(text: str) -> List[str]:
    return [t for t in _TOKEN_RE.findall(text.lower()) if len(t) > 2]


@dataclass(frozen=True)
class GuidelineChunk:
    source: str
    heading: str
    text: str


class GuidelineLibrary:
    """Searchable set of writing and SEO guideline documents from one directory."""

    def __init__(self, directory: str):
        self.directory = Path(directory)
        self._chunks: Optional[List[GuidelineChunk]] = None

    def _load(self) -> List[GuidelineChunk]:
        if self._chunks is not None:
            return self._chunks
        chunks: List[GuidelineChunk] = []
        if not self.directory.is_dir():
            logger.warning(f"Guidelines directory not found: {self.directory}")
            self._chunks = chunks
            return chunks

        for path in sorted(self.directory.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in GUIDELINE_SUFFIXES:
                continue
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                raise SearchProviderError(f"Cannot read guideline file {path.name}: {e}") from e
            chunks.extend(self._split(path.name, text))

        logger.debug(f"Loaded {len(chunks)} guideline chunks from {self.directory}")
        self._chunks = chunks
        return chunks

    @staticmethod
    def _split(source: str, text: str) -> List[GuidelineChunk]:
        """Split a document into heading-delimited chunks."""
        chunks: List[GuidelineChunk] = []
        heading = source
        buffer: List[str] = []

        def flush() -> None:
            body = "\n".join(buffer).strip()
            if body:
                chunks.append(GuidelineChunk(source=source, heading=heading, text=body))

        for line in text.splitlines():
            match = _HEADING_RE.match(line.strip())
            if match:
                flush()
                heading = match.group(1)
                buffer = []
            else:
                buffer.append(line)
        flush()
        return chunks

    def search(self, query: str, max_results: int = 3) -> List[GuidelineChunk]:
        """Rank chunks by keyword overlap with the query."""
        query_tokens = set(_tokens(query))
        if not query_tokens:
            return []
        scored = []
        for index, chunk in enumerate(self._load()):
            chunk_tokens = _tokens(f"{chunk.heading} {chunk.text}")
            score = sum(1 for token in chunk_tokens if token in query_tokens)
            if score:
                scored.append((-score, index, chunk))
        scored.sort()
        return [chunk for _, _, chunk in scored[:max_results]]


def create_file_search_tool(library: GuidelineLibrary, default_max_results: int = 3) -> Tool:
    """
    Create the file_search tool for the tool registry.

    Args:
        library: Guideline documents to search
        default_max_results: Results returned when the model does not ask for a number

    Returns:
        Tool instance
    """

    def execute_search(query: str, max_results: int = default_max_results) -> str:
        matches = library.search(query, max_results=max(1, min(max_results, 20)))
        if not matches:
            return "No matching guideline documents found."
        blocks = [f"[{m.source} :: {m.heading}]\n{m.text}" for m in matches]
        return "\n\n---\n\n".join(blocks)

    return Tool(
        name="file_search",
        description=(
            "Search the project's writing and SEO guideline documents. "
            "Use it before planning to learn the style and optimization rules."
        ),
        parameters=[
            ToolParameter(
                name="query",
                type="string",
                description="What to look for, e.g. 'paragraph length' or 'keyword placement'",
                required=True,
            ),
            ToolParameter(
                name="max_results",
                type="integer",
                description=f"Maximum number of passages to return (default: {default_max_results})",
                required=False,
            ),
        ],
        execute_fn=execute_search,
    )


class TavilySearchTool:
    """Tool wrapper for Tavily search API."""

    def __init__(self, api_key: Optional[str] = None, client: Any = None):
        """
        Initialize Tavily search tool.

        Args:
            api_key: Tavily API key (defaults to TAVILY_API_KEY env var)
            client: Prebuilt client exposing `search(query, max_results=...)`
        """
        if client is not None:
            self.client = client
            return
        try:
            self.client = TavilyClient(api_key=api_key or os.getenv("TAVILY_API_KEY"))
        except Exception as e:
            logger.error(f"Failed to initialize Tavily client: {e}")
            raise

    async def search(self, query: str, max_results: int = 5) -> Dict[str, Any]:
        """Web search with real-time results; the blocking client runs in a worker thread."""
        try:
            return await asyncio.to_thread(self.client.search, query, max_results=max_results)
        except Exception as e:
            logger.error(f"Tavily search failed: {e}")
            raise SearchProviderError(f"Web search failed: {e}") from e


def create_web_search_tool(tavily: TavilySearchTool, default_max_results: int = 5) -> Tool:
    """
    Create the web_search tool for the tool registry.

    Args:
        tavily: Tavily client wrapper
        default_max_results: Results returned when the model does not ask for a number

    Returns:
        Tool instance
    """

    async def execute_search(query: str, max_results: int = default_max_results) -> Dict[str, Any]:
        results = await tavily.search(query, max_results=max(1, min(max_results, 20)))
        raw = results.get("results", []) if isinstance(results, dict) else results
        return {
            "query": query,
            "results": [
                {
                    "title": item.get("title", ""),
                    "url": item.get("url", ""),
                    "content": (item.get("content") or "")[:800],
                }
                for item in raw or []
                if isinstance(item, dict)
            ],
        }

    return Tool(
        name="web_search",
        description=(
            "Search the web using Tavily AI search engine. Use it for recent facts, "
            "statistics and sources the outline does not provide."
        ),
        parameters=[
            ToolParameter(
                name="query",
                type="string",
                description="Search query string",
                required=True,
            ),
            ToolParameter(
                name="max_results",
                type="integer",
                description=f"Maximum number of results to return (default: {default_max_results})",
                required=False,
            ),
        ],
        execute_fn=execute_search,
    )
