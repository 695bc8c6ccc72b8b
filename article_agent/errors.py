"""Exception hierarchy for article generation."""

from __future__ import annotations


class ArticleAgentError(Exception):
    """Base class for all article agent errors."""


class ToolInputError(ArticleAgentError):
    """Tool call rejected before any side effect.

    Raised for schema violations and for calls that break the plan-then-write
    protocol. The registry converts it into an error tool result so the model
    can retry with corrected arguments.
    """


class SearchProviderError(ArticleAgentError):
    """A retrieval provider (file or web search) failed."""


class SessionNotFoundError(ArticleAgentError):
    """An operation required a generation session that does not exist."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SafetyLimitExceeded(ArticleAgentError):
    """A loop ceiling was reached before the terminal section was written."""


class StalledAgentError(ArticleAgentError):
    """The model kept answering with plain text instead of calling tools."""


class GenerationCancelled(ArticleAgentError):
    """The generation run was cancelled by its caller."""
