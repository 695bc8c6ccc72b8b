"""Model runtime adapters."""

from article_agent.llm.runtime import (
    MessageCompleted,
    ModelRuntime,
    RuntimeEvent,
    TextDelta,
    ToolCalled,
    ToolOutput,
)

__all__ = [
    "MessageCompleted",
    "ModelRuntime",
    "RuntimeEvent",
    "TextDelta",
    "ToolCalled",
    "ToolOutput",
]
