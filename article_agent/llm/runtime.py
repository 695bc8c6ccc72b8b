"""Model runtime boundary: the event vocabulary the orchestration loop consumes.

A runtime runs one round: it sends the transcript to the model, executes any
tool calls through the registry, and streams events until the model ends the
round with a plain message.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import AsyncIterator, Protocol, Sequence, Union

from article_agent.models import ConversationMessage, ToolCall
from article_agent.tools.tool_registry import ToolRegistry


@dataclass(frozen=True)
class TextDelta:
    delta: str


@dataclass(frozen=True)
class ToolCalled:
    call: ToolCall


@dataclass(frozen=True)
class ToolOutput:
    call_id: str
    name: str
    output: str
    ok: bool = True


@dataclass(frozen=True)
class MessageCompleted:
    content: str


RuntimeEvent = Union[TextDelta, ToolCalled, ToolOutput, MessageCompleted]


class ModelRuntime(Protocol):
    def run_round(
        self,
        *,
        model: str,
        instructions: str,
        messages: Sequence[ConversationMessage],
        registry: ToolRegistry,
        max_turns: int,
        temperature: float,
    ) -> AsyncIterator[RuntimeEvent]: ...
