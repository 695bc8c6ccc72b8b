"""PydanticAI-backed model runtime.

Provider is inferred from the model string prefix used in config/settings.yaml
(e.g. "openai:", "anthropic:", "google-gla:"). Tools are advertised with the
registry's JSON schemas and executed through the registry, so validation and
error conversion stay in one place.

Retry behavior: transient errors (429/502/503/504, "overloaded", "rate", ...)
are retried with exponential backoff and jitter, but only while the round has
not emitted any event yet. Once streaming started, errors propagate.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

from pydantic_ai import Agent
from pydantic_ai.messages import (
    FunctionToolCallEvent,
    FunctionToolResultEvent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    RetryPromptPart,
    TextPart,
    TextPartDelta,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings
from pydantic_ai.tools import Tool as AgentTool
from pydantic_ai.usage import UsageLimits

from article_agent.llm.runtime import (
    MessageCompleted,
    RuntimeEvent,
    TextDelta,
    ToolCalled,
    ToolOutput,
)
from article_agent.models import ConversationMessage, MessageRole, ToolCall
from article_agent.tools.tool_registry import TOOL_ERROR_PREFIX, ToolRegistry

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Retry configuration
# ---------------------------------------------------------------------------
_MAX_RETRIES = 5
_BASE_DELAY = 2.0   # seconds
_MAX_DELAY = 90.0   # seconds cap

# HTTP status codes that indicate a transient server-side problem.
_RETRYABLE_CODES = {"429", "502", "503", "504"}
# Substrings found in exception messages for retryable conditions.
_RETRYABLE_MSGS = {"unavailable", "resource_exhausted", "rate", "overloaded", "gateway", "quota"}


def _is_retryable(exc: BaseException) -> bool:
    """Return True if *exc* represents a transient provider error worth retrying."""
    s = str(exc).lower()
    return any(c in s for c in _RETRYABLE_CODES) or any(m in s for m in _RETRYABLE_MSGS)


def to_model_messages(messages: Sequence[ConversationMessage]) -> List[ModelMessage]:
    """Convert the transcript into PydanticAI message history.

    Consecutive tool calls share one ModelResponse and consecutive tool outputs
    share one ModelRequest, matching the provider call/response pairing.
    """
    history: List[ModelMessage] = []
    for message in messages:
        if message.role == MessageRole.USER:
            history.append(ModelRequest(parts=[UserPromptPart(content=message.content or "")]))
        elif message.role == MessageRole.TOOL:
            part = ToolReturnPart(
                tool_name=message.tool_name or "",
                content=message.content or "",
                tool_call_id=message.tool_call_id or "",
            )
            if history and isinstance(history[-1], ModelRequest) and all(
                isinstance(p, ToolReturnPart) for p in history[-1].parts
            ):
                history[-1] = ModelRequest(parts=[*history[-1].parts, part])
            else:
                history.append(ModelRequest(parts=[part]))
        elif message.tool_call is not None:
            call = ToolCallPart(
                tool_name=message.tool_call.name,
                args=message.tool_call.arguments,
                tool_call_id=message.tool_call.call_id,
            )
            if history and isinstance(history[-1], ModelResponse) and all(
                isinstance(p, ToolCallPart) for p in history[-1].parts
            ):
                history[-1] = ModelResponse(parts=[*history[-1].parts, call])
            else:
                history.append(ModelResponse(parts=[call]))
        else:
            history.append(ModelResponse(parts=[TextPart(content=message.content or "")]))
    return history


def _make_tool_function(registry: ToolRegistry, name: str) -> Callable[..., Any]:
    async def _call(**arguments: Any) -> str:
        result = await registry.execute_tool(name, arguments)
        return result.to_model_output()

    _call.__name__ = name
    return _call


def build_agent_tools(registry: ToolRegistry) -> List[AgentTool]:
    # Sequential: the article tools read then write session state, so two
    # calls from one model response must not interleave.
    return [
        AgentTool.from_schema(
            _make_tool_function(registry, tool.name),
            name=tool.name,
            description=tool.description,
            json_schema=tool.json_schema(),
            sequential=True,
        )
        for tool in registry.tools.values()
    ]


class PydanticAIRuntime:
    """Runs one orchestration round through a PydanticAI Agent.

    The per-round model string picks the provider. An explicit PydanticAI
    `model` instance overrides it (used with FunctionModel in tests).
    """

    def __init__(self, model: Optional[Model] = None, max_retries: int = _MAX_RETRIES):
        self._model_override = model
        self.max_retries = max_retries

    async def run_round(
        self,
        *,
        model: str,
        instructions: str,
        messages: Sequence[ConversationMessage],
        registry: ToolRegistry,
        max_turns: int,
        temperature: float,
    ) -> AsyncIterator[RuntimeEvent]:
        if not messages or messages[-1].role != MessageRole.USER:
            raise ValueError("A round must start from a user message")

        agent: Agent[None, str] = Agent(
            self._model_override or model,
            instructions=instructions,
            tools=build_agent_tools(registry),
            output_type=str,
        )
        history = to_model_messages(messages[:-1])
        prompt = messages[-1].content or ""
        settings = ModelSettings(temperature=temperature, parallel_tool_calls=False)
        limits = UsageLimits(request_limit=max_turns)

        for attempt in range(self.max_retries):
            emitted = False
            try:
                async for event in self._stream(agent, prompt, history, settings, limits):
                    emitted = True
                    yield event
                return
            except Exception as exc:
                if emitted or not _is_retryable(exc) or attempt == self.max_retries - 1:
                    raise
                delay = min(_BASE_DELAY * (2 ** attempt) + random.uniform(0, 1), _MAX_DELAY)
                logger.warning(
                    "LLM transient error (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)

    async def _stream(
        self,
        agent: Agent[None, str],
        prompt: str,
        history: List[ModelMessage],
        settings: ModelSettings,
        limits: UsageLimits,
    ) -> AsyncIterator[RuntimeEvent]:
        call_names: Dict[str, str] = {}
        async with agent.iter(
            prompt,
            message_history=history,
            model_settings=settings,
            usage_limits=limits,
        ) as run:
            async for node in run:
                if Agent.is_model_request_node(node):
                    async with node.stream(run.ctx) as request_stream:
                        async for event in request_stream:
                            if (
                                isinstance(event, PartStartEvent)
                                and isinstance(event.part, TextPart)
                                and event.part.content
                            ):
                                yield TextDelta(event.part.content)
                            elif isinstance(event, PartDeltaEvent) and isinstance(
                                event.delta, TextPartDelta
                            ):
                                yield TextDelta(event.delta.content_delta)
                elif Agent.is_call_tools_node(node):
                    async with node.stream(run.ctx) as handle_stream:
                        async for event in handle_stream:
                            if isinstance(event, FunctionToolCallEvent):
                                call_names[event.part.tool_call_id] = event.part.tool_name
                                yield ToolCalled(
                                    ToolCall(
                                        call_id=event.part.tool_call_id,
                                        name=event.part.tool_name,
                                        arguments=event.part.args_as_dict(),
                                    )
                                )
                            elif isinstance(event, FunctionToolResultEvent):
                                part = event.part
                                if isinstance(part, ToolReturnPart):
                                    output = part.model_response_str()
                                    yield ToolOutput(
                                        call_id=part.tool_call_id,
                                        name=part.tool_name,
                                        output=output,
                                        ok=not output.startswith(TOOL_ERROR_PREFIX),
                                    )
                                elif isinstance(part, RetryPromptPart):
                                    yield ToolOutput(
                                        call_id=part.tool_call_id,
                                        name=part.tool_name or call_names.get(part.tool_call_id, ""),
                                        output=part.model_response(),
                                        ok=False,
                                    )
                elif Agent.is_end_node(node):
                    yield MessageCompleted(str(node.data.output))
