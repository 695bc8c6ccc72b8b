"""
Integration tests for the PydanticAI runtime, using FunctionModel in place of a provider.
"""

import json
from typing import AsyncIterator, Dict, List, Union

import pytest
from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    TextPart,
    ToolCallPart,
    ToolReturnPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, DeltaToolCall, FunctionModel

from article_agent.llm.pydantic_runtime import PydanticAIRuntime, _is_retryable, to_model_messages
from article_agent.llm.runtime import MessageCompleted, TextDelta, ToolCalled, ToolOutput
from article_agent.models import ConversationMessage, SessionStatus, ToolCall
from article_agent.orchestration import ArticleOrchestrator
from article_agent.tools import Tool, ToolParameter, ToolRegistry

StreamItem = Union[str, Dict[int, DeltaToolCall]]


def _tool_returns(messages: List[ModelMessage]) -> int:
    return sum(
        1
        for message in messages
        if isinstance(message, ModelRequest)
        for part in message.parts
        if isinstance(part, ToolReturnPart)
    )


def _call(name: str, args: dict, call_id: str) -> Dict[int, DeltaToolCall]:
    return {0: DeltaToolCall(name=name, json_args=json.dumps(args), tool_call_id=call_id)}


def scripted_stream(steps: List[StreamItem]):
    """Stream function that plays one step per model request, then a closing text."""

    async def stream(messages: List[ModelMessage], info: AgentInfo) -> AsyncIterator[StreamItem]:
        index = _tool_returns(messages)
        yield steps[index] if index < len(steps) else "Done"

    return stream


@pytest.fixture
def echo_registry():
    registry = ToolRegistry()
    registry.register(
        Tool(
            name="echo",
            description="Echo text back",
            parameters=[ToolParameter(name="text", type="string", description="Text")],
            execute_fn=lambda text: f"echo: {text}",
        )
    )
    return registry


async def _collect(runtime, registry, messages):
    events = []
    async for event in runtime.run_round(
        model="test",
        instructions="Use the tools.",
        messages=messages,
        registry=registry,
        max_turns=50,
        temperature=0.0,
    ):
        events.append(event)
    return events


def test_to_model_messages_groups_tool_calls():
    transcript = [
        ConversationMessage.user("Write"),
        ConversationMessage.assistant_tool_call(ToolCall(call_id="a", name="file_search", arguments={"query": "x"})),
        ConversationMessage.assistant_tool_call(ToolCall(call_id="b", name="file_search", arguments={"query": "y"})),
        ConversationMessage.tool_output("a", "file_search", "A"),
        ConversationMessage.tool_output("b", "file_search", "B"),
        ConversationMessage.assistant("Thinking"),
    ]
    history = to_model_messages(transcript)

    assert [type(m) for m in history] == [ModelRequest, ModelResponse, ModelRequest, ModelResponse]
    assert isinstance(history[0].parts[0], UserPromptPart)
    assert [p.tool_call_id for p in history[1].parts] == ["a", "b"]
    assert all(isinstance(p, ToolCallPart) for p in history[1].parts)
    assert [p.content for p in history[2].parts] == ["A", "B"]
    assert isinstance(history[3].parts[0], TextPart)


def test_retryable_errors():
    assert _is_retryable(RuntimeError("status_code: 429, rate limit"))
    assert _is_retryable(RuntimeError("Model is overloaded"))
    assert not _is_retryable(ValueError("invalid api key"))


@pytest.mark.asyncio
async def test_round_streams_tool_events(echo_registry):
    model = FunctionModel(stream_function=scripted_stream([_call("echo", {"text": "hi"}, "c1")]))
    events = await _collect(PydanticAIRuntime(model), echo_registry, [ConversationMessage.user("Go")])

    called = [e for e in events if isinstance(e, ToolCalled)]
    outputs = [e for e in events if isinstance(e, ToolOutput)]
    assert called[0].call.name == "echo"
    assert called[0].call.arguments == {"text": "hi"}
    assert outputs[0].output == "echo: hi"
    assert outputs[0].ok
    assert any(isinstance(e, TextDelta) and "Done" in e.delta for e in events)
    assert isinstance(events[-1], MessageCompleted)
    assert events[-1].content == "Done"


@pytest.mark.asyncio
async def test_invalid_tool_arguments_come_back_as_error_output(echo_registry):
    model = FunctionModel(stream_function=scripted_stream([_call("echo", {"text": 3}, "c1")]))
    events = await _collect(PydanticAIRuntime(model), echo_registry, [ConversationMessage.user("Go")])

    output = next(e for e in events if isinstance(e, ToolOutput))
    assert not output.ok
    assert output.output.startswith("Error: ")


@pytest.mark.asyncio
async def test_round_must_start_from_user_message(echo_registry):
    runtime = PydanticAIRuntime(FunctionModel(stream_function=scripted_stream([])))
    with pytest.raises(ValueError, match="user message"):
        await _collect(runtime, echo_registry, [ConversationMessage.assistant("Hi")])


@pytest.mark.asyncio
async def test_orchestrator_with_function_model(db, workflow, broadcaster, recorder, settings, plan_args):
    two_sections = dict(plan_args, sections=[plan_args["sections"][0], plan_args["sections"][2]])
    steps = [
        _call("plan_article", two_sections, "p1"),
        _call(
            "write_section",
            {"section_title": "Intro", "markdown": "## Intro\n\nHello readers.", "is_last": False},
            "w1",
        ),
        _call(
            "write_section",
            {"section_title": "Conclusion", "markdown": "Goodbye readers.", "is_last": True},
            "w2",
        ),
    ]
    runtime = PydanticAIRuntime(FunctionModel(stream_function=scripted_stream(steps)))
    orchestrator = ArticleOrchestrator(db, runtime, broadcaster, settings, search_tools=[])
    session_id = await orchestrator.start_session(workflow, "1. Intro\n2. Conclusion")
    broadcaster.attach(session_id, recorder)

    article = await orchestrator.generate_article(session_id)

    assert article.full_article == "## Intro\n\nHello readers.\n\n## Conclusion\n\nGoodbye readers."
    assert article.total_words == 6
    session = await orchestrator.sessions.require_session(session_id)
    assert session.status == SessionStatus.COMPLETED
    assert [e["tool"] for e in recorder.of_type("tool_call")] == [
        "plan_article",
        "write_section",
        "write_section",
    ]
    assert recorder.types[-1] == "completed"


def _model_responses(messages: List[ModelMessage]) -> int:
    return sum(1 for message in messages if isinstance(message, ModelResponse))


@pytest.mark.asyncio
async def test_two_writes_in_one_response_keep_their_order(
    db, workflow, broadcaster, recorder, settings, plan_args
):
    def write(title, markdown, call_id, index, is_last=False):
        args = {"section_title": title, "markdown": markdown, "is_last": is_last}
        return index, DeltaToolCall(name="write_section", json_args=json.dumps(args), tool_call_id=call_id)

    steps = [
        _call("plan_article", plan_args, "p1"),
        dict(
            [
                write("Intro", "## Intro\n\nHello remote readers.", "w1", 0),
                write("Body", "Habits that stick across time zones.", "w2", 1),
            ]
        ),
        dict([write("Conclusion", "Goodbye readers.", "w3", 0, is_last=True)]),
    ]

    async def stream(messages: List[ModelMessage], info: AgentInfo) -> AsyncIterator[StreamItem]:
        index = _model_responses(messages)
        yield steps[index] if index < len(steps) else "Done"

    runtime = PydanticAIRuntime(FunctionModel(stream_function=stream))
    orchestrator = ArticleOrchestrator(db, runtime, broadcaster, settings, search_tools=[])
    session_id = await orchestrator.start_session(workflow, "1. Intro\n2. Body\n3. Conclusion")
    broadcaster.attach(session_id, recorder)

    article = await orchestrator.generate_article(session_id)

    progress = await orchestrator.get_progress(session_id)
    assert [(s.section_number, s.title) for s in progress.sections] == [
        (1, "Intro"),
        (2, "Body"),
        (3, "Conclusion"),
    ]
    assert [s.status.value for s in progress.sections] == ["completed"] * 3
    assert progress.progress.completed == 3
    assert progress.progress.current_word_count == sum(s.word_count for s in progress.sections)
    assert article.total_sections == 3
    assert article.full_article.index("Hello remote") < article.full_article.index("Habits")
    assert [e["section_number"] for e in recorder.of_type("section")] == [1, 2, 3]
