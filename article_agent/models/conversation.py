"""Conversation transcript entries exchanged with the model runtime."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from article_agent.models.enums import MessageRole


class ToolCall(BaseModel):
    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ConversationMessage(BaseModel):
    """A role-tagged transcript entry. Never persisted."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: Optional[str] = None
    tool_call: Optional[ToolCall] = None
    tool_call_id: Optional[str] = None
    tool_name: Optional[str] = None

    @classmethod
    def user(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "ConversationMessage":
        return cls(role=MessageRole.ASSISTANT, content=content)

    @classmethod
    def assistant_tool_call(cls, call: ToolCall) -> "ConversationMessage":
        return cls(role=MessageRole.ASSISTANT, tool_call=call)

    @classmethod
    def tool_output(cls, call_id: str, name: str, output: str) -> "ConversationMessage":
        return cls(role=MessageRole.TOOL, content=output, tool_call_id=call_id, tool_name=name)
