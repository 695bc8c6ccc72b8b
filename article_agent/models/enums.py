"""Enum definitions for typed session and section state."""

from enum import Enum


class SessionStatus(str, Enum):
    PLANNING = "planning"
    WRITING = "writing"
    COMPLETED = "completed"
    ERROR = "error"


class SectionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class GenerationPhase(str, Enum):
    """States of the orchestration loop."""

    INIT = "init"
    PLANNING = "planning"
    WRITING = "writing"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    ERROR = "error"


class ProgressEventType(str, Enum):
    STATUS = "status"
    PLAN = "plan"
    TEXT = "text"
    TOOL_CALL = "tool_call"
    TOOL_OUTPUT = "tool_output"
    ASSISTANT = "assistant"
    SECTION = "section"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({ProgressEventType.COMPLETED.value, ProgressEventType.ERROR.value})
