"""Model exports for component boundaries."""

from article_agent.models.config import (
    WRITER_AGENT,
    AgentConfig,
    GenerationConfig,
    LoggingConfig,
    SearchConfig,
    SettingsConfig,
    StorageConfig,
    WorkflowStepConfig,
)
from article_agent.models.conversation import ConversationMessage, ToolCall
from article_agent.models.enums import (
    GenerationPhase,
    MessageRole,
    ProgressEventType,
    SectionStatus,
    SessionStatus,
)
from article_agent.models.results import PlanRecorded, SectionWritten
from article_agent.models.session import (
    ArticleSection,
    AssembledArticle,
    GenerationSession,
    PlannedSection,
    ProgressCounters,
    SessionProgress,
)

__all__ = [
    "AgentConfig",
    "ArticleSection",
    "AssembledArticle",
    "ConversationMessage",
    "GenerationConfig",
    "GenerationPhase",
    "GenerationSession",
    "LoggingConfig",
    "MessageRole",
    "PlanRecorded",
    "PlannedSection",
    "ProgressCounters",
    "ProgressEventType",
    "SearchConfig",
    "SectionWritten",
    "SectionStatus",
    "SessionProgress",
    "SessionStatus",
    "SettingsConfig",
    "StorageConfig",
    "ToolCall",
    "WRITER_AGENT",
    "WorkflowStepConfig",
]
