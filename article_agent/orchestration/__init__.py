"""Generation orchestration: sessions, loop, broadcasting."""

from article_agent.orchestration.broadcaster import BroadcastRegistry, QueueChannel, build_event
from article_agent.orchestration.cancellation import CancellationToken
from article_agent.orchestration.console_channel import ConsoleChannel
from article_agent.orchestration.finalizer import ArticleFinalizer
from article_agent.orchestration.loop import ArticleOrchestrator, build_search_tools
from article_agent.orchestration.session_manager import SessionManager
from article_agent.orchestration.transcript import Transcript

__all__ = [
    "ArticleFinalizer",
    "ArticleOrchestrator",
    "BroadcastRegistry",
    "CancellationToken",
    "ConsoleChannel",
    "QueueChannel",
    "SessionManager",
    "Transcript",
    "build_event",
    "build_search_tools",
]
