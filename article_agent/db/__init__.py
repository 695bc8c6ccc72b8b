"""Persistence layer."""

from article_agent.db.database import get_db, open_db, run_migrations
from article_agent.db.repositories import SessionRepository, WorkflowDocumentRepository

__all__ = [
    "SessionRepository",
    "WorkflowDocumentRepository",
    "get_db",
    "open_db",
    "run_migrations",
]
