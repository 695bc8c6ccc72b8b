"""Generation session and article section models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from article_agent.models.enums import SectionStatus, SessionStatus


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PlannedSection(BaseModel):
    """A section of the recorded plan, stored inside session metadata."""

    planned_section_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    title: str
    order: int
    est_words: int
    content_requirements: str = ""


class GenerationSession(BaseModel):
    session_id: str
    workflow_id: str
    version: int
    step_id: str
    status: SessionStatus = SessionStatus.PLANNING
    outline: str
    total_sections: int = 0
    completed_sections: int = 0
    target_word_count: int = 0
    current_word_count: int = 0
    session_metadata: Dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.PLANNING, SessionStatus.WRITING)

    def planned_sections(self) -> List[PlannedSection]:
        """Return the recorded plan sorted by order (empty before planning)."""
        raw = self.session_metadata.get("planned_sections") or []
        sections = [PlannedSection.model_validate(item) for item in raw]
        return sorted(sections, key=lambda s: s.order)


class ArticleSection(BaseModel):
    section_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow_id: str
    version: int
    section_number: int
    planned_section_id: Optional[str] = None
    title: str
    content: str = ""
    word_count: int = 0
    status: SectionStatus = SectionStatus.PENDING
    generation_metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ProgressCounters(BaseModel):
    total: int
    completed: int
    current_word_count: int
    target_word_count: int


class SessionProgress(BaseModel):
    """Shape returned to progress pollers."""

    session: GenerationSession
    sections: List[ArticleSection]
    progress: ProgressCounters


class AssembledArticle(BaseModel):
    """Final document produced from the completed sections of one version."""

    workflow_id: str
    version: int
    full_article: str
    total_sections: int
    total_words: int
    generated_at: datetime = Field(default_factory=utc_now)
