"""Domain results returned by the tool effect layer.

The prompt synthesis layer turns these into instruction text for the model.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from article_agent.models.session import (
    ArticleSection,
    AssembledArticle,
    GenerationSession,
    PlannedSection,
)
from article_agent.schemas import WordRange


@dataclass(frozen=True)
class PlanRecorded:
    session: GenerationSession
    headline: str
    word_range: WordRange
    planned_sections: List[PlannedSection]

    @property
    def first_section(self) -> PlannedSection:
        return self.planned_sections[0]


@dataclass(frozen=True)
class SectionWritten:
    session: GenerationSession
    section: ArticleSection
    is_last: bool
    next_section: Optional[PlannedSection] = None
    article: Optional[AssembledArticle] = None
