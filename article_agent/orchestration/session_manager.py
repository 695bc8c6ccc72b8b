"""Session lifecycle, section persistence and progress reporting.

The SessionManager is the only writer of session and section rows.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from typing import Any, Dict, List, Optional, Tuple

import aiosqlite

from article_agent.db import SessionRepository
from article_agent.errors import ArticleAgentError, SessionNotFoundError
from article_agent.models import (
    ArticleSection,
    GenerationSession,
    PlannedSection,
    ProgressCounters,
    SectionStatus,
    SessionProgress,
    SessionStatus,
)
from article_agent.models.session import utc_now
from article_agent.schemas import PlanArticleArgs
from article_agent.utils.text_cleaner import sanitize_text, word_count
from article_agent.writing.prompts import STYLE_RULES

logger = logging.getLogger(__name__)

VERSION_CONFLICT_RETRIES = 3


class SessionManager:
    def __init__(
        self,
        db: aiosqlite.Connection,
        step_id: str = "article-draft",
        style_rules: Optional[List[str]] = None,
    ):
        self.repo = SessionRepository(db)
        self.step_id = step_id
        self.style_rules = list(style_rules or STYLE_RULES)

    async def start_session(
        self,
        workflow_id: str,
        outline: str,
        model: Optional[str] = None,
    ) -> str:
        """Create a new `planning` session at the next version for the workflow.

        Two concurrent starts may compute the same next version; the unique
        (workflow_id, version) constraint rejects the loser, which retries.
        """
        metadata: Dict[str, Any] = {"style_rules": self.style_rules}
        if model:
            metadata["model"] = model

        last_error: Optional[sqlite3.IntegrityError] = None
        for attempt in range(1, VERSION_CONFLICT_RETRIES + 1):
            version = await self.repo.max_version(workflow_id) + 1
            now = utc_now()
            session = GenerationSession(
                session_id=str(uuid.uuid4()),
                workflow_id=workflow_id,
                version=version,
                step_id=self.step_id,
                status=SessionStatus.PLANNING,
                outline=sanitize_text(outline),
                session_metadata=metadata,
                started_at=now,
                created_at=now,
                updated_at=now,
            )
            try:
                await self.repo.insert_session(session)
            except sqlite3.IntegrityError as e:
                last_error = e
                logger.warning(
                    f"Version {version} for workflow {workflow_id} already taken "
                    f"(attempt {attempt}/{VERSION_CONFLICT_RETRIES})"
                )
                continue
            logger.info(f"Started session {session.session_id} (workflow {workflow_id} v{version})")
            return session.session_id

        raise ArticleAgentError(
            f"Could not allocate a version for workflow {workflow_id} "
            f"after {VERSION_CONFLICT_RETRIES} attempts"
        ) from last_error

    async def get_session(self, session_id: str) -> Optional[GenerationSession]:
        return await self.repo.get_session(session_id)

    async def require_session(self, session_id: str) -> GenerationSession:
        session = await self.repo.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def update_session(self, session_id: str, **fields: Any) -> None:
        await self.repo.update_session(session_id, fields)

    async def get_progress(self, session_id: str) -> Optional[SessionProgress]:
        session = await self.repo.get_session(session_id)
        if session is None:
            return None
        sections = await self.repo.list_sections(session.workflow_id, session.version)
        return SessionProgress(
            session=session,
            sections=sections,
            progress=ProgressCounters(
                total=session.total_sections,
                completed=session.completed_sections,
                current_word_count=session.current_word_count,
                target_word_count=session.target_word_count,
            ),
        )

    async def record_plan(
        self, session: GenerationSession, plan: PlanArticleArgs
    ) -> Tuple[GenerationSession, List[PlannedSection]]:
        """Store the plan, move to `writing` and insert one pending row per section.

        Planned sections are renumbered 1..N in the model's order.
        """
        ordered = sorted(plan.sections, key=lambda s: s.order)
        planned = [
            PlannedSection(
                title=sanitize_text(s.title).strip(),
                order=position,
                est_words=s.est_words,
                content_requirements=sanitize_text(s.content_requirements),
            )
            for position, s in enumerate(ordered, start=1)
        ]
        target_word_count = plan.target_word_range.max

        metadata = dict(session.session_metadata)
        metadata.update(
            {
                "headline": sanitize_text(plan.headline),
                "writing_style_notes": sanitize_text(plan.writing_style_notes),
                "target_word_range": plan.target_word_range.model_dump(),
                "planned_sections": [p.model_dump() for p in planned],
            }
        )

        await self.repo.insert_sections(
            [
                ArticleSection(
                    workflow_id=session.workflow_id,
                    version=session.version,
                    section_number=p.order,
                    planned_section_id=p.planned_section_id,
                    title=p.title,
                    status=SectionStatus.PENDING,
                    generation_metadata={
                        "target_words": p.est_words,
                        "content_requirements": p.content_requirements,
                    },
                )
                for p in planned
            ]
        )
        await self.repo.update_session(
            session.session_id,
            {
                "status": SessionStatus.WRITING,
                "total_sections": len(planned),
                "target_word_count": target_word_count,
                "session_metadata": metadata,
            },
        )
        updated = await self.require_session(session.session_id)
        return updated, planned

    async def complete_section(
        self, session: GenerationSession, title: str, markdown: str, is_last: bool
    ) -> Tuple[GenerationSession, ArticleSection]:
        """Persist the next section and bump the session counters.

        The ordinal is completed_sections + 1. The pending placeholder with that
        number is completed in place; sections beyond the plan are appended.
        """
        ordinal = session.completed_sections + 1
        content = sanitize_text(markdown)
        words = word_count(content)
        clean_title = sanitize_text(title).strip()

        placeholder = await self.repo.get_section(session.workflow_id, session.version, ordinal)
        if placeholder is not None and placeholder.status == SectionStatus.PENDING:
            generation_metadata = {**placeholder.generation_metadata, "is_last": is_last}
            await self.repo.update_section(
                placeholder.section_id,
                {
                    "title": clean_title,
                    "content": content,
                    "word_count": words,
                    "status": SectionStatus.COMPLETED,
                    "generation_metadata": generation_metadata,
                },
            )
        else:
            await self.repo.insert_sections(
                [
                    ArticleSection(
                        workflow_id=session.workflow_id,
                        version=session.version,
                        section_number=ordinal,
                        title=clean_title,
                        content=content,
                        word_count=words,
                        status=SectionStatus.COMPLETED,
                        generation_metadata={"is_last": is_last, "unplanned": True},
                    )
                ]
            )

        await self.repo.update_session(
            session.session_id,
            {
                "completed_sections": ordinal,
                "current_word_count": session.current_word_count + words,
            },
        )
        section = await self.repo.get_section(session.workflow_id, session.version, ordinal)
        if section is None:
            raise ArticleAgentError(
                f"Section {ordinal} of session {session.session_id} missing after write"
            )
        return await self.require_session(session.session_id), section

    async def previous_sections(self, session: GenerationSession, limit: int) -> List[ArticleSection]:
        return await self.repo.latest_completed_sections(session.workflow_id, session.version, limit)

    async def mark_completed(self, session_id: str) -> None:
        await self.repo.update_session(
            session_id, {"status": SessionStatus.COMPLETED, "completed_at": utc_now()}
        )

    async def mark_error(self, session_id: str, message: str) -> None:
        await self.repo.update_session(
            session_id, {"status": SessionStatus.ERROR, "error_message": message}
        )
