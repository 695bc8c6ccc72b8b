"""Final assembly of a session's article and write-back to the workflow document."""

from __future__ import annotations

import logging

import aiosqlite

from article_agent.db import SessionRepository, WorkflowDocumentRepository
from article_agent.models import AssembledArticle, GenerationSession, SectionStatus
from article_agent.models.session import utc_now
from article_agent.writing.assembly import assemble_sections

logger = logging.getLogger(__name__)


class ArticleFinalizer:
    def __init__(self, db: aiosqlite.Connection, step_id: str = "article-draft"):
        self.sections = SessionRepository(db)
        self.workflows = WorkflowDocumentRepository(db)
        self.step_id = step_id

    async def assemble(self, workflow_id: str) -> AssembledArticle:
        """Assemble the completed sections of the newest section version for a workflow."""
        version = await self.sections.latest_section_version(workflow_id) or 0
        completed = await self.sections.list_sections(
            workflow_id, version, status=SectionStatus.COMPLETED
        )
        full_article, total_sections, total_words = assemble_sections(completed)
        return AssembledArticle(
            workflow_id=workflow_id,
            version=version,
            full_article=full_article,
            total_sections=total_sections,
            total_words=total_words,
            generated_at=utc_now(),
        )

    async def finalize(self, session: GenerationSession) -> AssembledArticle:
        article = await self.assemble(session.workflow_id)
        outputs = {
            "fullArticle": article.full_article,
            "wordCount": article.total_words,
            "agentGenerated": True,
            "generatedAt": article.generated_at.isoformat(),
            "draftStatus": "completed",
        }
        step_id = session.step_id or self.step_id
        updated = await self.workflows.update_step_outputs(session.workflow_id, step_id, outputs)
        if not updated:
            logger.warning(
                f"Workflow {session.workflow_id} has no step '{step_id}'; "
                "skipping article write-back"
            )
        logger.info(
            f"Assembled article for workflow {session.workflow_id} v{article.version}: "
            f"{article.total_sections} sections, {article.total_words} words"
        )
        return article
