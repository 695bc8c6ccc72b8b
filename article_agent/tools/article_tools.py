"""
Article tools: plan_article, read_previous_sections, write_section.

ArticleToolEffects validates the plan-then-write protocol, persists through the
SessionManager and returns domain results. ArticleToolkit turns those results
into the text handed back to the model and broadcasts progress.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, List, Optional

from article_agent.errors import ArticleAgentError, ToolInputError
from article_agent.models import (
    ArticleSection,
    AssembledArticle,
    GenerationConfig,
    GenerationPhase,
    PlanRecorded,
    ProgressEventType,
    SectionWritten,
    SessionStatus,
)
from article_agent.schemas import PlanArticleArgs, ReadPreviousSectionsArgs, WriteSectionArgs
from article_agent.tools.tool_registry import Tool, ToolRegistry
from article_agent.utils import structured_log
from article_agent.writing import prompts

if TYPE_CHECKING:
    from article_agent.orchestration.broadcaster import BroadcastRegistry
    from article_agent.orchestration.finalizer import ArticleFinalizer
    from article_agent.orchestration.session_manager import SessionManager

logger = logging.getLogger(__name__)


class ArticleToolEffects:
    """Validate, persist, return a domain result. No prompt text here."""

    def __init__(self, sessions: "SessionManager", finalizer: "ArticleFinalizer", session_id: str):
        self.sessions = sessions
        self.finalizer = finalizer
        self.session_id = session_id
        # plan and write read session state before persisting it
        self._lock = asyncio.Lock()

    async def plan(self, args: PlanArticleArgs) -> PlanRecorded:
        async with self._lock:
            return await self._plan(args)

    async def _plan(self, args: PlanArticleArgs) -> PlanRecorded:
        session = await self.sessions.require_session(self.session_id)
        if session.status != SessionStatus.PLANNING:
            raise ToolInputError(
                "The article plan is already recorded. Continue with write_section."
            )
        session, planned = await self.sessions.record_plan(session, args)
        return PlanRecorded(
            session=session,
            headline=args.headline,
            word_range=args.target_word_range,
            planned_sections=planned,
        )

    async def read_previous(self, args: ReadPreviousSectionsArgs) -> List[ArticleSection]:
        session = await self.sessions.require_session(self.session_id)
        return await self.sessions.previous_sections(session, args.last_n_sections)

    async def write(self, args: WriteSectionArgs) -> SectionWritten:
        async with self._lock:
            return await self._write(args)

    async def _write(self, args: WriteSectionArgs) -> SectionWritten:
        session = await self.sessions.require_session(self.session_id)
        if session.status == SessionStatus.PLANNING:
            raise ToolInputError("No plan recorded yet. Call plan_article before write_section.")
        if session.status != SessionStatus.WRITING:
            raise ToolInputError(
                f"Session is {session.status.value}; no more sections can be written."
            )

        session, section = await self.sessions.complete_section(
            session, args.section_title, args.markdown, args.is_last
        )

        article: Optional[AssembledArticle] = None
        next_section = None
        if args.is_last:
            article = await self.finalizer.finalize(session)
            await self.sessions.mark_completed(session.session_id)
            session = await self.sessions.require_session(session.session_id)
        else:
            planned = session.planned_sections()
            if session.completed_sections < len(planned):
                next_section = planned[session.completed_sections]

        return SectionWritten(
            session=session,
            section=section,
            is_last=args.is_last,
            next_section=next_section,
            article=article,
        )


class ArticleToolkit:
    """The model-facing article tools for one session."""

    def __init__(
        self,
        sessions: "SessionManager",
        finalizer: "ArticleFinalizer",
        broadcaster: "BroadcastRegistry",
        session_id: str,
        generation: Optional[GenerationConfig] = None,
        style_rules: Optional[List[str]] = None,
    ):
        self.effects = ArticleToolEffects(sessions, finalizer, session_id)
        self.broadcaster = broadcaster
        self.session_id = session_id
        self.generation = generation or GenerationConfig()
        self.style_rules = list(style_rules or prompts.STYLE_RULES)
        self.plan_recorded = False
        self.sections_written = 0
        self.article: Optional[AssembledArticle] = None

    @property
    def completed(self) -> bool:
        return self.article is not None

    async def plan_article(self, args: PlanArticleArgs) -> str:
        plan = await self.effects.plan(args)
        self.plan_recorded = True
        logger.info(f"Plan recorded: {len(plan.planned_sections)} sections")
        structured_log.log_phase(
            GenerationPhase.PLANNING.value, "done", sections=len(plan.planned_sections)
        )
        await self.broadcaster.emit(
            self.session_id,
            ProgressEventType.PLAN,
            headline=plan.headline,
            target_word_range=plan.word_range.model_dump(),
            sections=[p.model_dump() for p in plan.planned_sections],
        )
        await self.broadcaster.emit(
            self.session_id,
            ProgressEventType.STATUS,
            phase=GenerationPhase.WRITING.value,
            message=f"Writing {len(plan.planned_sections)} sections",
        )
        return prompts.plan_confirmation(plan, self.style_rules)

    async def read_previous_sections(self, args: ReadPreviousSectionsArgs) -> str:
        sections = await self.effects.read_previous(args)
        return prompts.previous_sections_context(sections)

    async def write_section(self, args: WriteSectionArgs) -> str:
        written = await self.effects.write(args)
        self.sections_written += 1
        section = written.section
        session = written.session
        structured_log.log_section(section.section_number, section.title, section.word_count, written.is_last)
        await self.broadcaster.emit(
            self.session_id,
            ProgressEventType.SECTION,
            section_number=section.section_number,
            title=section.title,
            word_count=section.word_count,
            completed_sections=session.completed_sections,
            total_sections=session.total_sections,
            current_word_count=session.current_word_count,
        )

        if not written.is_last:
            return prompts.continuation_prompt(
                written, self.style_rules, excerpt_chars=self.generation.excerpt_chars
            )

        if written.article is None:
            raise ArticleAgentError("Final section written but no article was assembled")
        self.article = written.article
        await self.broadcaster.emit(
            self.session_id,
            ProgressEventType.COMPLETED,
            article=written.article.full_article,
            total_sections=written.article.total_sections,
            total_words=written.article.total_words,
            version=written.article.version,
        )
        return prompts.final_confirmation(written.article.total_sections)

    def tools(self) -> List[Tool]:
        return [
            Tool(
                name="plan_article",
                description=(
                    "Record the article plan: headline, target word range, every section "
                    "with its detailed content requirements, and style notes. "
                    "Must be called exactly once, before any section is written."
                ),
                args_model=PlanArticleArgs,
                execute_fn=self.plan_article,
            ),
            Tool(
                name="read_previous_sections",
                description="Read the most recently written sections for context and continuity.",
                args_model=ReadPreviousSectionsArgs,
                execute_fn=self.read_previous_sections,
            ),
            Tool(
                name="write_section",
                description=(
                    "Save one finished section in markdown. Sections are numbered in the "
                    "order they are written. Set is_last=true only for the final section."
                ),
                args_model=WriteSectionArgs,
                execute_fn=self.write_section,
            ),
        ]

    def register(self, registry: ToolRegistry) -> ToolRegistry:
        for tool in self.tools():
            registry.register(tool)
        return registry
