"""
Unit tests for session lifecycle and section persistence.
"""

import sqlite3

import pytest

from article_agent.errors import ArticleAgentError, SessionNotFoundError
from article_agent.models import SectionStatus, SessionStatus
from article_agent.orchestration import SessionManager
from article_agent.schemas import PlanArticleArgs


@pytest.fixture
def sessions(db):
    return SessionManager(db)


@pytest.mark.asyncio
async def test_versions_increase_per_workflow(sessions):
    first = await sessions.start_session("wf-1", "Outline one")
    second = await sessions.start_session("wf-1", "Outline two")
    other = await sessions.start_session("wf-2", "Outline")

    assert (await sessions.get_session(first)).version == 1
    assert (await sessions.get_session(second)).version == 2
    assert (await sessions.get_session(other)).version == 1


@pytest.mark.asyncio
async def test_version_clash_is_retried(sessions, monkeypatch, caplog):
    await sessions.start_session("wf-1", "Outline one")
    real_max_version = sessions.repo.max_version
    readings = []

    async def stale_then_real(workflow_id):
        readings.append(workflow_id)
        if len(readings) == 1:
            return 0
        return await real_max_version(workflow_id)

    monkeypatch.setattr(sessions.repo, "max_version", stale_then_real)

    with caplog.at_level("WARNING", logger="article_agent.orchestration.session_manager"):
        session_id = await sessions.start_session("wf-1", "Outline two")

    assert (await sessions.get_session(session_id)).version == 2
    assert len(readings) == 2
    assert "Version 1 for workflow wf-1 already taken (attempt 1/3)" in caplog.text


@pytest.mark.asyncio
async def test_version_clash_gives_up_after_retries(sessions, monkeypatch):
    await sessions.start_session("wf-1", "Outline one")

    async def always_stale(workflow_id):
        return 0

    monkeypatch.setattr(sessions.repo, "max_version", always_stale)

    with pytest.raises(ArticleAgentError, match="after 3 attempts") as excinfo:
        await sessions.start_session("wf-1", "Outline two")
    assert isinstance(excinfo.value.__cause__, sqlite3.IntegrityError)


@pytest.mark.asyncio
async def test_new_session_is_planning_with_style_rules(sessions):
    session_id = await sessions.start_session("wf-1", "Outline\x00 text", model="test")
    session = await sessions.require_session(session_id)

    assert session.status == SessionStatus.PLANNING
    assert session.outline == "Outline text"
    assert session.session_metadata["model"] == "test"
    assert session.session_metadata["style_rules"]
    assert session.step_id == "article-draft"


@pytest.mark.asyncio
async def test_require_session_unknown_id(sessions):
    with pytest.raises(SessionNotFoundError, match="Session not found: missing"):
        await sessions.require_session("missing")
    assert await sessions.get_progress("missing") is None


@pytest.mark.asyncio
async def test_record_plan_creates_placeholders(sessions, plan_args):
    session_id = await sessions.start_session("wf-1", "Outline")
    session = await sessions.require_session(session_id)
    shuffled = dict(plan_args, sections=list(reversed(plan_args["sections"])))

    session, planned = await sessions.record_plan(session, PlanArticleArgs.model_validate(shuffled))

    assert session.status == SessionStatus.WRITING
    assert session.total_sections == 3
    assert session.target_word_count == 1400
    assert [p.title for p in planned] == ["Intro", "Body", "Conclusion"]
    assert [p.title for p in session.planned_sections()] == ["Intro", "Body", "Conclusion"]
    assert session.session_metadata["headline"] == "Remote Work That Actually Works"

    progress = await sessions.get_progress(session_id)
    assert [s.status for s in progress.sections] == [SectionStatus.PENDING] * 3
    assert progress.sections[1].generation_metadata["target_words"] == 800
    assert progress.sections[0].planned_section_id == planned[0].planned_section_id


@pytest.mark.asyncio
async def test_plan_orders_are_renumbered(sessions, plan_args):
    session_id = await sessions.start_session("wf-1", "Outline")
    session = await sessions.require_session(session_id)
    gapped = dict(
        plan_args,
        sections=[dict(s, order=s["order"] * 10) for s in plan_args["sections"]],
    )
    _, planned = await sessions.record_plan(session, PlanArticleArgs.model_validate(gapped))
    assert [p.order for p in planned] == [1, 2, 3]


@pytest.mark.asyncio
async def test_complete_section_updates_counters(sessions, plan_args):
    session_id = await sessions.start_session("wf-1", "Outline")
    session = await sessions.require_session(session_id)
    session, _ = await sessions.record_plan(session, PlanArticleArgs.model_validate(plan_args))

    session, section = await sessions.complete_section(
        session, "Intro", "## Intro\n\nOne two three four.", is_last=False
    )
    assert section.section_number == 1
    assert section.status == SectionStatus.COMPLETED
    assert section.word_count == 6
    assert section.generation_metadata["is_last"] is False
    assert session.completed_sections == 1
    assert session.current_word_count == 6

    progress = await sessions.get_progress(session_id)
    assert progress.progress.completed == 1
    assert progress.progress.total == 3
    assert progress.progress.current_word_count == 6
    assert progress.progress.target_word_count == 1400


@pytest.mark.asyncio
async def test_sections_beyond_plan_are_appended(sessions, plan_args):
    session_id = await sessions.start_session("wf-1", "Outline")
    session = await sessions.require_session(session_id)
    one_section = dict(plan_args, sections=plan_args["sections"][:1])
    session, _ = await sessions.record_plan(session, PlanArticleArgs.model_validate(one_section))

    session, _ = await sessions.complete_section(session, "Intro", "Intro text", is_last=False)
    session, extra = await sessions.complete_section(session, "Bonus", "Bonus text", is_last=True)

    assert extra.section_number == 2
    assert extra.planned_section_id is None
    assert extra.generation_metadata["unplanned"] is True
    assert session.completed_sections == 2


@pytest.mark.asyncio
async def test_previous_sections_returns_latest_in_order(sessions, plan_args):
    session_id = await sessions.start_session("wf-1", "Outline")
    session = await sessions.require_session(session_id)
    session, _ = await sessions.record_plan(session, PlanArticleArgs.model_validate(plan_args))
    session, _ = await sessions.complete_section(session, "Intro", "First", is_last=False)
    session, _ = await sessions.complete_section(session, "Body", "Second", is_last=False)

    previous = await sessions.previous_sections(session, 5)
    assert [s.title for s in previous] == ["Intro", "Body"]
    assert [s.title for s in await sessions.previous_sections(session, 1)] == ["Body"]


@pytest.mark.asyncio
async def test_mark_completed_and_error(sessions):
    done_id = await sessions.start_session("wf-1", "Outline")
    failed_id = await sessions.start_session("wf-1", "Outline")

    await sessions.mark_completed(done_id)
    await sessions.mark_error(failed_id, "Model unavailable")

    done = await sessions.require_session(done_id)
    failed = await sessions.require_session(failed_id)
    assert done.status == SessionStatus.COMPLETED
    assert done.completed_at is not None
    assert not done.is_active
    assert failed.status == SessionStatus.ERROR
    assert failed.error_message == "Model unavailable"
