"""FastAPI backend for article generation.

Run with:
    uvicorn article_agent.web.app:app --port ${PORT:-8001}
"""

from __future__ import annotations

import asyncio
import json as _json
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from sse_starlette.sse import EventSourceResponse

from article_agent import __version__
from article_agent.config import load_settings
from article_agent.db import WorkflowDocumentRepository, open_db
from article_agent.llm.runtime import ModelRuntime
from article_agent.models import SessionProgress, SettingsConfig
from article_agent.orchestration import (
    ArticleOrchestrator,
    BroadcastRegistry,
    CancellationToken,
    QueueChannel,
)
from article_agent.orchestration.broadcaster import is_terminal
from article_agent.utils import structured_log

logger = logging.getLogger(__name__)

HEARTBEAT_SECONDS = 15.0
# Finished run records are kept this long so late subscribers still get a reply.
_RUN_TTL_SECONDS = 7200


class StartSessionRequest(BaseModel):
    workflow_id: str = Field(min_length=1)
    outline: str = Field(min_length=1)


class StartSessionResponse(BaseModel):
    session_id: str
    workflow_id: str
    version: int


class _RunRecord:
    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.token = CancellationToken()
        self.task: asyncio.Task[Any] | None = None
        self.done = False
        self.error: str | None = None
        self.created_at: float = time.monotonic()


def _json_safe(event: Dict[str, Any]) -> str:
    return _json.dumps(event, ensure_ascii=False, default=str)


async def _run_wrapper(orchestrator: ArticleOrchestrator, record: _RunRecord) -> None:
    try:
        await orchestrator.generate_article(record.session_id, record.token)
    except asyncio.CancelledError:
        record.error = "Cancelled"
    except Exception as exc:
        # The orchestrator has already recorded and broadcast the failure.
        record.error = str(exc)
    finally:
        record.done = True


def create_app(
    settings: Optional[SettingsConfig] = None,
    runtime: Optional[ModelRuntime] = None,
    search_tools: Optional[list] = None,
) -> FastAPI:
    """Build the API. Settings default to config/settings.yaml, runtime to PydanticAI."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        resolved = settings or load_settings()
        structured_log.configure_run_logging(resolved.logging.log_dir)
        if runtime is None:
            from article_agent.llm.pydantic_runtime import PydanticAIRuntime

            model_runtime: ModelRuntime = PydanticAIRuntime()
        else:
            model_runtime = runtime
        db = await open_db(resolved.storage.db_path)
        broadcaster = BroadcastRegistry()
        app.state.db = db
        app.state.broadcaster = broadcaster
        app.state.orchestrator = ArticleOrchestrator(
            db, model_runtime, broadcaster, resolved, search_tools=search_tools
        )
        app.state.runs = {}
        try:
            yield
        finally:
            for record in list(app.state.runs.values()):
                if record.task and not record.task.done():
                    record.token.cancel("Server shutting down")
                    record.task.cancel()
            pending = [r.task for r in app.state.runs.values() if r.task and not r.task.done()]
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            await db.close()

    app = FastAPI(title="Article Agent", version=__version__, lifespan=lifespan)

    def _evict_stale(runs: Dict[str, _RunRecord]) -> None:
        cutoff = time.monotonic() - _RUN_TTL_SECONDS
        for key in [k for k, v in runs.items() if v.done and v.created_at < cutoff]:
            runs.pop(key, None)

    @app.get("/api/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.post("/api/sessions", response_model=StartSessionResponse, status_code=202)
    async def start_session(req: StartSessionRequest, request: Request) -> StartSessionResponse:
        state = request.app.state
        orchestrator: ArticleOrchestrator = state.orchestrator
        _evict_stale(state.runs)

        session_id = await orchestrator.start_session(req.workflow_id, req.outline)
        session = await orchestrator.sessions.require_session(session_id)

        # Attach before kick-off so a subscriber sees every event from the start.
        state.broadcaster.attach(session_id, QueueChannel())
        record = _RunRecord(session_id)
        state.runs[session_id] = record
        record.task = asyncio.create_task(_run_wrapper(orchestrator, record))
        return StartSessionResponse(
            session_id=session_id, workflow_id=session.workflow_id, version=session.version
        )

    @app.get("/api/sessions/{session_id}/progress", response_model=SessionProgress)
    async def get_progress(session_id: str, request: Request) -> SessionProgress:
        progress = await request.app.state.orchestrator.get_progress(session_id)
        if progress is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return progress

    @app.get("/api/sessions/{session_id}/stream")
    async def stream_session(session_id: str, request: Request) -> EventSourceResponse:
        state = request.app.state
        session = await state.orchestrator.sessions.get_session(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")

        broadcaster: BroadcastRegistry = state.broadcaster
        channel = broadcaster.get(session_id)
        if not isinstance(channel, QueueChannel) or channel.closed:
            channel = QueueChannel()
            broadcaster.attach(session_id, channel)
        record: Optional[_RunRecord] = state.runs.get(session_id)

        async def _generator() -> AsyncGenerator[Dict[str, Any], None]:
            try:
                while True:
                    try:
                        event = await asyncio.wait_for(channel.queue.get(), timeout=HEARTBEAT_SECONDS)
                    except asyncio.TimeoutError:
                        yield {"event": "heartbeat", "data": "{}"}
                        if (record is None or record.done) and channel.queue.empty():
                            break
                        continue
                    yield {"event": event.get("type", "message"), "data": _json_safe(event)}
                    if is_terminal(event):
                        break
            finally:
                channel.close()
                if broadcaster.get(session_id) is channel:
                    broadcaster.detach(session_id)

        return EventSourceResponse(_generator())

    @app.post("/api/sessions/{session_id}/cancel")
    async def cancel_session(session_id: str, request: Request) -> Dict[str, str]:
        record: Optional[_RunRecord] = request.app.state.runs.get(session_id)
        if record is None:
            raise HTTPException(status_code=404, detail="Run not found")
        if record.done:
            return {"status": "finished"}
        record.token.cancel()
        return {"status": "cancelling"}

    @app.put("/api/workflows/{workflow_id}")
    async def save_workflow(workflow_id: str, content: Dict[str, Any], request: Request) -> Dict[str, str]:
        await WorkflowDocumentRepository(request.app.state.db).save_workflow(workflow_id, content)
        return {"workflow_id": workflow_id}

    @app.get("/api/workflows/{workflow_id}")
    async def get_workflow(workflow_id: str, request: Request) -> Dict[str, Any]:
        content = await WorkflowDocumentRepository(request.app.state.db).get_workflow(workflow_id)
        if content is None:
            raise HTTPException(status_code=404, detail="Workflow not found")
        return content

    return app


app = create_app()
