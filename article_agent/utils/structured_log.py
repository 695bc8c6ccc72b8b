"""Structured logging for a machine-parseable audit trail of generation runs."""

from __future__ import annotations

from pathlib import Path
from typing import Any, TextIO

import structlog
from structlog.processors import JSONRenderer
from structlog.typing import Processor

_configured = False
_logger: structlog.BoundLogger | None = None
_file_handle: TextIO | None = None


def configure_run_logging(log_dir: str) -> None:
    """One-time setup. Writes JSON lines to {log_dir}/app.jsonl."""
    global _configured, _logger, _file_handle
    if _configured:
        return
    app_log_path = Path(log_dir) / "app.jsonl"
    app_log_path.parent.mkdir(parents=True, exist_ok=True)
    _file_handle = open(app_log_path, "a", encoding="utf-8")
    file_handle = _file_handle

    def _file_logger_factory(*args: Any, **kwargs: Any) -> structlog.PrintLogger:
        return structlog.PrintLogger(file_handle)

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        JSONRenderer(),
    ]
    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=_file_logger_factory,
        cache_logger_on_first_use=True,
    )
    _configured = True
    _logger = structlog.get_logger()


def reset_run_logging() -> None:
    """Close the audit file and return to the unconfigured state."""
    global _configured, _logger, _file_handle
    if _file_handle is not None:
        _file_handle.close()
    _file_handle = None
    _logger = None
    _configured = False
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


def bind_session(session_id: str, workflow_id: str, version: int) -> None:
    """Bind session context so every audit line carries it."""
    structlog.contextvars.bind_contextvars(
        session_id=session_id, workflow_id=workflow_id, version=version
    )


def unbind_session() -> None:
    structlog.contextvars.unbind_contextvars("session_id", "workflow_id", "version")


def log_phase(phase: str, action: str, **summary: Any) -> None:
    """Log a state transition (action: start|done|error)."""
    if _logger is not None:
        _logger.info("phase", phase=phase, action=action, **summary)


def log_round(round_number: int, history_size: int, **summary: Any) -> None:
    if _logger is not None:
        _logger.info("round", round=round_number, history_size=history_size, **summary)


def log_tool_call(
    tool: str,
    status: str,
    *,
    call_id: str | None = None,
    latency_ms: int | None = None,
    error: str | None = None,
) -> None:
    """Log one tool execution."""
    payload: dict[str, Any] = {"tool": tool, "status": status}
    if call_id is not None:
        payload["call_id"] = call_id
    if latency_ms is not None:
        payload["latency_ms"] = latency_ms
    if error is not None:
        payload["error"] = error
    if _logger is not None:
        _logger.info("tool_call", **payload)


def log_section(section_number: int, title: str, word_count: int, is_last: bool) -> None:
    if _logger is not None:
        _logger.info(
            "section",
            section_number=section_number,
            title=title,
            word_count=word_count,
            is_last=is_last,
        )
