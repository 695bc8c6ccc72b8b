"""CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from pathlib import Path
from typing import Sequence

from rich.console import Console
from rich.table import Table

from article_agent.config import load_settings, validate_secret_env
from article_agent.config.loader import SETTINGS_ENV_VAR
from article_agent.db import WorkflowDocumentRepository, get_db
from article_agent.errors import ArticleAgentError
from article_agent.models import AssembledArticle, SessionProgress, SettingsConfig
from article_agent.orchestration import (
    ArticleOrchestrator,
    BroadcastRegistry,
    ConsoleChannel,
    SessionManager,
)
from article_agent.utils import structured_log
from article_agent.utils.logging_config import LogLevel, setup_logging


def _read_outline(args: argparse.Namespace) -> str:
    if args.outline_file:
        return Path(args.outline_file).read_text(encoding="utf-8")
    if args.outline:
        return args.outline
    raise ValueError("Either --outline or --outline-file is required")


async def _ensure_workflow(db, workflow_id: str, step_id: str) -> None:
    """Create a minimal workflow document with the draft step when none exists."""
    workflows = WorkflowDocumentRepository(db)
    if await workflows.get_workflow(workflow_id) is None:
        await workflows.save_workflow(workflow_id, {"steps": [{"id": step_id, "outputs": {}}]})


async def _run_generate(
    settings: SettingsConfig,
    workflow_id: str,
    outline: str,
    console: Console,
    verbose: bool,
    show_article: bool,
) -> tuple[str, AssembledArticle]:
    from article_agent.llm.pydantic_runtime import PydanticAIRuntime

    async with get_db(settings.storage.db_path) as db:
        await _ensure_workflow(db, workflow_id, settings.workflow.step_id)
        broadcaster = BroadcastRegistry()
        orchestrator = ArticleOrchestrator(db, PydanticAIRuntime(), broadcaster, settings)
        session_id = await orchestrator.start_session(workflow_id, outline)
        broadcaster.attach(
            session_id, ConsoleChannel(console=console, verbose=verbose, show_article=show_article)
        )
        try:
            article = await orchestrator.generate_article(session_id)
        finally:
            broadcaster.detach(session_id)
        return session_id, article


async def _load_progress(settings: SettingsConfig, session_id: str) -> SessionProgress | None:
    async with get_db(settings.storage.db_path) as db:
        return await SessionManager(db, step_id=settings.workflow.step_id).get_progress(session_id)


def _print_generate_summary(console: Console, session_id: str, article: AssembledArticle) -> None:
    table = Table(title="Article Generation Complete")
    table.add_column("Field", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    table.add_row("Session ID", session_id)
    table.add_row("Workflow ID", article.workflow_id)
    table.add_row("Version", str(article.version))
    table.add_row("Sections", str(article.total_sections))
    table.add_row("Words", str(article.total_words))
    console.print(table)


def _print_progress(console: Console, progress: SessionProgress) -> None:
    session = progress.session
    counters = progress.progress
    console.print(
        f"[bold]{session.session_id}[/] workflow {session.workflow_id} v{session.version} "
        f"[cyan]{session.status.value}[/] "
        f"{counters.completed}/{counters.total} sections, "
        f"{counters.current_word_count}/{counters.target_word_count} words"
    )
    if session.error_message:
        console.print(f"[red]Error:[/] {session.error_message}")
    table = Table(title="Sections")
    table.add_column("#", justify="right")
    table.add_column("Title", style="white")
    table.add_column("Status", style="cyan")
    table.add_column("Words", justify="right")
    for section in progress.sections:
        table.add_row(
            str(section.section_number), section.title, section.status.value, str(section.word_count)
        )
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="article-agent")
    sub = parser.add_subparsers(dest="command")

    generate = sub.add_parser("generate", help="Plan and write an article from an outline")
    generate.add_argument("--workflow-id", required=True)
    generate.add_argument("--outline", help="Outline text")
    generate.add_argument("--outline-file", help="Path to a file holding the outline")
    generate.add_argument("--settings", default=None)
    generate.add_argument("--verbose", "-v", action="store_true", help="Stream model text and tool outputs")
    generate.add_argument("--debug", "-d", action="store_true", help="Verbose plus debug logging")
    generate.add_argument("--no-article", action="store_true", help="Do not print the finished article")

    progress = sub.add_parser("progress", help="Show a session's progress")
    progress.add_argument("--session-id", required=True)
    progress.add_argument("--settings", default=None)

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "8001")))
    serve.add_argument("--settings", default=None)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    console = Console()
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0

    try:
        settings = load_settings(args.settings)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error:[/] {e}")
        return 1

    if args.command == "generate":
        debug = args.debug
        verbose = args.verbose or debug
        setup_logging(LogLevel(settings.logging.level), verbose=verbose, debug=debug)
        structured_log.configure_run_logging(settings.logging.log_dir)
        missing = validate_secret_env(settings)
        if missing:
            console.print(f"[red]Error:[/] missing environment variables: {', '.join(missing)}")
            return 1
        try:
            outline = _read_outline(args)
            session_id, article = asyncio.run(
                _run_generate(
                    settings,
                    args.workflow_id,
                    outline,
                    console,
                    verbose=verbose,
                    show_article=not args.no_article,
                )
            )
        except (ArticleAgentError, ValueError, OSError) as e:
            console.print(f"[red]Error:[/] {e}")
            return 1
        except KeyboardInterrupt:
            console.print("[yellow]Cancelled[/]")
            return 130
        _print_generate_summary(console, session_id, article)
        return 0

    if args.command == "progress":
        progress = asyncio.run(_load_progress(settings, args.session_id))
        if progress is None:
            console.print(f"[red]Error:[/] Session '{args.session_id}' not found.")
            return 1
        _print_progress(console, progress)
        return 0

    if args.command == "serve":
        import uvicorn

        if args.settings:
            os.environ[SETTINGS_ENV_VAR] = args.settings
        setup_logging(LogLevel(settings.logging.level))
        uvicorn.run("article_agent.web.app:app", host=args.host, port=args.port)
        return 0

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
