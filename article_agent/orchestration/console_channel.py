"""Console progress channel for CLI runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table


@dataclass
class ConsoleChannel:
    """Renders progress events with rich. Streaming text is shown only when verbose."""

    console: Console
    verbose: bool = False
    show_article: bool = True
    _streaming: bool = field(default=False, repr=False)

    def _end_stream(self) -> None:
        if self._streaming:
            self.console.print()
            self._streaming = False

    def write(self, event: Dict[str, Any]) -> None:
        kind = event.get("type")
        if kind == "text":
            if self.verbose:
                self.console.print(event.get("delta", ""), end="", markup=False, highlight=False)
                self._streaming = True
            return

        self._end_stream()
        if kind == "status":
            self.console.print(f"[bold cyan]{event.get('phase', '')}[/] {event.get('message', '')}")
        elif kind == "plan":
            self._print_plan(event)
        elif kind == "tool_call":
            self.console.print(f"[dim]-> {event.get('tool')}[/]")
        elif kind == "tool_output":
            if self.verbose:
                style = "green" if event.get("ok", True) else "red"
                self.console.print(f"[{style}]<- {event.get('tool')}[/] [dim]{event.get('summary', '')}[/]")
        elif kind == "assistant":
            self.console.print(f"[yellow]model:[/] {event.get('content', '')}")
        elif kind == "section":
            self.console.print(
                f"[green]Section {event.get('section_number')}/{event.get('total_sections')}[/] "
                f"{event.get('title')} [dim]({event.get('word_count')} words)[/]"
            )
        elif kind == "completed":
            self.console.print(
                Panel(
                    f"{event.get('total_sections')} sections, {event.get('total_words')} words",
                    title="Article complete",
                    border_style="green",
                )
            )
            if self.show_article and event.get("article"):
                self.console.print(Markdown(event["article"]))
        elif kind == "error":
            self.console.print(Panel(str(event.get("message", "")), title="Generation failed", border_style="red"))

    def _print_plan(self, event: Dict[str, Any]) -> None:
        table = Table(title=event.get("headline") or "Plan", show_lines=False)
        table.add_column("#", justify="right")
        table.add_column("Section")
        table.add_column("Words", justify="right")
        for section in event.get("sections", []):
            table.add_row(str(section.get("order")), section.get("title", ""), str(section.get("est_words")))
        self.console.print(table)
