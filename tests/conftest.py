"""
Pytest configuration and fixtures.
"""

from typing import Any, Dict, List

import pytest

from article_agent.db import WorkflowDocumentRepository, get_db
from article_agent.models import (
    AgentConfig,
    GenerationConfig,
    LoggingConfig,
    SearchConfig,
    SettingsConfig,
    StorageConfig,
)
from article_agent.orchestration import BroadcastRegistry


class RecordingChannel:
    """Progress channel that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []

    def write(self, event: Dict[str, Any]) -> None:
        self.events.append(event)

    def of_type(self, kind: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["type"] == kind]

    @property
    def types(self) -> List[str]:
        return [e["type"] for e in self.events]


@pytest.fixture
def guidelines_dir(tmp_path):
    directory = tmp_path / "guidelines"
    directory.mkdir()
    (directory / "style.md").write_text(
        "# Style\n\n## Paragraphs\n\nKeep paragraphs short, two to four sentences.\n\n"
        "## Punctuation\n\nNever use em-dashes in article text.\n",
        encoding="utf-8",
    )
    (directory / "seo.md").write_text(
        "# SEO\n\n## Keywords\n\nPlace the primary keyword in the first 100 words.\n",
        encoding="utf-8",
    )
    return directory


@pytest.fixture
def settings(tmp_path, guidelines_dir) -> SettingsConfig:
    return SettingsConfig(
        agents={"article_writer": AgentConfig(model="test", temperature=0.5)},
        generation=GenerationConfig(round_delay_seconds=0.0),
        storage=StorageConfig(db_path=str(tmp_path / "article_agent.db")),
        search=SearchConfig(guidelines_dir=str(guidelines_dir), web_search_enabled=False),
        logging=LoggingConfig(log_dir=str(tmp_path / "logs")),
    )


@pytest.fixture
async def db(settings):
    async with get_db(settings.storage.db_path) as connection:
        yield connection


@pytest.fixture
async def workflow(db) -> str:
    """A workflow document with the draft step and an unrelated sibling step."""
    workflow_id = "wf-remote-work"
    await WorkflowDocumentRepository(db).save_workflow(
        workflow_id,
        {
            "title": "Remote work guide",
            "steps": [
                {"id": "keyword-research", "outputs": {"keywords": ["remote work"]}},
                {"id": "article-draft", "outputs": {"notes": "keep"}},
            ],
        },
    )
    return workflow_id


@pytest.fixture
def broadcaster() -> BroadcastRegistry:
    return BroadcastRegistry()


@pytest.fixture
def recorder() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def plan_args() -> Dict[str, Any]:
    return {
        "headline": "Remote Work That Actually Works",
        "target_word_range": {"min": 1000, "max": 1400},
        "sections": [
            {"title": "Intro", "est_words": 300, "order": 1, "content_requirements": "Hook with a 2023 survey statistic."},
            {"title": "Body", "est_words": 800, "order": 2, "content_requirements": "Three habits with examples."},
            {"title": "Conclusion", "est_words": 200, "order": 3, "content_requirements": "Recap and call to action."},
        ],
        "writing_style_notes": "Short paragraphs, no em-dashes.",
    }
