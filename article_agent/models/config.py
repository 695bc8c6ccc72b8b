"""Configuration models loaded from YAML."""

from __future__ import annotations

from typing import Dict

from pydantic import BaseModel, Field, model_validator

from article_agent.schemas import WordRange

WRITER_AGENT = "article_writer"


class AgentConfig(BaseModel):
    model: str
    temperature: float = Field(ge=0.0, le=2.0, default=1.0)


class GenerationConfig(BaseModel):
    """Loop ceilings and pacing for one generation run."""

    max_messages: int = Field(ge=1, default=100)
    max_sections: int = Field(ge=1, default=20)
    max_turns_per_round: int = Field(
        ge=50,
        default=50,
        description="Tool-call exchanges the runtime may perform inside one round.",
    )
    round_delay_seconds: float = Field(ge=0.0, le=10.0, default=0.2)
    max_rounds: int = Field(ge=1, default=60)
    max_wall_seconds: float = Field(gt=0.0, default=1800.0)
    max_stall_retries: int = Field(ge=0, default=3)
    excerpt_chars: int = Field(ge=40, default=300)
    default_word_range: WordRange = Field(default_factory=lambda: WordRange(min=1500, max=2500))


class WorkflowStepConfig(BaseModel):
    step_id: str = "article-draft"


class StorageConfig(BaseModel):
    db_path: str = "data/article_agent.db"


class SearchConfig(BaseModel):
    guidelines_dir: str = "config/guidelines"
    file_max_results: int = Field(ge=1, le=20, default=3)
    web_max_results: int = Field(ge=1, le=20, default=5)
    web_search_enabled: bool = True


class LoggingConfig(BaseModel):
    level: str = "normal"
    log_dir: str = "logs"


class SettingsConfig(BaseModel):
    agents: Dict[str, AgentConfig]
    generation: GenerationConfig = Field(default_factory=GenerationConfig)
    workflow: WorkflowStepConfig = Field(default_factory=WorkflowStepConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def require_writer_agent(self) -> "SettingsConfig":
        if WRITER_AGENT not in self.agents:
            raise ValueError(f"agents.{WRITER_AGENT} must be configured")
        return self

    @property
    def writer(self) -> AgentConfig:
        return self.agents[WRITER_AGENT]
