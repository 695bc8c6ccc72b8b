"""
Pydantic schemas for article tool inputs.

These are the argument contracts the model must satisfy when it calls a tool.
Their JSON schemas are what the runtime advertises to the model.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class WordRange(BaseModel):
    """Target word range for the whole article."""

    min: int = Field(gt=0, description="Minimum word count")
    max: int = Field(gt=0, description="Maximum word count")

    @model_validator(mode="after")
    def check_bounds(self) -> "WordRange":
        if self.min > self.max:
            raise ValueError("target_word_range.min must not exceed target_word_range.max")
        return self


class PlannedSectionSchema(BaseModel):
    """One section of the plan as the model describes it."""

    title: str = Field(min_length=1, description="Section title")
    est_words: int = Field(gt=0, description="Estimated word count for this section")
    order: int = Field(ge=1, description="Section order number (1-based)")
    content_requirements: str = Field(
        description=(
            "Detailed content brief for this section taken from the outline: "
            "points to cover, data, citations and examples, not just the title"
        )
    )


class PlanArticleArgs(BaseModel):
    """Arguments of the plan_article tool."""

    model_config = ConfigDict(extra="forbid")

    headline: str = Field(min_length=1, description="Article headline")
    target_word_range: WordRange
    sections: List[PlannedSectionSchema] = Field(min_length=1)
    writing_style_notes: str = Field(description="Key style rules and guidelines to follow")

    @field_validator("sections")
    @classmethod
    def unique_orders(cls, v: List[PlannedSectionSchema]) -> List[PlannedSectionSchema]:
        orders = [s.order for s in v]
        if len(set(orders)) != len(orders):
            raise ValueError("Section order numbers must be unique")
        return v


class ReadPreviousSectionsArgs(BaseModel):
    """Arguments of the read_previous_sections tool."""

    model_config = ConfigDict(extra="forbid")

    last_n_sections: int = Field(ge=1, le=50, description="How many of the latest sections to read")


class WriteSectionArgs(BaseModel):
    """Arguments of the write_section tool."""

    model_config = ConfigDict(extra="forbid")

    section_title: str = Field(min_length=1, description="Title of the section being written")
    markdown: str = Field(min_length=1, description="The written content in markdown format")
    is_last: bool = Field(description="Whether this is the last section of the article")
