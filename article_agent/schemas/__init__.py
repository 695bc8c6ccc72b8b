"""
Pydantic schemas for tool argument validation.
"""

from .tool_schemas import (
    PlanArticleArgs,
    PlannedSectionSchema,
    ReadPreviousSectionsArgs,
    WordRange,
    WriteSectionArgs,
)

__all__ = [
    "PlanArticleArgs",
    "PlannedSectionSchema",
    "ReadPreviousSectionsArgs",
    "WordRange",
    "WriteSectionArgs",
]
