"""Pydantic models for suggestions and document snapshots."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SuggestionType(str, Enum):
    LLM = "llm"
    BRAND = "brand"
    FACT = "fact"
    GRAMMAR = "grammar"
    SPELLING = "spelling"
    UNKNOWN = "unknown"

    @classmethod
    def _missing_(cls, value):
        return cls.UNKNOWN


class SuggestionPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def _missing_(cls, value):
        return cls.MEDIUM


class Suggestion(BaseModel):
    """A single suggestion anchored to a half-open range of the document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: SuggestionType = SuggestionType.LLM
    priority: SuggestionPriority = SuggestionPriority.MEDIUM
    start_offset: int = Field(alias="startOffset")
    end_offset: int = Field(alias="endOffset")
    text_to_replace: str = Field(default="", alias="textToReplace")
    replace_with: str = Field(default="", alias="replaceWith")
    reason: str = ""
    context_before: str = Field(default="", alias="contextBefore")
    context_after: str = Field(default="", alias="contextAfter")
    anchor_text: str = Field(default="", alias="anchorText")
    content_id: str | None = Field(default=None, alias="contentId")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value):
        # Unknown categories from the backend must not fail validation
        if isinstance(value, str):
            return SuggestionType(value.lower())
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, value):
        if isinstance(value, str):
            return SuggestionPriority(value.lower())
        return value

    @property
    def length(self) -> int:
        return self.end_offset - self.start_offset

    def overlaps(self, other: Suggestion) -> bool:
        return self.start_offset < other.end_offset and other.start_offset < self.end_offset

    def with_offsets(self, start_offset: int, end_offset: int) -> Suggestion:
        return self.model_copy(update={"start_offset": start_offset, "end_offset": end_offset})
