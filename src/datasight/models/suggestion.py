from enum import Enum
from typing import List

from pydantic import BaseModel, Field, field_validator


class SuggestionCategory(str, Enum):
    CHART = "chart"
    COMPARE = "compare"
    EXPORT = "export"
    FILTER = "filter"
    PREDICT = "predict"
    SHARE = "share"
    QUESTION = "question"
    CODE = "code"


class Suggestion(BaseModel):
    """A next-step hint shown beside the conversation."""

    title: str
    description: str
    category: SuggestionCategory = Field(SuggestionCategory.QUESTION, alias="icon")

    model_config = {"populate_by_name": True}

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_unknown_category(cls, value):
        if isinstance(value, SuggestionCategory):
            return value
        # Unknown tags render with the generic question icon.
        try:
            return SuggestionCategory(str(value).strip().lower())
        except ValueError:
            return SuggestionCategory.QUESTION


class SuggestionSet(BaseModel):
    suggestions: List[Suggestion] = Field(..., min_length=1)
