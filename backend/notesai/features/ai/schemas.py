"""
AI feature: Schemas for request models.
"""

from typing import Literal

from pydantic import BaseModel, Field, field_validator

SUMMARY_MIN_CHARS = 50
SUMMARY_MAX_CHARS = 10_000
DEFAULT_IMAGE_PROMPT = "Analyze this image"


class SummarizeRequest(BaseModel):
    """Request to summarize a piece of text."""
    text: str = Field(min_length=SUMMARY_MIN_CHARS, max_length=SUMMARY_MAX_CHARS)
    summary_length: Literal["short", "medium", "long"] = "medium"

    @field_validator("text")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("No valid text was sent")
        return value
