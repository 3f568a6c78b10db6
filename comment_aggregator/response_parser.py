"""
Validation of raw model output for the two summary surfaces.

Both parsers return a typed result instead of raising: ParseSuccess carries
the validated fields, ParseFailure carries the reason the text was rejected.
"""

import logging
import sys
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from comment_aggregator.theme_extractor import Theme

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

MAX_RECOMMENDATIONS = 3


class StructuredSummary(BaseModel):
    """Schema the model must satisfy in structured mode. Unknown keys are dropped."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str = Field(min_length=1)
    recommendations: list[str] = Field(min_length=1)
    themes: list[Theme] = Field(default_factory=list)
    representative_comments: list[str] = Field(
        default_factory=list, alias="representativeComments"
    )

    @field_validator("summary")
    @classmethod
    def summary_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("summary is blank")
        return value

    @field_validator("recommendations")
    @classmethod
    def keep_non_blank_recommendations(cls, value: list[str]) -> list[str]:
        cleaned = [item.strip() for item in value if item and item.strip()]
        if not cleaned:
            raise ValueError("recommendations are blank")
        return cleaned[:MAX_RECOMMENDATIONS]

    @field_validator("themes", mode="before")
    @classmethod
    def keep_well_formed_themes(cls, value: Any) -> list:
        """Optional field: malformed items are dropped instead of failing the parse."""
        if not isinstance(value, list):
            return []
        themes = []
        for item in value:
            try:
                themes.append(Theme.model_validate(item))
            except ValidationError:
                continue
        return themes

    @field_validator("representative_comments", mode="before")
    @classmethod
    def keep_string_comments(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]


class ParseSuccess(BaseModel):
    ok: bool = True
    structured: Optional[StructuredSummary] = None
    narrative: Optional[str] = None


class ParseFailure(BaseModel):
    ok: bool = False
    reason: str


ParseResult = Union[ParseSuccess, ParseFailure]


def extract_json_object(text: str) -> Optional[str]:
    """Substring from the first "{" to the last "}", or None if there is no such span."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return None


def parse_structured_response(raw_output: Optional[str]) -> ParseResult:
    if not raw_output or not raw_output.strip():
        return ParseFailure(reason="empty model output")

    json_text = extract_json_object(raw_output)
    if json_text is None:
        return ParseFailure(reason="no JSON object in model output")

    try:
        structured = StructuredSummary.model_validate_json(json_text)
    except ValidationError as e:
        logger.warning(f"Model output failed schema validation: {e.error_count()} errors")
        return ParseFailure(reason=f"invalid structured summary: {e.errors()[0]['msg']}")

    return ParseSuccess(structured=structured)


def parse_narrative_response(raw_output: Optional[str]) -> ParseResult:
    narrative = (raw_output or "").strip()
    if not narrative:
        return ParseFailure(reason="empty model output")
    return ParseSuccess(narrative=narrative)
