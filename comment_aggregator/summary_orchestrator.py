import json
import logging
import sys
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from comment_aggregator.comment_ranker import top_comment_texts
from comment_aggregator.openai_generator import OpenAIGenerator
from comment_aggregator.response_parser import (
    ParseFailure,
    parse_narrative_response,
    parse_structured_response,
)
from comment_aggregator.theme_extractor import (
    Theme,
    extract_themes,
    extractive_summary,
    heuristic_narrative,
    recommend_from_themes,
)
from storage.schemas import ParcelRecord
from utils.summary_cache import InMemorySummaryCache, SummaryCache
from utils.tiny_file_handler import load_json_file

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)

NO_COMMENTS_SUMMARY = (
    "No comments yet for this parcel. Be the first to share what you'd like to see here."
)
DEBUG_SNIPPET_LENGTH = 200

BASE_PROMPT = """You are an assistant that summarizes community feedback for city planning.

Context: these comments are for parcel {parcel_id} at {address}.{vacancy}"""

STRUCTURED_INSTRUCTIONS = """Please produce a single valid JSON object (no prose) with the following keys:
- summary: a 3-4 sentence summary of the main concerns
- recommendations: an array of exactly three short (1-2 sentence) actionable interventions a city planner could implement
- themes: an array of objects {{"theme": string, "count": number}} describing major themes and counts
- representativeComments: an array of the top {top_k} representative comments

Return ONLY a valid JSON object and nothing else."""

NARRATIVE_INSTRUCTIONS = """In exactly two sentences, describe what residents want to see happen on this parcel.
Respond with plain text only: no lists, headings or markdown."""

MOCK_SUMMARY = {
    "summary": "Residents are mainly concerned about traffic and pedestrian safety, poor lighting at night, and parking pressures that affect local businesses. Repeated comments call for better crosswalk timing, improved street lighting, and measures to reduce through-traffic. Short-term interventions could address lighting and signal timing while longer-term work could add greenspace and loading zones.",
    "recommendations": [
        "Adjust signal timing and add pedestrian-first crossing phases at the main intersection to improve safety for seniors and children.",
        "Install targeted street lighting and visibility improvements along poorly lit corridors.",
        "Create designated loading/delivery zones and implement time-limited parking to reduce circling and improve access for local businesses.",
    ],
}

SummarySource = Literal["llm", "fallback", "cache", "empty", "mock"]


class SummaryMode(str, Enum):
    STRUCTURED = "structured"
    NARRATIVE = "narrative"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DebugInfo(CamelModel):
    llm_called: bool = False
    used_model: Optional[str] = None
    model_output_snippet: str = ""
    source: SummarySource


class SummaryResult(CamelModel):
    parcel_id: int
    mode: SummaryMode
    source: SummarySource
    summary: str
    recommendations: list[str] = Field(default_factory=list)
    themes: list[Theme] = Field(default_factory=list)
    representative_comments: list[str] = Field(default_factory=list)
    debug: Optional[DebugInfo] = None

    def to_payload(self, include_debug: bool = False) -> dict[str, Any]:
        """Response body for the requested surface; debug never changes the other keys."""
        if self.mode == SummaryMode.NARRATIVE:
            payload: dict[str, Any] = {"summary": self.summary}
        else:
            payload = {
                "summary": self.summary,
                "recommendations": list(self.recommendations),
                "themes": [theme.model_dump() for theme in self.themes],
                "representativeComments": list(self.representative_comments),
            }
        if include_debug and self.debug is not None:
            payload["_debug"] = self.debug.model_dump(by_alias=True)
        return payload


class GatheredComments(BaseModel):
    parcel: ParcelRecord
    neighbor_ids: list[int] = Field(default_factory=list)
    texts: list[str] = Field(default_factory=list)
    own_count: int = 0
    neighbor_count: int = 0


class SummaryOrchestrator(BaseModel):
    """
    Turns a parcel's comments, plus those of its precomputed neighbors, into
    a planner-facing summary.

    Flow per request: fingerprint and cache lookup, then gather, prompt,
    call, parse. Any service error, timeout or unusable output switches to
    the deterministic heuristics in theme_extractor, so a summary request
    only fails when storage does.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    store: Any
    cache: SummaryCache = Field(default_factory=InMemorySummaryCache)
    generator: OpenAIGenerator = Field(default_factory=OpenAIGenerator)
    max_comments: int = 50
    top_k: int = 3
    max_prompt_tokens: int = 6000
    structured_max_output_tokens: int = 1000
    narrative_max_output_tokens: int = 200
    cache_fallback: bool = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        try:
            config = load_json_file("config.json")
            summary_config = config.get("summary", {})
            for key in (
                "max_comments",
                "top_k",
                "max_prompt_tokens",
                "structured_max_output_tokens",
                "narrative_max_output_tokens",
                "cache_fallback",
            ):
                if key not in kwargs and key in summary_config:
                    setattr(self, key, summary_config[key])
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load summary config, using defaults: {e}")

    # GATHER

    def fingerprint(self, parcel_id: int, neighbor_ids: list[int]) -> str:
        """Comment count across the parcel and its neighbors."""
        return str(self.store.count_comments([parcel_id, *neighbor_ids]))

    def gather_comments(
        self, parcel: ParcelRecord, neighbor_ids: list[int]
    ) -> GatheredComments:
        """Ranked own comments first, then ranked neighbor comments, capped at max_comments."""
        own_comments = self.store.list_comments([parcel.id])
        neighbor_comments = (
            self.store.list_comments(neighbor_ids) if neighbor_ids else []
        )

        texts = top_comment_texts(own_comments, self.max_comments)
        remaining = self.max_comments - len(texts)
        if remaining > 0 and neighbor_comments:
            texts += top_comment_texts(neighbor_comments, remaining)

        return GatheredComments(
            parcel=parcel,
            neighbor_ids=neighbor_ids,
            texts=texts,
            own_count=len(own_comments),
            neighbor_count=len(neighbor_comments),
        )

    # PROMPT

    def build_prompt(self, gathered: GatheredComments, mode: SummaryMode) -> str:
        parcel = gathered.parcel
        base_prompt = BASE_PROMPT.format(
            parcel_id=parcel.id,
            address=parcel.address or "an unknown address",
            vacancy=f" Vacancy status: {parcel.vacant_flag}." if parcel.vacant_flag else "",
        )
        if gathered.neighbor_count:
            base_prompt += (
                f"\nThe comments include feedback left on {len(gathered.neighbor_ids)} nearby parcels."
            )

        if mode == SummaryMode.STRUCTURED:
            instructions = STRUCTURED_INSTRUCTIONS.format(top_k=self.top_k)
        else:
            instructions = NARRATIVE_INSTRUCTIONS

        comments = self.generator.fit_comments_to_budget(
            base_prompt, gathered.texts, instructions, self.max_prompt_tokens
        )
        return self.generator.create_comment_prompt(base_prompt, comments, instructions)

    # SUCCESS / FALLBACK payloads

    def _llm_result(
        self, gathered: GatheredComments, mode: SummaryMode, raw_output: Optional[str]
    ) -> Optional[SummaryResult]:
        if mode == SummaryMode.STRUCTURED:
            parsed = parse_structured_response(raw_output)
        else:
            parsed = parse_narrative_response(raw_output)

        if isinstance(parsed, ParseFailure):
            logger.warning(
                f"Unusable model output for parcel {gathered.parcel.id}: {parsed.reason}"
            )
            return None

        if mode == SummaryMode.NARRATIVE:
            return SummaryResult(
                parcel_id=gathered.parcel.id,
                mode=mode,
                source="llm",
                summary=parsed.narrative,
            )

        structured = parsed.structured
        representative = structured.representative_comments or gathered.texts
        return SummaryResult(
            parcel_id=gathered.parcel.id,
            mode=mode,
            source="llm",
            summary=structured.summary,
            recommendations=structured.recommendations,
            themes=structured.themes,
            representative_comments=representative[: self.top_k],
        )

    def fallback_result(
        self, gathered: GatheredComments, mode: SummaryMode
    ) -> SummaryResult:
        """Heuristic summary from the same gathered texts. Never raises."""
        if mode == SummaryMode.NARRATIVE:
            return SummaryResult(
                parcel_id=gathered.parcel.id,
                mode=mode,
                source="fallback",
                summary=heuristic_narrative(gathered.texts),
            )

        themes = extract_themes(gathered.texts)
        return SummaryResult(
            parcel_id=gathered.parcel.id,
            mode=mode,
            source="fallback",
            summary=extractive_summary(gathered.texts),
            recommendations=recommend_from_themes(themes),
            themes=themes,
            representative_comments=gathered.texts[: self.top_k],
        )

    def empty_result(self, parcel_id: int, mode: SummaryMode) -> SummaryResult:
        return SummaryResult(
            parcel_id=parcel_id, mode=mode, source="empty", summary=NO_COMMENTS_SUMMARY
        )

    def mock_result(self, parcel_id: int, mode: SummaryMode) -> SummaryResult:
        """Canned sample for UI work, next to the parcel's real top comments. No service call."""
        comments = self.store.list_comments([parcel_id])
        result = SummaryResult(
            parcel_id=parcel_id,
            mode=mode,
            source="mock",
            summary=MOCK_SUMMARY["summary"],
            recommendations=list(MOCK_SUMMARY["recommendations"]),
            representative_comments=top_comment_texts(comments, self.top_k),
        )
        result.debug = DebugInfo(llm_called=False, used_model=None, source="mock")
        return result

    # Entry point

    def summarize(
        self, parcel_id: int, mode: SummaryMode = SummaryMode.STRUCTURED
    ) -> SummaryResult:
        """
        Summary for one parcel. Storage errors (including an unknown parcel)
        propagate; generation failures never do.
        """
        mode = SummaryMode(mode)
        parcel = self.store.get_parcel(parcel_id)
        neighbor_ids = self.store.get_neighbor_ids(parcel_id)

        fingerprint = self.fingerprint(parcel_id, neighbor_ids)
        cached_payload = self.cache.get(parcel_id, fingerprint, mode.value)
        if cached_payload is not None:
            result = SummaryResult.model_validate(cached_payload)
            result.source = "cache"
            result.debug = DebugInfo(llm_called=False, used_model=None, source="cache")
            return result

        gathered = self.gather_comments(parcel, neighbor_ids)
        if not gathered.texts:
            logger.info(f"No comments for parcel {parcel_id}; skipping generation")
            result = self.empty_result(parcel_id, mode)
            result.debug = DebugInfo(llm_called=False, used_model=None, source="empty")
            return result

        logger.info(
            f"Summarizing {len(gathered.texts)} comments for parcel {parcel_id} "
            f"({gathered.own_count} own, {gathered.neighbor_count} from neighbors)"
        )

        raw_output = None
        result = None
        try:
            prompt = self.build_prompt(gathered, mode)
            max_output_tokens = (
                self.structured_max_output_tokens
                if mode == SummaryMode.STRUCTURED
                else self.narrative_max_output_tokens
            )
            raw_output = self.generator.generate(prompt, parcel_id, max_output_tokens)
            result = self._llm_result(gathered, mode, raw_output)
        except Exception as e:
            logger.warning(f"Summary generation failed for parcel {parcel_id}: {e}")

        if result is None:
            result = self.fallback_result(gathered, mode)

        if result.source == "llm" or self.cache_fallback:
            self.cache.put(
                parcel_id,
                fingerprint,
                result.model_dump(mode="json", exclude={"debug"}),
                mode.value,
            )

        result.debug = DebugInfo(
            llm_called=raw_output is not None,
            used_model=self.generator.model,
            model_output_snippet=(raw_output or "")[:DEBUG_SNIPPET_LENGTH],
            source=result.source,
        )
        return result

    def invalidate(self, parcel_id: int) -> int:
        """Drop cached summaries after a new comment is written for the parcel."""
        return self.cache.invalidate(parcel_id)
