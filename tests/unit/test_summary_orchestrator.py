"""
Unit tests for comment_aggregator/summary_orchestrator.py
"""

from unittest.mock import patch

import pytest

from comment_aggregator.openai_generator import OpenAIGenerator
from comment_aggregator.summary_orchestrator import (
    DEBUG_SNIPPET_LENGTH,
    NO_COMMENTS_SUMMARY,
    SummaryMode,
    SummaryOrchestrator,
)
from storage.exceptions import NotFoundError
from utils.summary_cache import InMemorySummaryCache


class TestSummaryOrchestrator:
    """Tests for SummaryOrchestrator class."""

    @pytest.fixture
    def client(self, mock_openai_client):
        return mock_openai_client

    @pytest.fixture
    def orchestrator(self, populated_store, client):
        """Orchestrator on the sample parcels with a mocked completion client."""
        generator = OpenAIGenerator(retry_delay=0)
        generator.client = client
        return SummaryOrchestrator(
            store=populated_store,
            cache=InMemorySummaryCache(ttl_minutes=15),
            generator=generator,
        )

    @pytest.fixture
    def commented_store(self, populated_store, park_comments):
        for i, text in enumerate(park_comments):
            populated_store.create_comment(1, author_id=i + 1, content=text)
        return populated_store

    def set_reply(self, client, content):
        client.chat.completions.create.side_effect = None
        client.chat.completions.create.return_value.choices[0].message.content = content

    def test_no_comments_skips_model(self, orchestrator, client):
        """Test that a parcel with no comments never calls the model."""
        result = orchestrator.summarize(1)

        assert result.source == "empty"
        assert result.summary == NO_COMMENTS_SUMMARY
        assert result.recommendations == []
        assert result.debug.llm_called is False
        client.chat.completions.create.assert_not_called()

    def test_unknown_parcel_raises(self, orchestrator):
        """Test that a missing parcel surfaces as NotFoundError."""
        with pytest.raises(NotFoundError):
            orchestrator.summarize(999)

    def test_structured_llm_success(self, orchestrator, commented_store, client):
        """Test that valid model JSON becomes the structured summary."""
        result = orchestrator.summarize(1)

        assert result.source == "llm"
        assert result.summary.startswith("Residents want a park")
        assert len(result.recommendations) == 3
        assert result.representative_comments == ["We need a park here."]
        assert result.debug.llm_called is True
        assert result.debug.used_model == orchestrator.generator.model

        prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "parcel 1 at 100 MARKET ST" in prompt
        assert "We need a park here. Trees would help a lot!" in prompt

    def test_success_is_cached(self, orchestrator, commented_store, client):
        """Test that a second request with unchanged comments is served from cache."""
        first = orchestrator.summarize(1)
        second = orchestrator.summarize(1)

        assert client.chat.completions.create.call_count == 1
        assert second.source == "cache"
        assert second.summary == first.summary
        assert second.recommendations == first.recommendations
        assert second.debug.llm_called is False
        assert second.debug.used_model is None

    def test_new_comment_changes_fingerprint(self, orchestrator, commented_store, client):
        """Test that adding a comment forces a recompute even without invalidation."""
        orchestrator.summarize(1)
        commented_store.create_comment(1, author_id=9, content="Add a bus shelter.")

        result = orchestrator.summarize(1)

        assert result.source == "llm"
        assert client.chat.completions.create.call_count == 2

    def test_invalidate_forces_recompute(self, orchestrator, commented_store, client):
        """Test that explicit invalidation drops the cached summary."""
        orchestrator.summarize(1)
        orchestrator.invalidate(1)
        orchestrator.summarize(1)

        assert client.chat.completions.create.call_count == 2

    def test_unparseable_output_falls_back(self, orchestrator, commented_store, client):
        """Test that non-JSON model output produces the heuristic summary."""
        self.set_reply(client, "not json")

        result = orchestrator.summarize(1)

        assert result.source == "fallback"
        assert len(result.recommendations) == 3
        assert result.themes[0].theme == "park"
        assert len(result.representative_comments) == 3
        assert result.debug.llm_called is True
        assert result.debug.model_output_snippet == "not json"

    def test_timeout_falls_back(self, orchestrator, commented_store, client):
        """Test that a service error is not surfaced to the caller."""
        client.chat.completions.create.side_effect = TimeoutError("Request timed out")

        result = orchestrator.summarize(1)

        assert result.source == "fallback"
        assert result.summary
        assert len(result.recommendations) == 3
        assert result.debug.llm_called is False
        assert result.debug.model_output_snippet == ""

    def test_prompt_failure_falls_back(self, orchestrator, commented_store, client):
        """Test that an error while building the prompt also falls back."""
        with patch.object(
            OpenAIGenerator, "fit_comments_to_budget", side_effect=RuntimeError("bad prompt")
        ):
            result = orchestrator.summarize(1)

        assert result.source == "fallback"
        client.chat.completions.create.assert_not_called()

    def test_fallback_not_cached_by_default(self, orchestrator, commented_store, client):
        """Test that a fallback summary is retried on the next request."""
        self.set_reply(client, "not json")
        orchestrator.summarize(1)
        orchestrator.summarize(1)

        assert client.chat.completions.create.call_count == 2

    def test_fallback_cached_when_enabled(self, orchestrator, commented_store, client):
        """Test that cache_fallback stores heuristic summaries too."""
        orchestrator.cache_fallback = True
        self.set_reply(client, "not json")

        orchestrator.summarize(1)
        second = orchestrator.summarize(1)

        assert client.chat.completions.create.call_count == 1
        assert second.source == "cache"

    def test_narrative_mode(self, orchestrator, commented_store, client):
        """Test that narrative mode returns only the summary key."""
        self.set_reply(client, "Residents want a park. They also want lights.")

        result = orchestrator.summarize(1, SummaryMode.NARRATIVE)

        assert result.source == "llm"
        assert result.to_payload() == {
            "summary": "Residents want a park. They also want lights."
        }
        prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "exactly two sentences" in prompt

    def test_narrative_fallback(self, orchestrator, commented_store, client):
        """Test that narrative mode falls back to the heuristic narrative."""
        client.chat.completions.create.side_effect = Exception("boom")

        result = orchestrator.summarize(1, "narrative")

        assert result.source == "fallback"
        assert result.summary.startswith("Residents most often mention park")

    def test_modes_cached_independently(self, orchestrator, commented_store, client):
        """Test that a cached structured summary is not served for narrative."""
        orchestrator.summarize(1, SummaryMode.STRUCTURED)
        self.set_reply(client, "Two sentences. Here.")

        result = orchestrator.summarize(1, SummaryMode.NARRATIVE)

        assert result.source == "llm"
        assert result.summary == "Two sentences. Here."

    def test_neighbor_comments_included(self, orchestrator, populated_store, client):
        """Test that comments on neighboring parcels feed the summary."""
        populated_store.upsert_neighbors(1, [3, 2])
        populated_store.create_comment(3, author_id=1, content="Neighbor wants trees.")

        result = orchestrator.summarize(1)

        assert result.source == "llm"
        prompt = client.chat.completions.create.call_args.kwargs["messages"][0]["content"]
        assert "Neighbor wants trees." in prompt
        assert "2 nearby parcels" in prompt

    def test_own_comments_ranked_before_neighbors(self, orchestrator, populated_store):
        """Test the comment cap keeps the parcel's own comments first."""
        populated_store.upsert_neighbors(1, [3])
        populated_store.create_comment(1, author_id=1, content="Own comment.")
        for i in range(5):
            populated_store.create_comment(3, author_id=i, content=f"Neighbor {i}.")
        orchestrator.max_comments = 3

        parcel = populated_store.get_parcel(1)
        gathered = orchestrator.gather_comments(parcel, [3])

        assert len(gathered.texts) == 3
        assert gathered.texts[0] == "Own comment."
        assert gathered.own_count == 1
        assert gathered.neighbor_count == 5

    def test_debug_payload(self, orchestrator, commented_store, client):
        """Test the _debug block shape and snippet length."""
        self.set_reply(client, "x" * 500)

        payload = orchestrator.summarize(1).to_payload(include_debug=True)

        assert set(payload["_debug"]) == {
            "llmCalled",
            "usedModel",
            "modelOutputSnippet",
            "source",
        }
        assert len(payload["_debug"]["modelOutputSnippet"]) == DEBUG_SNIPPET_LENGTH
        assert set(payload) == {
            "summary",
            "recommendations",
            "themes",
            "representativeComments",
            "_debug",
        }

    def test_payload_without_debug(self, orchestrator, commented_store):
        """Test that debug is omitted unless requested."""
        payload = orchestrator.summarize(1).to_payload()

        assert "_debug" not in payload

    def test_mock_result(self, orchestrator, client):
        """Test that mock mode returns the canned sample without any calls."""
        result = orchestrator.mock_result(1, SummaryMode.STRUCTURED)

        assert result.source == "mock"
        assert len(result.recommendations) == 3
        assert result.representative_comments == []
        assert result.debug.used_model is None
        client.chat.completions.create.assert_not_called()

    def test_mock_result_uses_top_ranked_comments(self, orchestrator, populated_store, client):
        """Test that the mock payload carries the parcel's top_k ranked comments."""
        for i in range(5):
            comment = populated_store.create_comment(1, author_id=i, content=f"Idea {i}")
            for _ in range(i):
                populated_store.vote(comment.id, "upvote")

        result = orchestrator.mock_result(1, SummaryMode.STRUCTURED)

        assert result.representative_comments == ["Idea 4", "Idea 3", "Idea 2"]
        client.chat.completions.create.assert_not_called()

    def test_string_themes_still_use_model_summary(self, orchestrator, commented_store, client):
        """Test that malformed optional themes do not push a valid answer to the fallback."""
        self.set_reply(
            client,
            '{"summary": "Residents want a park.", "recommendations": ["Plant trees."], "themes": ["park"]}',
        )

        result = orchestrator.summarize(1)

        assert result.source == "llm"
        assert result.summary == "Residents want a park."
        assert result.themes == []
