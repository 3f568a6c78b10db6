"""
Unit tests for comment_aggregator/openai_generator.py
"""

from unittest.mock import MagicMock, patch

import pytest


class TestOpenAIGenerator:
    """Tests for OpenAIGenerator class."""

    @pytest.fixture
    def generator(self, mock_openai_client):
        """Create an OpenAIGenerator with a mocked client."""
        with patch("comment_aggregator.openai_generator.load_json_file") as mock_load:
            mock_load.return_value = {
                "openai": {
                    "model": "gpt-4o-mini",
                    "temperature": 0.2,
                    "max_tokens": 800,
                    "timeout_seconds": 10,
                }
            }
            from comment_aggregator.openai_generator import OpenAIGenerator

            gen = OpenAIGenerator(retry_delay=0)
            gen.client = mock_openai_client
            return gen

    def test_config_loaded(self, generator):
        """Test that config.json overrides the defaults."""
        assert generator.model == "gpt-4o-mini"
        assert generator.temperature == 0.2
        assert generator.max_tokens == 800
        assert generator.timeout_seconds == 10
        assert generator.max_retries == 0

    def test_estimate_tokens_falls_back_to_characters(self, generator):
        """Test the four-characters-per-token estimate when no encoder is available."""
        assert generator.estimate_tokens("abcd" * 10) == 10

    @pytest.mark.parametrize("text", ["", None])
    def test_estimate_tokens_empty(self, generator, text):
        """Test token estimation for empty values."""
        assert generator.estimate_tokens(text) == 0

    def test_estimate_tokens_nan_value(self, generator):
        """Test token estimation for NaN values."""
        import pandas as pd

        assert generator.estimate_tokens(pd.NA) == 0

    def test_create_comment_prompt_numbers_comments(self, generator):
        """Test that comments are numbered in rank order between context and instructions."""
        prompt = generator.create_comment_prompt(
            "Context line.", ["First comment", "Second comment"], "Return JSON."
        )

        assert prompt.startswith("Context line.\n\n")
        assert "1. First comment\n2. Second comment" in prompt
        assert prompt.endswith("Return JSON.")

    def test_fit_comments_to_budget_drops_lowest_ranked(self, generator):
        """Test that trimming removes comments from the end of the list."""
        comments = [f"comment number {i} " + "x" * 200 for i in range(10)]

        fitted = generator.fit_comments_to_budget("Context.", comments, "Go.", 200)

        assert 0 < len(fitted) < len(comments)
        assert fitted == comments[: len(fitted)]
        prompt = generator.create_comment_prompt("Context.", fitted, "Go.")
        assert generator.estimate_tokens(prompt) <= 200

    def test_fit_comments_to_budget_no_trim_needed(self, generator):
        """Test that short prompts keep every comment."""
        comments = ["short one", "short two"]

        assert generator.fit_comments_to_budget("C.", comments, "I.", 6000) == comments

    def test_generate_success(self, generator, mock_openai_client):
        """Test successful generation returns stripped content."""
        mock_openai_client.chat.completions.create.return_value.choices[
            0
        ].message.content = "  A summary.  "

        result = generator.generate("prompt", parcel_id=1, max_output_tokens=200)

        assert result == "A summary."
        call_kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o-mini"
        assert call_kwargs["max_tokens"] == 200
        assert call_kwargs["timeout"] == 10
        assert call_kwargs["messages"] == [{"role": "user", "content": "prompt"}]

    def test_generate_default_max_tokens(self, generator, mock_openai_client):
        """Test that max_tokens falls back to the configured value."""
        generator.generate("prompt", parcel_id=1)

        call_kwargs = mock_openai_client.chat.completions.create.call_args.kwargs
        assert call_kwargs["max_tokens"] == 800

    def test_generate_empty_content_returns_none(self, generator, mock_openai_client):
        """Test that an empty completion is treated as no output."""
        mock_openai_client.chat.completions.create.return_value.choices[
            0
        ].message.content = None

        assert generator.generate("prompt", parcel_id=1) is None

    def test_generate_error_returns_none(self, generator, mock_openai_client):
        """Test that API errors and timeouts are swallowed into None."""
        mock_openai_client.chat.completions.create.side_effect = TimeoutError(
            "Request timed out"
        )

        assert generator.generate("prompt", parcel_id=1) is None
        assert mock_openai_client.chat.completions.create.call_count == 1

    def test_generate_retries(self, generator, mock_openai_client):
        """Test that max_retries adds attempts before giving up."""
        success = MagicMock()
        success.choices = [MagicMock()]
        success.choices[0].message.content = "Recovered."
        mock_openai_client.chat.completions.create.side_effect = [
            Exception("rate limited"),
            success,
        ]
        generator.max_retries = 1

        with patch("comment_aggregator.openai_generator.time.sleep") as mock_sleep:
            result = generator.generate("prompt", parcel_id=1)

        assert result == "Recovered."
        assert mock_openai_client.chat.completions.create.call_count == 2
        mock_sleep.assert_called_once()

    def test_client_created_lazily(self):
        """Test that the OpenAI client is built on first use with SDK retries off."""
        from comment_aggregator.openai_generator import OpenAIGenerator

        gen = OpenAIGenerator(timeout_seconds=5)
        assert gen.client is None

        with patch("comment_aggregator.openai_generator.OpenAI") as mock_openai:
            client = gen._get_client()

        mock_openai.assert_called_once_with(timeout=5, max_retries=0)
        assert client is mock_openai.return_value
