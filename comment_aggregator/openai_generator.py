import json
import logging
import sys
import time
from typing import List, Optional

import pandas as pd
import tiktoken
from openai import OpenAI
from pydantic import BaseModel, ConfigDict

from utils.tiny_file_handler import load_json_file

logging.basicConfig(level=logging.INFO, stream=sys.stdout)
logger = logging.getLogger(__name__)


class OpenAIGenerator(BaseModel):
    """
    Thin text-completion client for parcel comment summaries.
    One prompt in, stripped text out, or None when the service fails, times
    out or answers with nothing. Callers own the fallback.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    client: Optional[OpenAI] = None
    model: str = "gpt-4.1-mini"
    temperature: float = 0.3
    max_tokens: int = 1000
    timeout_seconds: float = 30.0
    max_retries: int = 0
    retry_delay: float = 1.0

    def __init__(self, **kwargs):
        super().__init__(**kwargs)

        # Load configuration overrides if available
        try:
            config = load_json_file("config.json")
            openai_config = config.get("openai", {})

            for key in (
                "model",
                "temperature",
                "max_tokens",
                "timeout_seconds",
                "max_retries",
                "retry_delay",
            ):
                if key not in kwargs and key in openai_config:
                    setattr(self, key, openai_config[key])
        except (json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning(f"Failed to load OpenAI config, using defaults: {e}")

    def _get_client(self) -> OpenAI:
        if self.client is None:
            # SDK-level retries are disabled so timeout_seconds bounds the whole call
            self.client = OpenAI(timeout=self.timeout_seconds, max_retries=0)
        return self.client

    def estimate_tokens(self, text: str) -> int:
        """Estimate token count for text using tiktoken."""

        try:
            if pd.isna(text):
                return 0
        except (TypeError, ValueError):
            pass

        if text is None or text == "":
            return 0

        try:
            encoding = tiktoken.encoding_for_model(self.model)
            return len(encoding.encode(str(text)))
        except Exception:
            # Unknown model name or offline encoder download: ~4 characters per token
            return len(str(text)) // 4

    def create_comment_prompt(
        self, base_prompt: str, comments: List[str], instructions: str
    ) -> str:
        """Lay out context, numbered comments and the output instructions."""
        comments_text = "\n".join(
            [f"{i + 1}. {comment}" for i, comment in enumerate(comments)]
        )

        prompt = base_prompt + "\n\n"
        prompt += f"Representative comments:\n{comments_text}\n\n"
        prompt += instructions
        return prompt

    def fit_comments_to_budget(
        self,
        base_prompt: str,
        comments: List[str],
        instructions: str,
        max_prompt_tokens: int,
    ) -> List[str]:
        """Drop the lowest-ranked comments until the prompt fits the token budget."""
        fitted = list(comments)
        while fitted:
            prompt = self.create_comment_prompt(base_prompt, fitted, instructions)
            if self.estimate_tokens(prompt) <= max_prompt_tokens:
                break
            fitted.pop()

        if len(fitted) < len(comments):
            logger.info(
                f"Trimmed prompt from {len(comments)} to {len(fitted)} comments "
                f"to stay under {max_prompt_tokens} tokens"
            )
        return fitted

    def generate(
        self, prompt: str, parcel_id: int, max_output_tokens: Optional[int] = None
    ) -> Optional[str]:
        """Call the chat completion endpoint, retrying up to ``max_retries`` times."""
        for attempt in range(self.max_retries + 1):
            try:
                response = self._get_client().chat.completions.create(
                    model=self.model,
                    messages=[{"role": "user", "content": prompt}],
                    temperature=self.temperature,
                    max_tokens=max_output_tokens or self.max_tokens,
                    timeout=self.timeout_seconds,
                )

                content = response.choices[0].message.content
                return content.strip() if content else None

            except Exception as e:
                logger.warning(
                    f"OpenAI API error for parcel {parcel_id} (attempt {attempt + 1}): {str(e)}"
                )

                if attempt < self.max_retries:
                    time.sleep(self.retry_delay * (2**attempt))

        logger.warning(
            f"Failed to generate summary for parcel {parcel_id} after {self.max_retries + 1} attempts"
        )
        return None
