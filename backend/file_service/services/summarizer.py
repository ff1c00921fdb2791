"""Async summary providers: text in, short overview out.

Both vendor SDKs (openai, google-genai) are sync; calls run through
asyncio.to_thread under an asyncio.wait_for deadline. There are no retries:
a failed call fails the Analyze operation immediately.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from file_service.config import Settings
from file_service.errors import SummarizationFailed, safe_error_message

logger = logging.getLogger(__name__)

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant. Generate a brief, concise overview (2-3 sentences) "
    "of the provided file content. Focus on the purpose and key elements of the file."
)
DEFAULT_TIMEOUT_SECONDS = 60.0


class BaseSummaryProvider(ABC):
    """Abstract base class for async summary providers."""

    def __init__(self, model_name: str, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        self.model_name = model_name
        self.timeout = timeout

    @abstractmethod
    def _sync_summarize(self, text: str) -> Optional[str]:
        """Blocking SDK call. Returns the raw completion text (may be None)."""

    async def summarize(self, text: str) -> str:
        """Summarize `text`. Raises SummarizationFailed on any provider failure."""
        provider = type(self).__name__
        try:
            summary = await asyncio.wait_for(
                asyncio.to_thread(self._sync_summarize, text),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise SummarizationFailed(
                f"{provider} call timed out after {self.timeout}s"
            ) from e
        except SummarizationFailed:
            raise
        except Exception as e:
            logger.error(f"{provider} summarize call failed: {e}")
            raise SummarizationFailed(
                f"{provider} call failed: {safe_error_message(e)}"
            ) from e

        if not summary or not summary.strip():
            raise SummarizationFailed(f"{provider} returned an empty summary")
        return summary.strip()


class OpenAISummaryProvider(BaseSummaryProvider):
    """Chat-completions summary via the openai SDK (any compatible base URL)."""

    def __init__(
        self, api_key: str, model_name: str = "gpt-4o-mini",
        base_url: Optional[str] = None, timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        super().__init__(model_name, timeout)
        from openai import OpenAI
        # A failed call fails the operation; the SDK must not re-send it
        kwargs = {"api_key": api_key, "max_retries": 0}
        if base_url:
            kwargs["base_url"] = base_url
        self.client = OpenAI(**kwargs)

    def _sync_summarize(self, text: str) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.model_name,
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": text},
            ],
        )
        if not response.choices:
            raise SummarizationFailed("no choices returned from openai")
        return response.choices[0].message.content


class GeminiSummaryProvider(BaseSummaryProvider):
    """Summary via the google-genai SDK (API key auth)."""

    def __init__(
        self, api_key: str, model_name: str = "gemini-2.5-flash",
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        super().__init__(model_name, timeout)
        if not api_key:
            raise ValueError("GEMINI_API_KEY must be set for the gemini summary provider")
        from google import genai
        self.client = genai.Client(api_key=api_key)

    def _sync_summarize(self, text: str) -> Optional[str]:
        from google.genai import types

        config = types.GenerateContentConfig(system_instruction=SUMMARY_SYSTEM_PROMPT)
        response = self.client.models.generate_content(
            model=self.model_name, contents=text, config=config,
        )
        return response.text


def create_summary_provider(settings: Settings) -> BaseSummaryProvider:
    """Factory keyed on SUMMARY_PROVIDER."""
    provider = settings.SUMMARY_PROVIDER
    timeout = settings.SUMMARY_TIMEOUT_SECONDS
    if provider == "openai":
        if not settings.OPENAI_MODEL:
            raise ValueError("OPENAI_MODEL must be set for the openai summary provider")
        return OpenAISummaryProvider(
            api_key=settings.OPENAI_API_KEY,
            model_name=settings.OPENAI_MODEL,
            base_url=settings.OPENAI_BASE_URL or None,
            timeout=timeout,
        )
    elif provider == "gemini":
        if not settings.GEMINI_MODEL:
            raise ValueError("GEMINI_MODEL must be set for the gemini summary provider")
        return GeminiSummaryProvider(
            api_key=settings.GEMINI_API_KEY,
            model_name=settings.GEMINI_MODEL,
            timeout=timeout,
        )
    raise ValueError(f"Unknown summary provider: {provider}")
