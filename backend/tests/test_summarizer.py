"""Summary providers with the vendor SDK clients mocked out."""
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from file_service.config import Settings
from file_service.errors import SummarizationFailed
from file_service.services.summarizer import (
    SUMMARY_SYSTEM_PROMPT,
    GeminiSummaryProvider,
    OpenAISummaryProvider,
    create_summary_provider,
)

from conftest import StubSummaryProvider


def _completion(*contents):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=c)) for c in contents]
    )


@pytest.fixture
def openai_provider() -> OpenAISummaryProvider:
    provider = OpenAISummaryProvider(api_key="test-key", model_name="gpt-test", timeout=5)
    provider.client = MagicMock()
    return provider


@pytest.mark.asyncio
class TestOpenAISummaryProvider:

    async def test_sends_system_prompt_and_text(self, openai_provider):
        openai_provider.client.chat.completions.create.return_value = _completion("  A config file.  ")

        summary = await openai_provider.summarize("key: value")

        assert summary == "A config file."
        openai_provider.client.chat.completions.create.assert_called_once_with(
            model="gpt-test",
            messages=[
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": "key: value"},
            ],
        )

    async def test_no_choices(self, openai_provider):
        openai_provider.client.chat.completions.create.return_value = _completion()

        with pytest.raises(SummarizationFailed, match="no choices"):
            await openai_provider.summarize("text")

    @pytest.mark.parametrize("content", [None, "", "   \n"])
    async def test_empty_content(self, openai_provider, content):
        openai_provider.client.chat.completions.create.return_value = _completion(content)

        with pytest.raises(SummarizationFailed, match="empty summary"):
            await openai_provider.summarize("text")

    async def test_sdk_error_is_wrapped(self, openai_provider):
        openai_provider.client.chat.completions.create.side_effect = ConnectionError("connection reset")

        with pytest.raises(SummarizationFailed, match="connection reset") as exc_info:
            await openai_provider.summarize("text")
        assert isinstance(exc_info.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_slow_provider_times_out():
    class SlowProvider(StubSummaryProvider):
        def _sync_summarize(self, text):
            time.sleep(0.5)
            return "late"

    provider = SlowProvider()
    provider.timeout = 0.05

    with pytest.raises(SummarizationFailed, match="timed out"):
        await provider.summarize("text")


@pytest.mark.asyncio
async def test_gemini_provider(monkeypatch):
    client_cls = MagicMock()
    monkeypatch.setattr("google.genai.Client", client_cls)
    client_cls.return_value.models.generate_content.return_value = SimpleNamespace(text="A README.")

    provider = GeminiSummaryProvider(api_key="g-key", model_name="gemini-test", timeout=5)
    summary = await provider.summarize("# Project")

    assert summary == "A README."
    client_cls.assert_called_once_with(api_key="g-key")
    call = client_cls.return_value.models.generate_content.call_args
    assert call.kwargs["model"] == "gemini-test"
    assert call.kwargs["contents"] == "# Project"
    assert call.kwargs["config"].system_instruction == SUMMARY_SYSTEM_PROMPT


def test_gemini_requires_api_key():
    with pytest.raises(ValueError):
        GeminiSummaryProvider(api_key="")


def test_factory_openai():
    provider = create_summary_provider(
        Settings(SUMMARY_PROVIDER="openai", OPENAI_API_KEY="k", OPENAI_MODEL="gpt-x", SUMMARY_TIMEOUT_SECONDS=7)
    )
    assert isinstance(provider, OpenAISummaryProvider)
    assert provider.model_name == "gpt-x"
    assert provider.timeout == 7


def test_factory_gemini_without_key():
    with pytest.raises(ValueError):
        create_summary_provider(Settings(SUMMARY_PROVIDER="gemini", GEMINI_API_KEY=""))


def test_factory_unknown_provider():
    with pytest.raises(ValueError, match="Unknown summary provider"):
        create_summary_provider(Settings(SUMMARY_PROVIDER="llama"))


def test_openai_client_does_not_retry():
    provider = OpenAISummaryProvider(api_key="test-key", model_name="gpt-test")
    assert provider.client.max_retries == 0
