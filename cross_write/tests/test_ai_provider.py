"""
AIProvider: chọn key theo deployment mode, allow-list model, rate limit theo (caller, purpose),
lỗi provider => AIServiceUnavailableError với message chung.
OpenAI client được mock (MagicMock), không gọi mạng.
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from crosswrite.config import Settings
from crosswrite.services.ai_provider import (
    DEFAULT_MODEL,
    MAX_INPUT_CHARS,
    UNAVAILABLE_MESSAGE,
    AIProvider,
    AiPurpose,
    AIRateLimitError,
    AIServiceUnavailableError,
    resolve_api_key,
    truncate_input,
    validate_model,
)
from crosswrite.utils.rate_limit import FixedWindowRateLimiter


def _settings(**overrides) -> Settings:
    values = {
        "DEPLOYMENT_MODE": "HOSTED",
        "OPENAI_API_KEY_APP": "sk-app",
        "OPENAI_API_KEY": "sk-self",
        "REDIS_URL": None,
    }
    values.update(overrides)
    return Settings(**values)


def _chat_client(content: str = "Suggested text") -> MagicMock:
    client = MagicMock()
    client.chat.completions.create.return_value = SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )
    return client


def test_resolve_api_key_by_deployment_mode() -> None:
    assert resolve_api_key(_settings()) == "sk-app"
    assert resolve_api_key(_settings(DEPLOYMENT_MODE="SELF_HOST")) == "sk-self"
    assert resolve_api_key(_settings(DEPLOYMENT_MODE="self_host")) == "sk-self"


def test_validate_model_falls_back_to_default() -> None:
    assert validate_model("gpt-4o") == "gpt-4o"
    assert validate_model("gpt-99-ultra") == DEFAULT_MODEL
    assert validate_model(None) == DEFAULT_MODEL


def test_truncate_input() -> None:
    long_text = "x" * (MAX_INPUT_CHARS + 50)
    out = truncate_input(long_text)
    assert len(out) == MAX_INPUT_CHARS + 3
    assert out.endswith("...")
    assert truncate_input("short") == "short"


@pytest.mark.asyncio
async def test_call_text_model_returns_content() -> None:
    client = _chat_client("  Better intro paragraph.  ")
    provider = AIProvider(_settings(), client=client)

    out = await provider.call_text_model(AiPurpose.IMPROVE, "my intro", caller_id="user-1", model="gpt-4o")

    assert out == "Better intro paragraph."
    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-4o"
    assert kwargs["messages"][1] == {"role": "user", "content": "my intro"}
    assert kwargs["max_tokens"] == 1000


@pytest.mark.asyncio
async def test_provider_error_is_generic_unavailable() -> None:
    client = MagicMock()
    client.chat.completions.create.side_effect = RuntimeError("upstream 500: internal details")
    provider = AIProvider(_settings(), client=client)

    with pytest.raises(AIServiceUnavailableError) as exc_info:
        await provider.call_text_model(AiPurpose.SUMMARIZE, "text", caller_id="user-1")
    assert str(exc_info.value) == UNAVAILABLE_MESSAGE


@pytest.mark.asyncio
async def test_missing_key_is_unavailable() -> None:
    provider = AIProvider(_settings(OPENAI_API_KEY_APP=None))
    with pytest.raises(AIServiceUnavailableError):
        await provider.call_text_model(AiPurpose.SEO, "text", caller_id="user-1")


@pytest.mark.asyncio
async def test_empty_input_rejected() -> None:
    provider = AIProvider(_settings(), client=_chat_client())
    with pytest.raises(ValueError, match="input_required"):
        await provider.call_text_model(AiPurpose.TONE, "   ", caller_id="user-1")


@pytest.mark.asyncio
async def test_rate_limit_is_per_caller_and_purpose() -> None:
    provider = AIProvider(_settings(), client=_chat_client(), rate_limiter=FixedWindowRateLimiter(1))

    await provider.call_text_model(AiPurpose.IMPROVE, "a", caller_id="user-1")
    with pytest.raises(AIRateLimitError):
        await provider.call_text_model(AiPurpose.IMPROVE, "b", caller_id="user-1")
    # purpose khác / caller khác có window riêng
    await provider.call_text_model(AiPurpose.SEO, "c", caller_id="user-1")
    await provider.call_text_model(AiPurpose.IMPROVE, "d", caller_id="user-2")


@pytest.mark.asyncio
async def test_call_image_model() -> None:
    client = MagicMock()
    client.images.generate.return_value = SimpleNamespace(data=[SimpleNamespace(url="https://img.example.com/1.png")])
    provider = AIProvider(_settings(), client=client)

    url = await provider.call_image_model("a robot writing a blog post", caller_id="user-1")
    assert url == "https://img.example.com/1.png"
    assert client.images.generate.call_args.kwargs["model"] == "dall-e-3"


@pytest.mark.asyncio
async def test_image_without_result_is_unavailable() -> None:
    client = MagicMock()
    client.images.generate.return_value = SimpleNamespace(data=[])
    provider = AIProvider(_settings(), client=client)
    with pytest.raises(AIServiceUnavailableError):
        await provider.call_image_model("prompt", caller_id="user-1")
