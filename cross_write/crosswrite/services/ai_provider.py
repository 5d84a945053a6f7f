"""
OpenAI provider wrapper: text (chat completions) và image (thumbnail).
Mọi lời gọi OpenAI nằm trong module này. Key chọn theo DEPLOYMENT_MODE:
HOSTED -> OPENAI_API_KEY_APP, SELF_HOST -> OPENAI_API_KEY.
Lỗi provider được log (purpose, error, preview 100 ký tự input) rồi raise AIServiceUnavailableError.
"""
import asyncio
import time
from enum import Enum
from typing import Any, Optional

from crosswrite.config import Settings, get_settings
from crosswrite.logging_config import get_logger
from crosswrite.utils.rate_limit import build_rate_limiter

logger = get_logger(__name__)

ALLOWED_MODELS = ("gpt-4o-mini", "gpt-4o", "gpt-3.5-turbo", "dall-e-3", "dall-e-2")
DEFAULT_MODEL = "gpt-4o-mini"
IMAGE_MODEL = "dall-e-3"
IMAGE_SIZE = "1024x1024"
DEFAULT_MAX_TOKENS = 1000
MAX_INPUT_CHARS = 10000
MAX_IMAGE_PROMPT_CHARS = 1000
PREVIEW_CHARS = 100

UNAVAILABLE_MESSAGE = "AI service is temporarily unavailable"


class AiPurpose(str, Enum):
    SUGGESTIONS = "suggestions"
    IMPROVE = "improve"
    TONE = "tone"
    EXPAND = "expand"
    SUMMARIZE = "summarize"
    TRANSLATE = "translate"
    SEO = "seo"
    THUMBNAIL = "thumbnail"
    ANALYZE = "analyze"


SYSTEM_PROMPTS = {
    AiPurpose.SUGGESTIONS: "You are a writing assistant. Suggest concrete improvements for the given article.",
    AiPurpose.IMPROVE: "You are an editor. Improve clarity and flow of the given text without changing its meaning.",
    AiPurpose.TONE: "You are an editor. Rewrite the given text in the requested tone.",
    AiPurpose.EXPAND: "You are a technical writer. Expand the given text with relevant detail.",
    AiPurpose.SUMMARIZE: "You summarize technical articles concisely.",
    AiPurpose.TRANSLATE: "You translate the given text, preserving markdown formatting.",
    AiPurpose.SEO: "You write SEO titles and meta descriptions for technical articles.",
    AiPurpose.THUMBNAIL: "You are an image generation specialist.",
    AiPurpose.ANALYZE: "You analyze articles for readability, structure and audience fit.",
}
DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant. Please help with the requested task."


class AIServiceUnavailableError(Exception):
    """Provider lỗi hoặc chưa cấu hình; message luôn generic."""

    def __init__(self) -> None:
        super().__init__(UNAVAILABLE_MESSAGE)


class AIRateLimitError(Exception):
    def __init__(self, reset_at: float) -> None:
        self.reset_at = reset_at
        super().__init__("Rate limit exceeded. Please try again later.")


def resolve_api_key(settings: Settings) -> Optional[str]:
    if settings.is_self_hosted:
        return settings.openai_api_key
    return settings.openai_api_key_app


def validate_model(model: Optional[str]) -> str:
    """Model ngoài allow-list => DEFAULT_MODEL."""
    if not model:
        return DEFAULT_MODEL
    if model in ALLOWED_MODELS:
        return model
    logger.warning("ai.invalid_model", model=model, fallback=DEFAULT_MODEL)
    return DEFAULT_MODEL


def truncate_input(text: str, max_chars: int = MAX_INPUT_CHARS) -> str:
    if len(text) <= max_chars:
        return text
    return text[:max_chars] + "..."


class AIProvider:
    """Gọi OpenAI (client sync chạy qua asyncio.to_thread), rate limit theo (caller, purpose)."""

    def __init__(self, settings: Settings, client: Any = None, rate_limiter: Any = None) -> None:
        self.api_key = resolve_api_key(settings)
        self.model = validate_model(settings.openai_model)
        self.temperature = settings.openai_temperature
        self.timeout_seconds = settings.openai_timeout_seconds
        self.max_retries = settings.openai_max_retries
        self._client = client
        self._limiter = rate_limiter or build_rate_limiter(settings.ai_rate_limit_per_min)

    def _get_client(self):  # noqa: ANN201
        """Lazy init OpenAI client."""
        if self._client is not None:
            return self._client
        if not self.api_key:
            logger.warning("ai.not_configured")
            raise AIServiceUnavailableError()
        from openai import OpenAI

        self._client = OpenAI(
            api_key=self.api_key,
            timeout=float(self.timeout_seconds),
            max_retries=self.max_retries,
        )
        return self._client

    async def _check_rate_limit(self, caller_id: str, purpose: AiPurpose) -> None:
        result = await self._limiter.hit(f"ai:{caller_id}:{purpose.value}")
        if not result.allowed:
            logger.info("ai.rate_limited", caller_id=caller_id, purpose=purpose.value)
            raise AIRateLimitError(result.reset_at)

    async def call_text_model(
        self,
        purpose: AiPurpose,
        text: str,
        caller_id: str,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """
        Trả về text sinh ra. ValueError("input_required") nếu input rỗng;
        AIRateLimitError khi vượt limit; AIServiceUnavailableError khi provider lỗi.
        """
        await self._check_rate_limit(caller_id, purpose)
        text = (text or "").strip()
        if not text:
            raise ValueError("input_required")
        prompt = truncate_input(text)
        use_model = validate_model(model) if model else self.model

        client = self._get_client()
        start = time.perf_counter()
        try:
            resp = await asyncio.to_thread(
                client.chat.completions.create,
                model=use_model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPTS.get(purpose, DEFAULT_SYSTEM_PROMPT)},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=max_tokens,
            )
            content = (resp.choices[0].message.content or "").strip()
            if not content:
                raise RuntimeError("empty_response")
        except Exception as e:
            logger.error(
                "ai.text_failed",
                purpose=purpose.value,
                model=use_model,
                error=str(e),
                input_preview=prompt[:PREVIEW_CHARS],
            )
            raise AIServiceUnavailableError() from e
        logger.info(
            "ai.text_ok",
            purpose=purpose.value,
            model=use_model,
            latency_ms=round((time.perf_counter() - start) * 1000),
        )
        return content

    async def call_image_model(self, prompt: str, caller_id: str) -> str:
        """Sinh 1 ảnh (dall-e-3), trả về URL."""
        purpose = AiPurpose.THUMBNAIL
        await self._check_rate_limit(caller_id, purpose)
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValueError("prompt_required")
        prompt = truncate_input(prompt, MAX_IMAGE_PROMPT_CHARS)

        client = self._get_client()
        try:
            resp = await asyncio.to_thread(
                client.images.generate,
                model=IMAGE_MODEL,
                prompt=prompt,
                n=1,
                size=IMAGE_SIZE,
                quality="standard",
            )
            url = resp.data[0].url if resp.data else None
            if not url:
                raise RuntimeError("no_image_generated")
        except Exception as e:
            logger.error(
                "ai.image_failed",
                purpose=purpose.value,
                error=str(e),
                input_preview=prompt[:PREVIEW_CHARS],
            )
            raise AIServiceUnavailableError() from e
        return url


_provider: Optional[AIProvider] = None


def get_ai_provider() -> AIProvider:
    global _provider
    if _provider is None:
        _provider = AIProvider(get_settings())
    return _provider


def reset_ai_provider() -> None:
    global _provider
    _provider = None
