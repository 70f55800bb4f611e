"""
Thin async wrapper around the Anthropic SDK.

Every call is bounded by a timeout, records token usage into the caller's
TokenUsage, and raises ModelError with an explicit category on failure.
"""

import asyncio
import json
import logging
import time
from typing import Protocol

import anthropic

from sitegen.config import Settings
from sitegen.errors import ErrorCategory, ModelError
from sitegen.models import TokenUsage


logger = logging.getLogger(__name__)


class ModelClient(Protocol):
    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 4000,
        temperature: float | None = None,
        usage: TokenUsage | None = None,
    ) -> str:
        ...


class AnthropicModelClient:
    def __init__(self, settings: Settings):
        self.settings = settings
        self._client = None

    def _get_client(self):
        if self._client is None:
            if not self.settings.anthropic_api_key:
                raise ModelError(ErrorCategory.auth, "ANTHROPIC_API_KEY is not set", status_code=401)
            self._client = anthropic.AsyncAnthropic(
                api_key=self.settings.anthropic_api_key,
                timeout=self.settings.model_timeout,
                max_retries=0,
            )
        return self._client

    async def complete(
        self,
        prompt: str,
        *,
        system: str | None = None,
        max_tokens: int = 4000,
        temperature: float | None = None,
        usage: TokenUsage | None = None,
    ) -> str:
        client = self._get_client()
        t0 = time.time()

        kwargs = {
            "model": self.settings.default_model,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = [{
                "type": "text",
                "text": system,
                "cache_control": {"type": "ephemeral"},
            }]
        if temperature is not None:
            kwargs["temperature"] = temperature

        async def _call():
            raw = ""
            async with client.messages.stream(**kwargs) as stream:
                async for chunk in stream.text_stream:
                    raw += chunk
                response = await stream.get_final_message()
            return raw, response

        try:
            raw, response = await asyncio.wait_for(_call(), timeout=self.settings.model_timeout)
        except ModelError:
            raise
        except Exception as e:
            raise classify_error(e) from e

        elapsed = time.time() - t0
        response_usage = getattr(response, "usage", None)
        tokens_in = getattr(response_usage, "input_tokens", 0) if response_usage else 0
        tokens_out = getattr(response_usage, "output_tokens", 0) if response_usage else 0
        if usage is not None:
            usage.record(tokens_in, tokens_out)

        logger.info(f"[model] {self.settings.default_model} — "
                    f"{elapsed:.1f}s, {tokens_in}in/{tokens_out}out, {len(raw)} chars")
        return raw


def classify_error(exc: Exception) -> ModelError:
    """Map an SDK (or unknown) exception onto a ModelError category."""
    if isinstance(exc, ModelError):
        return exc
    if isinstance(exc, (anthropic.APITimeoutError, asyncio.TimeoutError)):
        return ModelError(ErrorCategory.service, str(exc) or "Model call timed out")
    message = str(exc) or exc.__class__.__name__

    if isinstance(exc, anthropic.RateLimitError):
        return ModelError(ErrorCategory.quota, message)
    if isinstance(exc, anthropic.AuthenticationError):
        return ModelError(ErrorCategory.auth, message, status_code=401)
    if isinstance(exc, anthropic.PermissionDeniedError):
        return ModelError(ErrorCategory.auth, message, status_code=403)
    if isinstance(exc, anthropic.APIConnectionError):
        return ModelError(ErrorCategory.service, message)
    if isinstance(exc, anthropic.InternalServerError):
        return ModelError(ErrorCategory.service, message)
    if isinstance(exc, anthropic.APIStatusError):
        status = getattr(exc, "status_code", None)
        if status == 429:
            return ModelError(ErrorCategory.quota, message)
        if status in (401, 403):
            return ModelError(ErrorCategory.auth, message, status_code=status)
        if status is not None and status >= 500:
            return ModelError(ErrorCategory.service, message)
        return ModelError(ErrorCategory.generic, message)

    return classify_error_text(message)


def classify_error_text(message: str) -> ModelError:
    """Last-resort classification for untyped errors, by status code in the text."""
    if "429" in message:
        return ModelError(ErrorCategory.quota, message)
    if "401" in message:
        return ModelError(ErrorCategory.auth, message, status_code=401)
    if "403" in message:
        return ModelError(ErrorCategory.auth, message, status_code=403)
    if "500" in message or "503" in message:
        return ModelError(ErrorCategory.service, message)
    return ModelError(ErrorCategory.generic, message)


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences from Claude output."""
    text = text.strip()
    if text.startswith("```"):
        # Remove first line (```json, ```tsx etc.)
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def parse_json_object(text: str) -> dict:
    """Parse a JSON object out of a model reply, tolerating fences and chatter."""
    cleaned = strip_code_fences(text)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        start, end = cleaned.find("{"), cleaned.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object found in model output")
        data = json.loads(cleaned[start:end + 1])
    if not isinstance(data, dict):
        raise ValueError("Model output is JSON but not an object")
    return data
