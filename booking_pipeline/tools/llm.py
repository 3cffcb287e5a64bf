"""Completion oracle: the chat model behind the LLM path of the pipeline."""

import logging
from typing import Any, Optional, Protocol

import openai
from openai import AsyncOpenAI

from booking_pipeline.config import settings

logger = logging.getLogger(__name__)


class LLMServiceError(Exception):
    """Completion failed; ``friendly_message`` is safe to show to the user."""

    def __init__(self, friendly_message: str, kind: str = "generic") -> None:
        super().__init__(friendly_message)
        self.friendly_message = friendly_message
        self.kind = kind


class CompletionOracle(Protocol):
    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
    ) -> str:
        ...


def friendly_error(exc: Exception) -> LLMServiceError:
    """Translate a provider exception into a user-presentable error."""
    code = getattr(exc, "code", None)
    status = getattr(exc, "status_code", None)
    if code == "insufficient_quota":
        return LLMServiceError(
            "OpenAI API quota exceeded. Please check your billing settings.", kind="quota"
        )
    if code == "invalid_api_key":
        return LLMServiceError(
            "Invalid OpenAI API key. Please check your configuration.", kind="api_key"
        )
    if status == 429:
        return LLMServiceError(
            "Rate limit exceeded. Please try again in a moment.", kind="rate_limit"
        )
    message = str(exc) or "Unknown error occurred"
    return LLMServiceError(f"AI service error: {message}")


class OpenAIChatOracle:
    """Chat completions against the OpenAI API."""

    def __init__(self, client: Optional[Any] = None, model: Optional[str] = None) -> None:
        self._client = client
        self._model = model or settings.model.llm_model

    def _get_client(self) -> Any:
        if self._client is None:
            if not settings.model.api_key:
                raise LLMServiceError(
                    "Invalid OpenAI API key. Please check your configuration.", kind="api_key"
                )
            self._client = AsyncOpenAI(api_key=settings.model.api_key)
        return self._client

    async def complete(
        self,
        system_prompt: str,
        messages: list[dict[str, str]],
        temperature: Optional[float] = None,
    ) -> str:
        client = self._get_client()
        formatted = [{"role": "system", "content": system_prompt}]
        formatted.extend({"role": m["role"], "content": m["content"]} for m in messages)

        try:
            completion = await client.chat.completions.create(
                model=self._model,
                messages=formatted,
                max_tokens=settings.model.max_tokens,
                temperature=(
                    settings.model.llm_temperature if temperature is None else temperature
                ),
                presence_penalty=settings.model.presence_penalty,
                frequency_penalty=settings.model.frequency_penalty,
            )
        except openai.OpenAIError as exc:
            logger.error("OpenAI completion failed: %s", exc)
            raise friendly_error(exc) from exc

        content = completion.choices[0].message.content if completion.choices else None
        if not content:
            raise LLMServiceError("AI service error: No response received from OpenAI")
        return content
