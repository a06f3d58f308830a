"""Ollama chat client used to write LLM post-mortem reports."""

from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Dict, List, Optional

from chaoslab.config import Settings, settings

logger = logging.getLogger(__name__)

try:  # pragma: no cover - optional dependency
    from ollama import Client as OllamaClient  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    OllamaClient = None  # type: ignore


class LLMGenerationError(RuntimeError):
    """Raised when the text generation client cannot return an answer."""


class TextLLMClient:
    """Single-shot chat completions against one Ollama model.

    The Ollama client is created on first use. When the package is missing
    or the client cannot be built, ``available`` turns False and every
    ``generate`` call raises ``LLMGenerationError``.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        model: Optional[str] = None,
        *,
        client: Optional[Any] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self._config = config or settings
        self._host = host or self._config.ollama_base
        self._model = model or self._config.text_llm_model
        self._client = client
        self._lock = Lock()
        self._unavailable = False

    @property
    def available(self) -> bool:
        return not self._unavailable

    def generate(
        self,
        prompt: str,
        *,
        system: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        client = self._get_client()
        if client is None:
            raise LLMGenerationError("text llm client unavailable")

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            response = client.chat(
                model=self._model,
                messages=messages,
                options={
                    "temperature": temperature,
                    "num_predict": max(1, max_tokens),
                    "num_ctx": max(1, self._config.ollama_context_length),
                },
                stream=False,
            )
        except Exception as exc:
            logger.error("Report LLM request to %s failed: %s", self._model, exc)
            raise LLMGenerationError(str(exc) or exc.__class__.__name__) from exc

        try:
            content = response["message"]["content"]
        except (KeyError, TypeError) as exc:
            raise LLMGenerationError("text llm returned empty message") from exc
        if not content:
            raise LLMGenerationError("text llm returned empty content")
        return str(content).strip()

    def _get_client(self) -> Optional[Any]:
        if self._client is not None or self._unavailable:
            return self._client
        if OllamaClient is None:
            logger.warning("Ollama client not installed; LLM reports disabled")
            self._unavailable = True
            return None

        with self._lock:
            if self._client is None and not self._unavailable:
                try:
                    self._client = OllamaClient(host=self._host)
                except Exception as exc:  # pragma: no cover - network dependency
                    logger.warning("Failed to create Ollama client for %s: %s", self._host, exc)
                    self._unavailable = True
        return self._client


text_llm_client = TextLLMClient()
