"""
LLM provider backends used by signal extraction.

Every provider exposes the same two calls:

- ``available()``: configured and usable right now.
- ``run(prompt, max_tokens=..., temperature=..., system_message=..., timeout=...)``:
  returns a dict with ``content``, ``provider``, ``model``, ``input_tokens``,
  ``output_tokens``, ``latency_ms`` and, on failure, ``error`` / ``error_type``
  / ``rate_limit``.

Transport and API errors are returned in the result dict rather than raised,
so the provider chain can move on to the next backend. Prompt building and
response parsing live in the services, not here.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from .config import settings

logger = logging.getLogger(__name__)


def _elapsed_ms(start: float) -> int:
    return int(round((time.monotonic() - start) * 1000))


class BaseProvider(ABC):
    name = "base"

    @property
    def model_name(self) -> str:
        return "unknown"

    @abstractmethod
    def available(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def run(
        self,
        prompt: str,
        *,
        max_tokens: int = 1500,
        temperature: float = 0.1,
        system_message: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> dict:
        raise NotImplementedError

    def _result(self, start: float, **fields) -> dict:
        result = {
            "content": None,
            "provider": self.name,
            "model": self.model_name,
            "input_tokens": None,
            "output_tokens": None,
            "latency_ms": _elapsed_ms(start),
        }
        result.update(fields)
        return result

    def _error(self, start: float, exc: Exception, rate_limit: bool = False) -> dict:
        logger.warning("[%s] request failed: %s: %s", self.name, type(exc).__name__, exc)
        return self._result(
            start,
            error="rate_limited" if rate_limit else str(exc),
            error_type=type(exc).__name__,
            rate_limit=rate_limit,
        )


class OpenAIProvider(BaseProvider):
    name = "openai"

    @property
    def model_name(self) -> str:
        return settings.openai_model or "gpt-4o-mini"

    def available(self) -> bool:
        return bool(settings.openai_api_key)

    def _get_client(self, timeout: float):
        from openai import OpenAI
        return OpenAI(api_key=settings.openai_api_key, timeout=timeout, max_retries=0)

    def run(self, prompt, *, max_tokens=1500, temperature=0.1, system_message=None, timeout=None) -> dict:
        import openai

        start = time.monotonic()
        messages = []
        if system_message:
            messages.append({"role": "system", "content": system_message})
        messages.append({"role": "user", "content": prompt})
        try:
            client = self._get_client(timeout or settings.llm_timeout_s)
            response = client.chat.completions.create(
                model=self.model_name,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=messages,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as e:
            return self._error(start, e, rate_limit=True)
        except openai.APIError as e:
            return self._error(start, e)

        usage = getattr(response, "usage", None)
        return self._result(
            start,
            content=(response.choices[0].message.content or "").strip(),
            model=getattr(response, "model", None) or self.model_name,
            input_tokens=getattr(usage, "prompt_tokens", None),
            output_tokens=getattr(usage, "completion_tokens", None),
        )


class AnthropicProvider(BaseProvider):
    name = "anthropic"

    @property
    def model_name(self) -> str:
        return settings.anthropic_model

    def available(self) -> bool:
        return bool(settings.anthropic_api_key)

    def _get_client(self, timeout: float):
        from anthropic import Anthropic
        return Anthropic(api_key=settings.anthropic_api_key, timeout=timeout, max_retries=0)

    def run(self, prompt, *, max_tokens=1500, temperature=0.1, system_message=None, timeout=None) -> dict:
        import anthropic

        start = time.monotonic()
        kwargs = {}
        if system_message:
            kwargs["system"] = system_message
        try:
            client = self._get_client(timeout or settings.llm_timeout_s)
            response = client.messages.create(
                model=self.model_name,
                max_tokens=max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except anthropic.RateLimitError as e:
            return self._error(start, e, rate_limit=True)
        except anthropic.APIError as e:
            return self._error(start, e)

        text = "".join(
            getattr(block, "text", "") for block in (response.content or []) if getattr(block, "type", "") == "text"
        )
        usage = getattr(response, "usage", None)
        return self._result(
            start,
            content=text.strip(),
            model=getattr(response, "model", None) or self.model_name,
            input_tokens=getattr(usage, "input_tokens", None),
            output_tokens=getattr(usage, "output_tokens", None),
        )


class OllamaProvider(BaseProvider):
    """Local Ollama server via its /api/generate endpoint."""

    name = "ollama"

    @property
    def model_name(self) -> str:
        return settings.ollama_model

    def available(self) -> bool:
        return bool(settings.ollama_base_url)

    def run(self, prompt, *, max_tokens=1500, temperature=0.1, system_message=None, timeout=None) -> dict:
        start = time.monotonic()
        url = f"{(settings.ollama_base_url or '').rstrip('/')}/api/generate"
        payload = {
            "model": self.model_name,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": temperature, "num_predict": max_tokens},
        }
        if system_message:
            payload["system"] = system_message
        try:
            with httpx.Client(timeout=timeout or settings.ollama_timeout_s) as client:
                resp = client.post(url, json=payload)
            if resp.status_code == 429:
                return self._error(start, httpx.HTTPStatusError("rate limited", request=resp.request, response=resp), rate_limit=True)
            resp.raise_for_status()
            data = resp.json()
        except httpx.HTTPError as e:
            return self._error(start, e)
        except ValueError as e:
            # Non-JSON body from the server
            return self._error(start, e)

        return self._result(
            start,
            content=(data.get("response") or "").strip(),
            model=data.get("model") or self.model_name,
            input_tokens=data.get("prompt_eval_count"),
            output_tokens=data.get("eval_count"),
        )


PROVIDERS = {
    OpenAIProvider.name: OpenAIProvider,
    AnthropicProvider.name: AnthropicProvider,
    OllamaProvider.name: OllamaProvider,
}


def get_provider(name: str) -> Optional[BaseProvider]:
    """Resolve a provider by name; None for unknown names."""
    cls = PROVIDERS.get((name or "").strip().lower())
    return cls() if cls else None
