"""
Provider chain runner: try LLM providers in order until one gives an accepted result.

Calls are sequential. A provider that errors, is rate limited, raises, or
returns a response the caller's ``accept`` predicate rejects is skipped; the
next provider in the chain is tried. There is no retry of the same provider.
Every attempt is written to the API log.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..llm_providers import BaseProvider, get_provider
from .api_logger import ApiLogger
from .notifier import ErrorNotifier, notifier as default_notifier
from .response_parser import parse_extraction_response, populated_fields

logger = logging.getLogger(__name__)

NO_ACCEPTABLE_RESULT = "no provider produced an acceptable result"

Parser = Callable[[Optional[str]], Optional[dict]]
Acceptor = Callable[[dict], bool]


def confidence_at_least(threshold: float) -> Acceptor:
    """Accept parsed data whose confidence_score is absent or >= threshold."""
    def accept(parsed: dict) -> bool:
        score = parsed.get("confidence_score")
        return score is None or score >= threshold
    return accept


class ProviderRunner:
    def __init__(
        self,
        db: Optional[Session],
        *,
        operation_type: str,
        signal_id: Optional[int] = None,
        provider_chain: Optional[Iterable[str]] = None,
        provider_for: Callable[[str], Optional[BaseProvider]] = get_provider,
        notifier: Optional[ErrorNotifier] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ):
        self.db = db
        self.operation_type = operation_type
        self.signal_id = signal_id
        self.provider_chain = list(provider_chain if provider_chain is not None else settings.llm_provider_chain)
        self.provider_for = provider_for
        self.notifier = notifier or default_notifier
        self.max_tokens = max_tokens or settings.extraction_max_tokens
        self.temperature = settings.extraction_temperature if temperature is None else temperature
        self.timeout = timeout or settings.llm_timeout_s
        self.api_logger = ApiLogger(db, operation_type=operation_type, signal_id=signal_id)

    def run(
        self,
        prompt: str,
        *,
        accept: Acceptor,
        system_message: Optional[str] = None,
        parse: Parser = parse_extraction_response,
    ) -> dict:
        """
        Returns {success: True, data, provider, model, llm_api_log_id, latency_ms}
        or {success: False, error}.
        """
        for provider_name in self.provider_chain:
            provider = self.provider_for(provider_name)
            if provider is None or not provider.available():
                logger.debug("[ProviderRunner] %s unavailable, skipping", provider_name)
                continue

            logger.info("[ProviderRunner] %s: trying provider %s", self.operation_type, provider_name)
            start = time.monotonic()
            try:
                response = provider.run(
                    prompt,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system_message=system_message,
                    timeout=self.timeout,
                )
                latency_ms = response.get("latency_ms") or int(round((time.monotonic() - start) * 1000))
                model = response.get("model") or provider.model_name

                if response.get("rate_limit"):
                    self._log(provider_name, model, "rate_limited", response, latency_ms, prompt,
                              error=response.get("error") or "rate_limited")
                    logger.warning("[ProviderRunner] %s rate limited", provider_name)
                    continue

                if response.get("error"):
                    self._log(provider_name, model, "error", response, latency_ms, prompt,
                              error=response["error"], error_type=response.get("error_type"))
                    logger.warning("[ProviderRunner] %s error: %s", provider_name, response["error"])
                    continue

                parsed = parse(response.get("content"))
                confidence = parsed.get("confidence_score") if parsed else None
                accepted = parsed is not None and accept(parsed)
                log = self._log(
                    provider_name, model, "success" if accepted else "rejected", response, latency_ms, prompt,
                    confidence=confidence, extracted_fields=populated_fields(parsed),
                    error=None if accepted else ("unparseable response" if parsed is None else "below confidence threshold"),
                )

                if not accepted:
                    logger.warning(
                        "[ProviderRunner] %s result rejected (confidence: %s)", provider_name, confidence
                    )
                    continue

                logger.info(
                    "[ProviderRunner] %s accepted from %s (confidence: %s, %sms)",
                    self.operation_type, provider_name, confidence, latency_ms,
                )
                return {
                    "success": True,
                    "data": parsed,
                    "provider": provider_name,
                    "model": model,
                    "llm_api_log_id": log.id if log is not None else None,
                    "latency_ms": latency_ms,
                }
            except Exception as e:
                latency_ms = int(round((time.monotonic() - start) * 1000))
                logger.warning("[ProviderRunner] %s failed (%sms): %s", provider_name, latency_ms, e)
                self._log(provider_name, provider.model_name, "error", {}, latency_ms, prompt,
                          error=str(e), error_type=type(e).__name__)
                self.notifier.notify_ai_error(
                    e,
                    operation=self.operation_type,
                    provider=provider_name,
                    model=provider.model_name,
                    signal_id=self.signal_id,
                    severity="warning",
                    processing_time_ms=latency_ms,
                )
                continue

        logger.warning("[ProviderRunner] %s: %s", self.operation_type, NO_ACCEPTABLE_RESULT)
        return {"success": False, "error": NO_ACCEPTABLE_RESULT}

    def _log(self, provider_name, model, status, response, latency_ms, prompt, **fields):
        return self.api_logger.record(
            provider=provider_name,
            model=model,
            status=status,
            latency_ms=latency_ms,
            input_tokens=response.get("input_tokens"),
            output_tokens=response.get("output_tokens"),
            prompt_chars=len(prompt or ""),
            **fields,
        )
