from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

import openai
import requests

from config.llm_routes import ROUTES
from config.settings import Settings, get_settings
from errors import AIProviderError, AIProviderRateLimited, ConfigurationError
from utils.llm_logger import log_call, prompt_fingerprint


logger = logging.getLogger(__name__)

STUB_RESPONSE = '{"people": [], "confidence": 0.1, "summary": "stub provider"}'


class LLMClient:
    """Provider gateway: per-use-case routing, error mapping and call tracing.

    Providers:
      - openai: OpenAI SDK (any OpenAI-compatible base_url)
      - http:   raw POST to an OpenAI-compatible chat-completions URL
      - stub:   canned empty result, only when RUN_ENV=test

    Retries are owned by the analysis client, so the SDK's own retries are off.
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None) -> None:
        self.settings = settings or get_settings()
        self.session = session or requests.Session()
        self._openai: Optional[openai.OpenAI] = None

    def _provider(self, route: Dict[str, Any]) -> str:
        if not self.settings.ai_enabled:
            return "stub"
        return (route.get("provider") or self.settings.ai_provider or "stub").lower()

    def complete(
        self,
        *,
        use_case: str,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        route = ROUTES.get(use_case, {})
        provider = self._provider(route)
        op = route.get("operation", use_case)
        temp = temperature if temperature is not None else route.get("temperature")
        if temp is None:
            temp = self.settings.ai_temperature
        tokens = max_tokens or self.settings.ai_max_tokens
        prompt_hash = prompt_fingerprint(messages)

        if provider == "stub":
            if (self.settings.run_env or "").lower() != "test":
                raise ConfigurationError("Stub AI provider is only allowed when RUN_ENV=test; set AI_ENABLED=true")
            return STUB_RESPONSE
        if provider == "openai":
            model = route.get("model") or self.settings.openai_model
            send = self._complete_openai
        elif provider == "http":
            model = route.get("model") or self.settings.ai_model
            send = self._complete_http
        else:
            raise ConfigurationError(f"Provider not implemented: {provider}")

        t0 = time.time()
        try:
            content, usage = send(model, messages, temp, tokens)
        except AIProviderError as e:
            duration_ms = int((time.time() - t0) * 1000)
            log_call(
                caller=f"llm_client.complete:{use_case}",
                provider=provider,
                model=model,
                operation=op,
                prompt_hash=prompt_hash,
                duration_ms=duration_ms,
                status="rate_limited" if isinstance(e, AIProviderRateLimited) else "error",
                error=str(e),
            )
            raise
        duration_ms = int((time.time() - t0) * 1000)
        logger.info(
            "Provider response received (%d chars)",
            len(content),
            extra={"step": op, "status": "ok", "duration_ms": duration_ms, "provider": provider},
        )
        log_call(
            caller=f"llm_client.complete:{use_case}",
            provider=provider,
            model=model,
            operation=op,
            prompt_hash=prompt_hash,
            duration_ms=duration_ms,
            status="ok",
            usage=usage,
        )
        return content

    def _client(self) -> openai.OpenAI:
        if self._openai is None:
            self._openai = openai.OpenAI(
                api_key=self.settings.openai_api_key,
                base_url=self.settings.openai_base_url,
                timeout=self.settings.http_timeout_seconds,
                max_retries=0,
            )
        return self._openai

    def _complete_openai(self, model: str, messages: List[Dict[str, str]], temperature: float, max_tokens: int):
        try:
            resp = self._client().chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.RateLimitError as e:
            raise AIProviderRateLimited(original_error=e) from e
        except openai.APIStatusError as e:
            raise AIProviderError(f"AI provider error: {e.status_code}", e, status_code=e.status_code) from e
        except openai.APIError as e:
            raise AIProviderError(f"AI provider error: {e}", e) from e

        content = resp.choices[0].message.content if resp.choices else None
        if not content:
            raise AIProviderError("No response from AI provider")

        usage_obj = None
        usage = getattr(resp, "usage", None)
        if usage:
            usage_obj = {
                "prompt_tokens": getattr(usage, "prompt_tokens", None),
                "completion_tokens": getattr(usage, "completion_tokens", None),
                "total_tokens": getattr(usage, "total_tokens", None),
            }
        return content, usage_obj

    def _complete_http(self, model: str, messages: List[Dict[str, str]], temperature: float, max_tokens: int):
        try:
            response = self.session.post(
                self.settings.ai_api_url,
                headers={
                    "Authorization": f"Bearer {self.settings.ai_api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": model,
                    "messages": messages,
                    "temperature": temperature,
                    "max_tokens": max_tokens,
                },
                timeout=self.settings.http_timeout_seconds,
            )
        except requests.exceptions.RequestException as e:
            raise AIProviderError(f"Request error: {e}", e) from e

        if response.status_code == 429:
            raise AIProviderRateLimited()
        if not response.ok:
            raise AIProviderError(
                f"AI provider error: {response.status_code} {response.reason}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise AIProviderError("Failed to parse JSON from AI provider", e) from e

        choices = data.get("choices") or [{}]
        first = choices[0] or {}
        content = (first.get("message") or {}).get("content") or first.get("text") or ""
        if not content:
            raise AIProviderError("No response from AI provider")
        return content, data.get("usage")
