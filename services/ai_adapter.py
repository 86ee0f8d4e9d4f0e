# ──────────────────────────────────────────────────────────────────────────────
# File: services/ai_adapter.py
# ──────────────────────────────────────────────────────────────────────────────
"""
Single entry point for model completions.

Providers are tried in priority order (OpenAI-compatible HTTP first, Gemini
SDK as fallback); the first success wins. Every call appends one JSON line
to the AI log with the request shape, raw response, provider and duration.
"""
from __future__ import annotations
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import requests

from config import Settings
from services.errors import ProviderFailure

logger = logging.getLogger(__name__)

Message = Dict[str, str]
PromptInput = Union[str, Sequence[Message]]

NO_PROVIDER_MESSAGE = "No AI provider configured"

ROLE_LABELS = {
    "system": "Instruction",
    "user": "User",
    "assistant": "Assistant",
}


class ProviderError(Exception):
    """A single provider attempt failed."""
    pass


def to_messages(prompt: PromptInput) -> List[Message]:
    if isinstance(prompt, str):
        return [{"role": "user", "content": prompt}]
    return [{"role": m["role"], "content": m["content"]} for m in prompt]


def flatten_prompt(prompt: PromptInput) -> str:
    """Collapse a conversation into one text prompt for single-turn APIs."""
    if isinstance(prompt, str):
        return prompt
    return "\n\n".join(
        f"{ROLE_LABELS.get(m['role'], 'Assistant')}: {m['content']}" for m in prompt
    )


class OpenAICompatibleProvider:
    """Chat completions over plain HTTP against any OpenAI-style endpoint."""

    name = "OpenAI-Compatible"
    label = "Primary provider"

    def __init__(self, api_key: Optional[str], base_url: str, model: str,
                 temperature: float = 0.7, timeout: int = 60):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def describe(self) -> Dict[str, Any]:
        return {"model": self.model, "base_url": self.base_url}

    def attempt(self, prompt: PromptInput, record: Dict[str, Any]) -> str:
        body = {
            "model": self.model,
            "messages": to_messages(prompt),
            "temperature": self.temperature,
        }
        record["request"]["rawRequestBody"] = body

        resp = requests.post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json=body,
            timeout=self.timeout,
        )
        data = resp.json()
        record["rawResponse"] = data

        if not isinstance(data, dict):
            raise ProviderError("Unexpected response body")
        if data.get("error") or data.get("message"):
            error = data.get("error")
            detail = error.get("message") if isinstance(error, dict) else error
            raise ProviderError(detail or data.get("message") or "API returned an error")

        choices = data.get("choices") or []
        if not choices:
            raise ProviderError("Response contained no choices")
        content = (choices[0].get("message") or {}).get("content")
        text = (content or "").strip()
        if not text:
            raise ProviderError("Empty response")
        return text


class GeminiProvider:
    """Google Gemini through the google-genai SDK."""

    name = "Gemini-SDK"
    label = "Fallback provider"

    def __init__(self, api_key: Optional[str], model: str, timeout: int = 60, client=None):
        self.model = model
        self._client = client
        if self._client is None and api_key:
            from google import genai
            from google.genai import types

            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(timeout=timeout * 1000),
            )

    @property
    def configured(self) -> bool:
        return self._client is not None

    def describe(self) -> Dict[str, Any]:
        return {"model": self.model}

    def attempt(self, prompt: PromptInput, record: Dict[str, Any]) -> str:
        text_prompt = flatten_prompt(prompt)
        record["request"]["fallbackPrompt"] = text_prompt

        response = self._client.models.generate_content(model=self.model, contents=text_prompt)
        dump = getattr(response, "model_dump", None)
        record["rawResponse"] = dump(mode="json", exclude_none=True) if callable(dump) else str(response)

        text = (response.text or "").strip()
        if not text:
            raise ProviderError("Empty response")
        return text


class AILogWriter:
    """Appends one JSON object per AI call to a log file, best effort."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, entry: Dict[str, Any]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(entry, ensure_ascii=False, default=str) + "\n")
        except Exception as e:
            logger.error(f"Failed to write AI log entry: {e}")


class AIAdapter:
    """Resolves a completion from the first provider that succeeds."""

    def __init__(self, providers: List[Any], log_writer: Optional[AILogWriter] = None):
        self.providers = providers
        self.log_writer = log_writer

    @property
    def configured(self) -> bool:
        return any(p.configured for p in self.providers)

    def call_ai(self, prompt: PromptInput) -> str:
        start = time.monotonic()
        errors: List[str] = []
        result: Optional[str] = None
        record: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request": {
                "providerConfig": {p.name: p.describe() for p in self.providers},
            },
        }

        for provider in self.providers:
            if not provider.configured:
                continue
            logger.info(f"Trying AI provider: {provider.name}")
            try:
                result = provider.attempt(prompt, record)
            except Exception as e:
                logger.warning(f"AI provider '{provider.name}' failed: {e}")
                errors.append(f"{provider.label} failed: {e}")
                continue
            record["provider"] = provider.name
            break

        record["duration"] = f"{int((time.monotonic() - start) * 1000)}ms"

        if result:
            record["finalAnswer"] = result
            self._log(record)
            return result

        final_error = "; ".join(errors) if errors else NO_PROVIDER_MESSAGE
        record["error"] = final_error
        self._log(record)
        raise ProviderFailure(final_error)

    def _log(self, record: Dict[str, Any]) -> None:
        if self.log_writer is None:
            return
        try:
            self.log_writer.write(record)
        except Exception as e:
            logger.error(f"AI log writer raised: {e}")


def build_ai_adapter(settings: Settings) -> AIAdapter:
    """Wire the providers in priority order from settings."""
    providers = [
        OpenAICompatibleProvider(
            api_key=settings.openai_api_key,
            base_url=settings.openai_base_url,
            model=settings.openai_model,
            temperature=settings.ai_temperature,
            timeout=settings.ai_timeout_seconds,
        ),
        GeminiProvider(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.ai_timeout_seconds,
        ),
    ]
    adapter = AIAdapter(providers, AILogWriter(settings.ai_log_path))
    if not adapter.configured:
        logger.warning("No AI provider configured; AI features are disabled")
    return adapter
