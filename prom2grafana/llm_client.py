from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, List, Optional

import requests

from prom2grafana.config import Settings
from prom2grafana.errors import (
    AllModelsFailedError,
    ConfigError,
    GenerationError,
    GenerationTimeout,
    ProviderError,
    ResponseParseError,
)
from prom2grafana.llm_parsing import parse_dashboard_response
from prom2grafana.models import DashboardResponse, response_json_schema
from prom2grafana.prompts import SYSTEM_PROMPT

log = logging.getLogger(__name__)

TEMPERATURE = 0.1
# 64k tokens for larger dashboards
MAX_TOKENS = 65536
SCHEMA_NAME = "dashboard_generator"
# Used only when the caller gives no deadline
LLM_TIMEOUT_SECS = 30.0
APP_TITLE = "prom2grafana"
READ_CHUNK_BYTES = 64 * 1024


def _remaining(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return deadline - time.monotonic()


class LLMClient:
    """Chat-completion client that walks the configured models until one works.

    Holds a long-lived `requests.Session`; nothing on the instance changes
    after construction, so one client is shared by all requests.
    """

    def __init__(
        self,
        settings: Settings,
        system_prompt: str = SYSTEM_PROMPT,
        session: Optional[requests.Session] = None,
    ):
        if not settings.api_key:
            raise ConfigError("OPENAI_API_KEY is not configured")
        self._settings = settings
        self._system_prompt = system_prompt
        self._session = session if session is not None else requests.Session()
        self._endpoint = f"{settings.api_url.rstrip('/')}/chat/completions"
        self._schema = response_json_schema()
        self._headers = {
            "Authorization": f"Bearer {settings.api_key}",
            "Content-Type": "application/json",
            "X-Title": APP_TITLE,
        }

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def models_to_try(self) -> List[str]:
        return self._settings.models_to_try()

    def status(self) -> Dict[str, Any]:
        return {
            "provider": "openai-compatible",
            "base_url": self._settings.api_url,
            "models": self.models_to_try(),
            "has_token": bool(self._settings.api_key),
        }

    def build_request(self, model: str, metrics: str) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": self._system_prompt},
                {"role": "user", "content": metrics},
            ],
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": SCHEMA_NAME,
                    "schema": self._schema,
                    "strict": False,
                },
            },
        }

    def generate_dashboard(self, metrics: str, deadline: Optional[float] = None) -> DashboardResponse:
        """Return the first usable dashboard from the configured models.

        `deadline` is a `time.monotonic()` timestamp. Raises GenerationTimeout
        once it passes and AllModelsFailedError when every model failed.
        """
        models = self.models_to_try()
        log.info("llm.generate: models configured for fallback models=%s", models)
        return self._try_models_with_fallback(models, metrics, deadline)

    def _try_models_with_fallback(
        self, models: List[str], metrics: str, deadline: Optional[float]
    ) -> DashboardResponse:
        last_error: Optional[GenerationError] = None
        attempted: List[str] = []

        for model in models:
            timeout = _remaining(deadline)
            if timeout is not None and timeout <= 0:
                log.warning("llm.generate: deadline passed before model=%s attempted=%s", model, attempted)
                raise GenerationTimeout(attempted, last_error)

            attempted.append(model)
            log.info("llm.attempt: trying model=%s max_tokens=%d", model, MAX_TOKENS)
            start = time.monotonic()
            try:
                result = self._call_model(model, metrics, deadline)
            except GenerationError as exc:
                dur_ms = int((time.monotonic() - start) * 1000)
                log.warning("llm.attempt: model failed model=%s duration_ms=%d err=%s", model, dur_ms, exc)
                last_error = exc
                continue

            dur_ms = int((time.monotonic() - start) * 1000)
            log.info("llm.attempt: model succeeded model=%s duration_ms=%d", model, dur_ms)
            return result

        remaining = _remaining(deadline)
        if remaining is not None and remaining <= 0:
            raise GenerationTimeout(attempted, last_error)
        raise AllModelsFailedError(attempted, last_error)

    def _read_body(self, resp: requests.Response, model: str, deadline: Optional[float]) -> bytes:
        """Read a streamed body, giving up once the deadline passes.

        The HTTP timeout only bounds each socket read, so a provider that
        trickles bytes is cut off here instead.
        """
        buf = bytearray()
        try:
            for chunk in resp.iter_content(chunk_size=READ_CHUNK_BYTES):
                buf.extend(chunk)
                remaining = _remaining(deadline)
                if remaining is not None and remaining <= 0:
                    raise ProviderError(f"deadline exceeded while reading response from model {model}")
        except requests.RequestException as exc:
            raise ProviderError(f"reading response from model {model} failed: {exc!r}") from exc
        finally:
            resp.close()
        return bytes(buf)

    def _call_model(self, model: str, metrics: str, deadline: Optional[float]) -> DashboardResponse:
        body = self.build_request(model, metrics)
        timeout = _remaining(deadline)
        try:
            resp = self._session.post(
                self._endpoint,
                headers=self._headers,
                json=body,
                timeout=timeout if timeout is not None else LLM_TIMEOUT_SECS,
                stream=True,
            )
        except requests.RequestException as exc:
            raise ProviderError(f"request to model {model} failed: {exc!r}") from exc

        raw = self._read_body(resp, model, deadline)
        if resp.status_code != 200:
            text = raw[:400].decode("utf-8", errors="replace")
            raise ProviderError(f"HTTP {resp.status_code} from model {model}: {text}")

        try:
            data = json.loads(raw)
        except ValueError as exc:
            raise ProviderError(f"non-JSON HTTP body from model {model}") from exc
        if not isinstance(data, dict):
            raise ProviderError(f"unexpected HTTP body from model {model}")

        choices = data.get("choices")
        if not choices:
            # OpenRouter reports upstream failures as a 200 with an error object
            err = data.get("error")
            if err:
                raise ProviderError(f"no response from model {model}: {err}")
            raise ProviderError(f"no response from model {model}")

        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str):
            raise ResponseParseError(f"empty message content from model {model}")
        log.debug("llm.attempt: response received model=%s response_length=%d", model, len(content))

        try:
            parsed = parse_dashboard_response(content)
        except ResponseParseError as exc:
            raise ResponseParseError(f"failed to parse response from {model}: {exc}") from exc

        if not parsed.grafana_dashboard.strip():
            raise ResponseParseError(f"empty dashboard from model {model}")
        return parsed
