from __future__ import annotations

import logging
import os
from typing import List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from prom2grafana.errors import ConfigError

log = logging.getLogger(__name__)

DEFAULT_API_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-2.5-flash"
DEFAULT_PORT = 8080
DEFAULT_WORKERS = 8

_LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}


class Settings(BaseModel):
    """Process configuration, snapshotted from the environment once at startup."""

    model_config = ConfigDict(frozen=True)

    api_key: str
    api_url: str = DEFAULT_API_URL
    model: str = DEFAULT_MODEL
    models: Tuple[str, ...] = ()
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    log_level: str = "info"
    allow_origins: Tuple[str, ...] = ("*",)
    workers: int = Field(default=DEFAULT_WORKERS, ge=1)

    def models_to_try(self) -> List[str]:
        """Fallback order: the multi-model list wins, else the single model."""
        if self.models:
            return list(self.models)
        return [self.model or DEFAULT_MODEL]


def _split_csv(raw: str) -> Tuple[str, ...]:
    return tuple(p.strip() for p in raw.split(",") if p.strip())


def _get(env: Mapping[str, str], key: str) -> str:
    return (env.get(key) or "").strip()


def _parse_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = _get(env, key)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def _parse_log_level(raw: str) -> str:
    level = (raw or "info").lower()
    if level == "warn":
        level = "warning"
    if level not in _LOG_LEVELS:
        log.warning("config: unknown LOG_LEVEL=%r, using info", raw)
        return "info"
    return level


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from `env` (defaults to os.environ).

    Raises ConfigError when OPENAI_API_KEY is missing so the process fails
    before it starts serving traffic.
    """
    if env is None:
        env = os.environ

    api_key = _get(env, "OPENAI_API_KEY")
    if not api_key:
        raise ConfigError("OPENAI_API_KEY is not configured")

    workers = _parse_int(env, "CONVERT_WORKERS", DEFAULT_WORKERS)
    if workers < 1:
        raise ConfigError(f"CONVERT_WORKERS must be at least 1, got {workers}")

    return Settings(
        api_key=api_key,
        api_url=(_get(env, "OPENAI_API_URL") or DEFAULT_API_URL).rstrip("/"),
        model=_get(env, "OPENAI_MODEL") or DEFAULT_MODEL,
        models=_split_csv(_get(env, "OPENAI_MODELS")),
        host=_get(env, "HOST") or "0.0.0.0",
        port=_parse_int(env, "PORT", DEFAULT_PORT),
        log_level=_parse_log_level(_get(env, "LOG_LEVEL")),
        allow_origins=_split_csv(_get(env, "ALLOW_ORIGINS")) or ("*",),
        workers=workers,
    )


def setup_logging(settings: Settings) -> None:
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )
    else:
        logging.getLogger().setLevel(settings.log_level.upper())
