from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

ENV_PREFIX = "LIGHTING_MCP_"


@dataclass(frozen=True)
class Settings:
    backend_url: str
    backend_timeout: float
    llm_base_url: str
    llm_api_key: Optional[str]
    llm_model: str
    llm_max_tokens: int
    llm_temperature: float
    llm_timeout: float
    max_prompt_fixtures: int
    unchanged_context_limit: int
    max_context_chars: int
    max_script_chars: int
    patterns_path: Optional[Path]
    recommendation_top_k: int
    transport: str
    host: str
    port: int
    log_file: Optional[Path]
    log_level: str


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(f"{ENV_PREFIX}{name}")
    if value is None or value == "":
        return default
    return value


def _env_int(name: str, default: int, minimum: int = 0) -> int:
    raw = _env(name, str(default))
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= {minimum}, got {value}")
    return value


def _env_float(name: str, default: float) -> float:
    raw = _env(name, str(default))
    try:
        value = float(raw)
    except ValueError as exc:
        raise ValueError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from exc
    if value < 0:
        raise ValueError(f"{ENV_PREFIX}{name} must be >= 0, got {value}")
    return value


def _env_path(name: str) -> Optional[Path]:
    raw = _env(name)
    return Path(raw) if raw else None


def load_settings() -> Settings:
    return Settings(
        backend_url=_env("BACKEND_URL", "http://localhost:4000/graphql"),
        backend_timeout=_env_float("BACKEND_TIMEOUT", 30.0),
        llm_base_url=_env("LLM_BASE_URL", "https://api.openai.com").rstrip("/"),
        llm_api_key=_env("LLM_API_KEY", os.getenv("OPENAI_API_KEY") or None),
        llm_model=_env("LLM_MODEL", "gpt-4"),
        llm_max_tokens=_env_int("LLM_MAX_TOKENS", 2048, minimum=1),
        llm_temperature=_env_float("LLM_TEMPERATURE", 0.3),
        llm_timeout=_env_float("LLM_TIMEOUT", 120.0),
        max_prompt_fixtures=_env_int("MAX_PROMPT_FIXTURES", 15, minimum=1),
        unchanged_context_limit=_env_int("UNCHANGED_CONTEXT_LIMIT", 5),
        max_context_chars=_env_int("MAX_CONTEXT_CHARS", 4000, minimum=1),
        max_script_chars=_env_int("MAX_SCRIPT_CHARS", 12000, minimum=1),
        patterns_path=_env_path("PATTERNS_PATH"),
        recommendation_top_k=_env_int("RECOMMENDATION_TOP_K", 3, minimum=1),
        transport=_env("TRANSPORT", "stdio"),
        host=_env("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8090, minimum=1),
        log_file=_env_path("LOG_FILE"),
        log_level=_env("LOG_LEVEL", "INFO").upper(),
    )
