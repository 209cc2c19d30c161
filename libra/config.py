"""Settings loaded from the environment (and a ``.env`` file, if present)."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from .errors import ConfigError
from .result import Err, Ok, Result

DEFAULT_LLM_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "google/gemini-2.0-flash-001"
DEFAULT_HTTP_TIMEOUT = 10.0
DEFAULT_LLM_TIMEOUT = 30.0


@dataclass(frozen=True)
class Settings:
    supabase_url: str | None
    supabase_key: str | None
    access_token: str | None
    llm_api_key: str | None
    llm_base_url: str = DEFAULT_LLM_BASE_URL
    model: str = DEFAULT_MODEL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    llm_timeout: float = DEFAULT_LLM_TIMEOUT

    @property
    def has_store(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> Result["Settings", ConfigError]:
        """Read LIBRA_*, SUPABASE_* and OPENROUTER_API_KEY from the environment."""
        load_dotenv()

        def _opt(name: str) -> str | None:
            match os.getenv(name):
                case str(value) if value.strip():
                    return value.strip()
                case _:
                    return None

        timeouts: dict[str, float] = {}
        for name, default in (
            ("LIBRA_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
            ("LIBRA_LLM_TIMEOUT", DEFAULT_LLM_TIMEOUT),
        ):
            raw = _opt(name)
            if raw is None:
                timeouts[name] = default
                continue
            try:
                value = float(raw)
            except ValueError:
                return Err(ConfigError(f"{name} must be a number of seconds, got {raw!r}"))
            if value <= 0:
                return Err(ConfigError(f"{name} must be positive, got {raw!r}"))
            timeouts[name] = value

        return Ok(
            cls(
                supabase_url=_opt("SUPABASE_URL"),
                supabase_key=_opt("SUPABASE_ANON_KEY"),
                access_token=_opt("LIBRA_ACCESS_TOKEN"),
                llm_api_key=_opt("OPENROUTER_API_KEY"),
                llm_base_url=_opt("LIBRA_LLM_BASE_URL") or DEFAULT_LLM_BASE_URL,
                model=_opt("LIBRA_MODEL") or DEFAULT_MODEL,
                http_timeout=timeouts["LIBRA_HTTP_TIMEOUT"],
                llm_timeout=timeouts["LIBRA_LLM_TIMEOUT"],
            )
        )
