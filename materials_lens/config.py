import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from materials_lens.constants import (
    DEFAULT_CACHE_PATH,
    DEFAULT_MODELS,
    DEFAULT_PROMPT,
    DEFAULT_REQUEST_TIMEOUT,
    PROVIDER_CLAUDE,
    PROVIDER_GEMINI,
    PROVIDER_OPENAI,
    PROVIDERS,
)
from materials_lens.errors import ConfigurationError

API_KEY_VARS = {
    PROVIDER_GEMINI: "GEMINI_API_KEY",
    PROVIDER_OPENAI: "OPENAI_API_KEY",
    PROVIDER_CLAUDE: "ANTHROPIC_API_KEY",
}

TRUTHY = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Config:
    provider: str
    api_key: Optional[str]
    model_id: str
    base_prompt: str
    cache_path: Path
    request_timeout: float
    log_level: str
    log_raw_response: bool

    @classmethod
    def from_env(cls, provider: Optional[str] = None) -> "Config":
        load_dotenv()

        raw_provider = provider or os.getenv("LENS_PROVIDER", PROVIDER_GEMINI)
        normalized = raw_provider.strip().lower()
        api_key = os.getenv(API_KEY_VARS.get(normalized, ""), "") or None
        model_id = os.getenv("LENS_MODEL") or DEFAULT_MODELS.get(normalized, "")
        base_prompt = os.getenv("LENS_PROMPT") or DEFAULT_PROMPT
        cache_path = os.getenv("LENS_CACHE_PATH") or str(DEFAULT_CACHE_PATH)
        raw_timeout = os.getenv("LENS_REQUEST_TIMEOUT", str(DEFAULT_REQUEST_TIMEOUT))
        log_level = os.getenv("LOG_LEVEL", "INFO")
        log_raw = os.getenv("LENS_LOG_RAW_RESPONSE", "false")

        return cls._validate(
            provider=normalized,
            api_key=api_key,
            model_id=model_id,
            base_prompt=base_prompt,
            cache_path=Path(cache_path).expanduser(),
            raw_timeout=raw_timeout,
            log_level=log_level,
            log_raw_response=log_raw.strip().lower() in TRUTHY,
        )

    @staticmethod
    def _validate(
        provider: str,
        api_key: Optional[str],
        model_id: str,
        base_prompt: str,
        cache_path: Path,
        raw_timeout: str,
        log_level: str,
        log_raw_response: bool,
    ) -> "Config":
        match provider:
            case p if p in PROVIDERS:
                pass
            case _:
                raise ConfigurationError(
                    f"LENS_PROVIDER must be one of {', '.join(PROVIDERS)} (got {provider!r})"
                )

        try:
            timeout = float(raw_timeout)
        except ValueError as exc:
            raise ConfigurationError(
                f"LENS_REQUEST_TIMEOUT must be a number of seconds (got {raw_timeout!r})"
            ) from exc
        match timeout:
            case t if t > 0:
                pass
            case _:
                raise ConfigurationError("LENS_REQUEST_TIMEOUT must be positive")

        return Config(
            provider=provider,
            api_key=api_key,
            model_id=model_id,
            base_prompt=base_prompt,
            cache_path=cache_path,
            request_timeout=timeout,
            log_level=log_level,
            log_raw_response=log_raw_response,
        )
