"""
Service configuration with built-in defaults and merge semantics.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Optional

DEFAULT_CURRENCY = "USD"
DEFAULT_LANGUAGE = "en"
DEFAULT_TIMEZONE = "UTC"
DEFAULT_VISION_MODEL = "gpt-4o"
DEFAULT_COMPLETION_MODEL = "gpt-4o"
DEFAULT_MAX_TOKENS = 4096
DEFAULT_TEMPERATURE = 0.1  # low temperature for consistent extraction
DEFAULT_TIMEOUT = 60.0  # seconds


@dataclass(frozen=True)
class ServiceConfig:
    """
    Configuration for the extraction service.

    Unset fields are "" / 0 / None. Call with_defaults() to fill them in;
    merge_config() treats unset fields of a patch as absent.
    """
    api_key: str = ""
    default_currency: str = ""
    default_language: str = ""
    default_timezone: str = ""
    vision_model: str = ""
    completion_model: str = ""
    max_tokens: int = 0
    temperature: Optional[float] = None
    base_url: str = ""
    timeout: float = 0.0

    def with_defaults(self) -> "ServiceConfig":
        """Return a copy with built-in defaults for every unset field."""
        return replace(
            self,
            api_key=self.api_key or os.getenv("OPENAI_API_KEY", ""),
            default_currency=self.default_currency or DEFAULT_CURRENCY,
            default_language=self.default_language or DEFAULT_LANGUAGE,
            default_timezone=self.default_timezone or DEFAULT_TIMEZONE,
            vision_model=self.vision_model or DEFAULT_VISION_MODEL,
            completion_model=self.completion_model or DEFAULT_COMPLETION_MODEL,
            max_tokens=self.max_tokens or DEFAULT_MAX_TOKENS,
            temperature=DEFAULT_TEMPERATURE if self.temperature is None else self.temperature,
            timeout=self.timeout or DEFAULT_TIMEOUT,
        )

    @classmethod
    def from_env(cls) -> "ServiceConfig":
        """Read configuration from environment variables (unset ones stay unset)."""
        return cls(
            api_key=os.getenv("OPENAI_API_KEY", ""),
            default_currency=os.getenv("RECEIPT_DEFAULT_CURRENCY", ""),
            default_language=os.getenv("RECEIPT_DEFAULT_LANGUAGE", ""),
            default_timezone=os.getenv("RECEIPT_DEFAULT_TIMEZONE", ""),
            vision_model=os.getenv("OPENAI_VISION_MODEL", ""),
            base_url=os.getenv("OPENAI_BASE_URL", ""),
        )


def _is_present(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, int):
        return value > 0
    return True


def merge_config(current: ServiceConfig, patch: ServiceConfig) -> ServiceConfig:
    """
    Return a new config where every field present in patch overrides current.

    Neither argument is modified.
    """
    updates = {}
    for f in fields(ServiceConfig):
        value = getattr(patch, f.name)
        if f.name == "timeout":
            if value and value > 0:
                updates[f.name] = value
        elif f.name == "temperature":
            # 0.0 is a valid temperature; negatives are ignored
            if value is not None and value >= 0:
                updates[f.name] = value
        elif _is_present(value):
            updates[f.name] = value
    return replace(current, **updates)
