"""Application configuration."""
import os
from dataclasses import dataclass
from typing import Optional

from supplier_forms.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AIConfig:
    """Text-generation service configuration."""
    api_key: str
    model: str = "gpt-4o-mini"
    base_url: Optional[str] = None
    temperature: float = 0.0
    max_retries: int = 3
    retry_delay_seconds: float = 1.5
    timeout_seconds: float = 60.0
    base_tokens: int = 2000
    tokens_per_item: int = 60
    token_buffer: int = 1000
    max_output_tokens: int = 16384


@dataclass
class StoreConfig:
    """Master data store configuration."""
    backend: str = "memory"
    directory: Optional[str] = None


@dataclass
class AppConfig:
    """Web application and logging configuration."""
    log_level: str = "INFO"
    log_json: bool = False
    user_id_header: str = "X-User-Id"
    highlight_color: str = "FF3F51B5"
    max_upload_mb: int = 10

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


class Config:
    """Application configuration."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        """Drop cached sections so the environment is read again."""
        self._ai_config = None
        self._store_config = None
        self._app_config = None

    @property
    def ai(self) -> AIConfig:
        """Get text-generation configuration."""
        if self._ai_config is None:
            api_key = os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY environment variable is not set")
            self._ai_config = AIConfig(
                api_key=api_key,
                model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
                base_url=os.getenv("OPENAI_BASE_URL") or None,
                max_retries=int(os.getenv("AI_MAX_RETRIES", "3")),
                retry_delay_seconds=float(os.getenv("AI_RETRY_DELAY_SECONDS", "1.5")),
                timeout_seconds=float(os.getenv("AI_TIMEOUT_SECONDS", "60")),
                max_output_tokens=int(os.getenv("AI_MAX_OUTPUT_TOKENS", "16384")),
            )
        return self._ai_config

    @property
    def store(self) -> StoreConfig:
        """Get master data store configuration."""
        if self._store_config is None:
            self._store_config = StoreConfig(
                backend=os.getenv("MASTER_DATA_STORE", "memory").strip().lower(),
                directory=os.getenv("MASTER_DATA_DIR") or None,
            )
        return self._store_config

    @property
    def app(self) -> AppConfig:
        """Get web application configuration."""
        if self._app_config is None:
            self._app_config = AppConfig(
                log_level=os.getenv("LOG_LEVEL", "INFO").upper() or "INFO",
                log_json=_env_bool("LOG_JSON"),
                user_id_header=os.getenv("USER_ID_HEADER", "X-User-Id"),
                highlight_color=os.getenv("HIGHLIGHT_COLOR", "FF3F51B5"),
                max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "10")),
            )
        return self._app_config


# Global configuration instance
config = Config()
