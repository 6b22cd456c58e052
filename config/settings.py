"""Application settings."""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field

PROJECT_ROOT = Path(__file__).resolve().parent.parent


class Settings(BaseModel):
    """Application configuration settings.

    Any field not passed explicitly is read from the upper-cased environment
    variable of the same name (``DAILY_QUOTA``, ``LLM_PROVIDER``, ...).
    """

    # Data sources
    books_path: str = "data/books.json"
    portfolio_path: str = "data/portfolio.json"
    signatures_path: str = "data/signatures.yaml"

    # LLM Provider settings
    llm_provider: str = "openai"  # "openai" or "anthropic"
    llm_model: Optional[str] = None  # Primary (generate) tier override
    assist_model: Optional[str] = None  # Cheaper assist tier override

    # API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Generation
    generate_temperature: float = 0.2
    generate_max_tokens: int = 2048
    assist_temperature: float = 0.2
    assist_max_tokens: int = 256
    max_tool_iterations: int = 4

    # Timeouts and retry
    call_timeout_seconds: float = 30.0
    request_timeout_seconds: float = 90.0
    max_retries: int = 2
    retry_backoff_seconds: float = 0.5

    # Input handling
    max_message_length: int = 250
    unicode_form: str = "NFC"
    supported_languages: list[str] = Field(default_factory=lambda: ["ja", "en"])
    default_language: str = "en"

    # Sessions
    app_name: str = "talking_bookshelf"
    session_backend: str = "memory"  # "memory" or "sqlite"
    db_path: str = "data/sessions.db"
    recent_turns_to_keep: int = 3  # Full user/assistant exchanges kept on compaction
    transcript_turn_chars: int = 500

    # Rate limiting
    rate_limit_per_second: float = 1.0
    rate_limit_burst: int = 3
    daily_quota: int = 1000
    quota_timezone: str = "America/Los_Angeles"  # Provider quota resets at midnight PT

    # Server
    env: str = "development"
    host: str = "0.0.0.0"
    port: int = 8080
    allowed_origins: str = ""  # Comma-separated
    forwarded_allow_ips: str = "127.0.0.1"  # Proxies trusted for X-Forwarded-For

    # Logging
    verbose: bool = False

    def __init__(self, **data):
        # Fill unset scalar fields from the environment
        for name, field in type(self).model_fields.items():
            if data.get(name) is not None or field.annotation == list[str]:
                continue
            env_value = os.environ.get(name.upper())
            if env_value not in (None, ""):
                data[name] = env_value

        super().__init__(**data)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured LLM provider."""
        if self.llm_provider == "openai":
            return self.openai_api_key
        elif self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return None

    def get_allowed_origins(self) -> list[str]:
        """CORS origins: dev server outside production plus configured extras."""
        origins = []
        if self.env != "production":
            origins.append("http://localhost:5173")
        origins.extend(o.strip() for o in self.allowed_origins.split(",") if o.strip())
        return origins

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def resolve_path(self, value: str) -> Path:
        """Relative data paths resolve against the project root, not the cwd."""
        path = Path(value)
        if path.is_absolute():
            return path
        return PROJECT_ROOT / path
