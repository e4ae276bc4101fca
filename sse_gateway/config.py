"""
Configuration Management Module

Configures gateway parameters via environment variables or .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Gateway Configuration Class

    All configuration items can be overridden by environment variables, with names matching fields (uppercase).
    """

    # Application Config
    APP_NAME: str = "SSE Gateway"
    DEBUG: bool = False
    # Overrides the level derived from DEBUG (e.g. "WARNING")
    LOG_LEVEL: Optional[str] = None

    # Gateway data file (accounts + combos, JSON)
    GATEWAY_DATA_FILE: Optional[str] = None

    # HTTP Client Config
    # Request timeout (seconds)
    HTTP_TIMEOUT: int = 600

    # Account Cooldown Config (ms)
    COOLDOWN_REQUEST_NOT_ALLOWED_MS: int = 5_000
    COOLDOWN_UNAUTHORIZED_MS: int = 120_000
    COOLDOWN_PAYMENT_REQUIRED_MS: int = 120_000
    COOLDOWN_NOT_FOUND_MS: int = 3_600_000
    COOLDOWN_TRANSIENT_MS: int = 30_000

    # Rate limit backoff: base * 2^level, capped at max
    BACKOFF_BASE_MS: int = 1_000
    BACKOFF_MAX_MS: int = 120_000
    BACKOFF_MAX_LEVEL: int = 15

    # Executor Retry Config
    # Longest upstream-advertised wait honoured on the same URL (ms)
    EXECUTOR_MAX_RETRY_AFTER_MS: int = 5_000
    # Automatic 429 retries per URL when no wait could be derived
    EXECUTOR_MAX_AUTO_RETRIES: int = 2
    # Same-URL retries per URL when the upstream advertises a short wait
    EXECUTOR_MAX_RETRY_AFTER_RETRIES: int = 3

    # Provider Endpoints
    # Antigravity base URLs, tried in order
    ANTIGRAVITY_BASE_URLS: list[str] = [
        "https://daily-cloudcode-pa.sandbox.googleapis.com",
        "https://daily-cloudcode-pa.googleapis.com",
        "https://cloudcode-pa.googleapis.com",
    ]
    ANTIGRAVITY_USER_AGENT: str = "antigravity/1.104.0 darwin/arm64"
    ANTIGRAVITY_DEFAULT_SYSTEM: str = (
        "You are Antigravity, a powerful agentic AI coding assistant designed by the "
        "Google Deepmind team working on Advanced Agentic Coding."
    )
    GEMINI_CLI_BASE_URL: str = "https://cloudcode-pa.googleapis.com"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com"
    CLAUDE_BASE_URL: str = "https://api.anthropic.com"
    CLAUDE_API_VERSION: str = "2023-06-01"
    # Prepended to the system prompt of requests sent to these providers
    CLAUDE_SYSTEM_PREFIX: str = ""
    CLAUDE_SYSTEM_PREFIX_PROVIDERS: list[str] = ["claude"]
    OPENAI_BASE_URL: str = "https://api.openai.com"
    OPENAI_RESPONSES_BASE_URL: str = "https://api.openai.com"

    # OAuth Config
    GOOGLE_TOKEN_URL: str = "https://oauth2.googleapis.com/token"
    ANTIGRAVITY_CLIENT_ID: str = ""
    ANTIGRAVITY_CLIENT_SECRET: str = ""
    GEMINI_CLI_CLIENT_ID: str = ""
    GEMINI_CLI_CLIENT_SECRET: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get gateway configuration (Singleton)

    Uses lru_cache to ensure configuration is loaded only once.

    Returns:
        Settings: Gateway configuration instance
    """
    return Settings()
