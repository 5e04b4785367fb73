"""Centralized application settings loaded from environment variables.

All configuration is defined once here. Other modules should import
``get_settings()`` rather than calling ``os.getenv()`` directly.
"""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables.

    Field names are **lowercased** versions of the env-var names.
    ``pydantic-settings`` maps them automatically (case-insensitive).

    Example::

        settings = Settings()  # reads .env + real env
        model = settings.openai_model
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- Chat completion ---------------------------------------------------

    openai_base_url: str = ""
    """Default OpenAI-compatible base URL. LLM nodes may override it."""

    openai_api_key: str = ""
    """Default API key. LLM nodes may override it."""

    openai_model: str = "gpt-4o-mini"
    """Default model (or Azure deployment) name."""

    openai_temperature: float = 0.2
    """Sampling temperature used when a node does not set one."""

    azure_openai_api_version: str = "2024-06-01"
    """API version sent to Azure OpenAI hosts."""

    # -- SQL ---------------------------------------------------------------

    sql_connection_string: str = ""
    """ODBC connection string for the query database."""

    sql_use_azure_ad: bool = False
    """Authenticate to Azure SQL with an Azure AD access token."""

    azure_client_id: str | None = None
    """Managed-identity client ID (None → system-assigned)."""

    # -- Workflow node limits ----------------------------------------------

    workflow_db_max_rows: int = 1000
    """Row cap applied to database query nodes."""

    workflow_db_timeout_seconds: int = 30
    """Statement timeout applied to database query nodes."""

    api_call_timeout_seconds: float | None = 100.0
    """HTTP client timeout for API call nodes (None → no timeout)."""

    # -- Operational -------------------------------------------------------

    log_level: str = "INFO"
    """Root log level."""

    cors_allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]
    """Origins allowed by the CORS middleware."""


def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Uses ``lru_cache`` semantics via a module-level singleton so the
    ``.env`` file is read at most once per process.

    Returns:
        The global ``Settings`` object.
    """
    return _settings


_settings = Settings()
