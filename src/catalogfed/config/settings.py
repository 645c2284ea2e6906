"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file values (``Settings.from_yaml``, passed as init arguments)
  2. Environment variables (CATALOGFED_ prefix) and ``.env``
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings

from catalogfed.models.query import FederationMode


class ServerSettings(BaseModel):
    """HTTP API configuration."""

    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")


class BackendSettings(BaseModel):
    """Document backend configuration."""

    kind: Literal["opensearch", "memory"] = Field(default="opensearch", description="Backend implementation")
    hosts: list[str] = Field(default_factory=lambda: ["https://localhost:9200"], description="Backend host URLs")
    username: str | None = Field(default=None, description="Authentication username")
    password: str | None = Field(default=None, description="Authentication password")
    verify_certs: bool = Field(default=True, description="Verify TLS certificates")
    timeout_seconds: float = Field(default=10.0, gt=0, description="Per-request timeout in seconds")
    refresh: Literal["false", "true", "wait_for"] = Field(default="false", description="Refresh policy for writes")
    extra: dict[str, Any] = Field(default_factory=dict, description="Backend-specific options")

    @field_validator("hosts", mode="before")
    @classmethod
    def _parse_hosts(cls, v: Any) -> list[str]:
        """Parse hosts from JSON string (env var) or list."""
        if isinstance(v, str):
            import json

            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return [str(h) for h in parsed]
            except (json.JSONDecodeError, TypeError):
                pass
            # Comma-separated or single host
            return [h.strip() for h in v.split(",") if h.strip()]
        return list(v)


class FederationSettings(BaseModel):
    """Federated search configuration."""

    default_mode: FederationMode = Field(default=FederationMode.STRICT, description="Partial-failure policy")
    deadline_seconds: float | None = Field(default=10.0, gt=0, description="Overall deadline per federated search")
    max_concurrency: int = Field(default=16, ge=1, description="Max collections searched concurrently")


class CacheSettings(BaseModel):
    """Result cache configuration."""

    enabled: bool = Field(default=True, description="Whether federated results are cached")
    ttl_seconds: float = Field(default=30.0, ge=0, description="Default lifetime of a cached result")
    max_entries: int | None = Field(default=10_000, ge=1, description="Capacity (None = unbounded)")


class UpdateSettings(BaseModel):
    """Conditional update configuration."""

    max_attempts: int = Field(default=5, ge=1, description="Read-modify-write cycles per update")
    backoff_base_seconds: float = Field(default=0.05, ge=0, description="First retry delay")
    backoff_cap_seconds: float = Field(default=1.0, ge=0, description="Maximum retry delay")
    backoff_jitter: float = Field(default=0.25, ge=0, le=1, description="Relative retry delay jitter")
    deadline_seconds: float | None = Field(default=10.0, gt=0, description="Overall time budget per update")
    price_windows_field: str = Field(default="priceWindows", description="Document field holding price windows")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the CATALOGFED_ prefix.
    Nested settings use double underscores: CATALOGFED_BACKEND__HOSTS=...

    Example:
        CATALOGFED_BACKEND__KIND=opensearch
        CATALOGFED_BACKEND__HOSTS='["https://search-1:9200", "https://search-2:9200"]'
        CATALOGFED_FEDERATION__DEFAULT_MODE=best_effort
        CATALOGFED_CACHE__TTL_SECONDS=60
    """

    model_config = {
        "env_prefix": "CATALOGFED_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # Application metadata
    app_name: str = Field(default="catalogfed", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    # Component settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    backend: BackendSettings = Field(default_factory=BackendSettings)
    federation: FederationSettings = Field(default_factory=FederationSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    update: UpdateSettings = Field(default_factory=UpdateSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file are passed as init arguments, so they take
        precedence over environment variables for the keys they set.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
