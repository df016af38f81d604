"""sourcewatch Settings configuration.

Uses Pydantic Settings for type-safe configuration management
with support for environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sourcewatch.version import __version__


# Size limit value that disables a size check. It must be set explicitly.
UNLIMITED_SIZE = -1

DEFAULT_MAX_SIZE = 100 * 1024 * 1024


class FetchSettings(BaseSettings):
    """Artifact download and extraction configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCEWATCH_FETCH_",
        extra="ignore",
        populate_by_name=True,
    )

    retries: int = Field(
        default=9,
        ge=0,
        description="Retries for transient HTTP failures when downloading artifacts",
    )
    max_download_size: int = Field(
        default=DEFAULT_MAX_SIZE,
        description="Maximum artifact download size in bytes (-1 = unlimited)",
    )
    max_untar_size: int = Field(
        default=DEFAULT_MAX_SIZE,
        description="Maximum total extracted size in bytes (-1 = unlimited)",
    )
    hostname_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "SOURCEWATCH_FETCH_HOSTNAME_OVERRIDE",
            "SOURCE_CONTROLLER_LOCALHOST",
        ),
        description="Replace the artifact URL host (e.g. localhost:8080 in dev)",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Per-request HTTP timeout in seconds",
    )
    backoff_min: float = Field(
        default=1.0,
        ge=0,
        description="Initial retry backoff in seconds",
    )
    backoff_max: float = Field(
        default=30.0,
        ge=0,
        description="Maximum retry backoff in seconds",
    )

    @field_validator("max_download_size", "max_untar_size")
    @classmethod
    def validate_size(cls, v: int) -> int:
        """Sizes are positive, or -1 for an explicit unlimited setting."""
        if v != UNLIMITED_SIZE and v <= 0:
            msg = f"size limit must be positive or {UNLIMITED_SIZE} (unlimited), got {v}"
            raise ValueError(msg)
        return v

    @field_validator("hostname_override", mode="before")
    @classmethod
    def empty_hostname_is_none(cls, v: str | None) -> str | None:
        """An empty override (unset env var in a manifest) means no override."""
        return v or None


class TargetSettings(BaseSettings):
    """Synthesized target resource configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCEWATCH_TARGET_",
        extra="ignore",
    )

    group: str = Field(default="radapp.io", description="Target API group")
    version: str = Field(default="v1alpha3", description="Target API version")
    plural: str = Field(default="applicationdeployments", description="Target resource plural")
    kind: str = Field(default="ApplicationDeployment", description="Target resource kind")
    name: str = Field(
        default="fluxdemo",
        description="Name of the synthesized resource",
    )
    namespace: str = Field(
        default="default",
        description="Namespace of the synthesized resource",
    )
    name_from_entry: bool = Field(
        default=False,
        description="Derive the resource name from each artifact entry instead of `name`",
    )

    @property
    def api_version(self) -> str:
        """Return the group/version string used in manifests."""
        return f"{self.group}/{self.version}"


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCEWATCH_K8S_",
        extra="ignore",
    )

    in_cluster: bool = Field(
        default=False,
        description="Whether running inside a Kubernetes cluster",
    )
    kubeconfig: str | None = Field(
        default=None,
        description="Path to kubeconfig file (if not in-cluster)",
    )
    context: str | None = Field(
        default=None,
        description="Kubernetes context to use",
    )
    namespace: str | None = Field(
        default=None,
        description="Namespace to watch (None = all namespaces)",
    )
    peering_id: str | None = Field(
        default=None,
        description="Kopf peering name for multi-instance coordination",
    )
    api_timeout: int = Field(
        default=60,
        ge=1,
        description="Watch request timeout in seconds",
    )


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCEWATCH_OBSERVABILITY_",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="Log output format",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Enable Prometheus metrics endpoint",
    )
    metrics_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port for metrics endpoint",
    )
    liveness_port: int = Field(
        default=8081,
        ge=1,
        le=65535,
        description="Port for the kopf liveness endpoint",
    )
    metrics_namespace: str = Field(
        default="sourcewatch",
        description="Prefix for Prometheus metric names",
    )


class Settings(BaseSettings):
    """Main sourcewatch configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SOURCEWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # Application info
    app_version: str = Field(default=__version__)
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    debug: bool = Field(default=False, description="Enable debug logging")

    # Reconciliation
    requeue_delay: float = Field(
        default=30.0,
        ge=0,
        description="Seconds before a failed reconciliation is retried",
    )
    reconcile_timeout: float = Field(
        default=300.0,
        gt=0,
        description="Upper bound in seconds for a single reconciliation",
    )

    # Nested settings
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    target: TargetSettings = Field(default_factory=TargetSettings)
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_production(self) -> bool:
        """Return True when running in the production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Use this function to access settings throughout the application.
    Settings are cached after first load for performance.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()


def reload_settings() -> Settings:
    """Force reload settings (clears cache).

    Use this when you need to reload settings from environment
    or .env file, such as during testing.

    Returns:
        Settings: Fresh settings instance.
    """
    get_settings.cache_clear()
    return get_settings()

