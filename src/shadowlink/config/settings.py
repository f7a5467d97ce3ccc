"""shadowlink Settings configuration.

Uses Pydantic Settings for type-safe configuration management
with support for environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shadowlink.version import __version__


class KubernetesSettings(BaseSettings):
    """Kubernetes configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SHADOWLINK_K8S_",
        extra="ignore",
    )

    in_cluster: bool = Field(
        default=False,
        description="Whether running inside a Kubernetes cluster",
    )
    kubeconfig_path: str | None = Field(
        default=None,
        description="Path to kubeconfig file (if not in-cluster)",
    )
    context: str | None = Field(
        default=None,
        description="Kubernetes context to use",
    )
    api_timeout: int = Field(
        default=30,
        ge=1,
        description="Per-request Kubernetes API timeout in seconds",
    )


class ShadowSettings(BaseSettings):
    """Shadow pod configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SHADOWLINK_SHADOW_",
        extra="ignore",
    )

    image: str = Field(
        default="registry.cn-hangzhou.aliyuncs.com/rdc-incubator/kt-connect-shadow:stable",
        description="Container image for the shadow pod",
    )
    share: bool = Field(
        default=False,
        description="Reuse an existing shadow pod with the same name instead of creating one",
    )
    with_labels: str = Field(
        default="",
        description="Extra labels as comma separated key=value pairs",
    )
    with_annotations: str = Field(
        default="",
        description="Extra annotations as comma separated key=value pairs",
    )
    key_dir: Path = Field(
        default_factory=lambda: Path.home() / ".shadowlink" / "pk",
        description="Directory holding local private key files",
    )
    ready_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Seconds to wait for the shadow pod to become ready",
    )
    ready_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between readiness checks",
    )
    ref_update_retries: int = Field(
        default=5,
        ge=1,
        description="Attempts for the optimistic reference counter update",
    )
    ssh_host: str = Field(
        default="127.0.0.1",
        description="Local host the SSH credential connects through",
    )
    ssh_port: int = Field(
        default=2222,
        ge=1,
        le=65535,
        description="Local port the SSH credential connects through",
    )
    ssh_username: str = Field(
        default="root",
        description="SSH user inside the shadow pod",
    )

    @field_validator("key_dir", mode="after")
    @classmethod
    def expand_key_dir(cls, v: Path) -> Path:
        """Expand ``~`` in the key directory."""
        return v.expanduser()


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SHADOWLINK_OBSERVABILITY_",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format",
    )
    prometheus_enabled: bool = Field(
        default=False,
        description="Register metrics on the global Prometheus registry",
    )
    metrics_namespace: str = Field(
        default="shadowlink",
        description="Prefix for exported metric names",
    )


class Settings(BaseSettings):
    """Main shadowlink configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SHADOWLINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    # Application info
    version: str = Field(default=__version__)
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    namespace: str = Field(
        default="default",
        description="Namespace the shadow pod lives in",
    )

    # Nested settings
    kubernetes: KubernetesSettings = Field(default_factory=KubernetesSettings)
    shadow: ShadowSettings = Field(default_factory=ShadowSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_production(self) -> bool:
        """Whether running in the production environment."""
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
