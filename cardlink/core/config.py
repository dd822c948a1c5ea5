"""
Configuration management for CardLink.

Settings come from environment variables (and an optional ``.env`` file). The
backend origin is resolved once from layered sources into a frozen
``ClientConfig`` that the request client receives explicitly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from cardlink.core.exceptions import ConfigurationError

logger = structlog.get_logger(__name__)

PRODUCTION_URL = "https://api.instantllycards.com"
DEFAULT_API_PREFIX = "/api"


class DevLoginConfig(BaseSettings):
    """Developer auto-login credentials."""

    token: Optional[str] = Field(default=None, alias="EXPO_PUBLIC_DEV_TOKEN")
    email: Optional[str] = Field(default=None, alias="EXPO_PUBLIC_DEV_EMAIL")
    password: Optional[str] = Field(default=None, alias="EXPO_PUBLIC_DEV_PASSWORD")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")


class PushConfig(BaseSettings):
    """Push notification registration settings."""

    project_id: Optional[str] = Field(default=None, alias="EAS_PROJECT_ID")

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")


class Settings(BaseSettings):
    """Main client settings."""

    # Backend location
    api_base: Optional[str] = Field(default=None, alias="EXPO_PUBLIC_API_BASE")
    api_prefix: str = Field(default=DEFAULT_API_PREFIX, alias="EXPO_PUBLIC_API_PREFIX")
    app_config_path: Optional[Path] = Field(default=None, alias="CARDLINK_APP_CONFIG")

    # Local state
    storage_path: Path = Field(
        default=Path("~/.cardlink/storage.json"), alias="CARDLINK_STORAGE_PATH"
    )

    # Request behaviour
    request_timeout: float = Field(default=60.0, alias="CARDLINK_REQUEST_TIMEOUT")
    max_attempts: int = Field(default=3, alias="CARDLINK_MAX_ATTEMPTS")
    backoff_step: float = Field(default=2.0, alias="CARDLINK_BACKOFF_STEP")

    # App identity
    app_version: str = Field(default="1.0.0", alias="CARDLINK_APP_VERSION")
    platform: str = Field(default="android", alias="CARDLINK_PLATFORM")

    debug: bool = Field(default=False, alias="DEBUG")

    # Component configurations
    dev: DevLoginConfig = Field(default_factory=DevLoginConfig)
    push: PushConfig = Field(default_factory=PushConfig)

    @field_validator("debug", mode="before")
    @classmethod
    def parse_debug(cls, v):
        if isinstance(v, str):
            return v.lower() in ("1", "true", "yes")
        return bool(v)

    @field_validator("api_prefix", mode="before")
    @classmethod
    def parse_api_prefix(cls, v):
        if not v:
            return ""
        v = str(v).strip().rstrip("/")
        if v and not v.startswith("/"):
            v = f"/{v}"
        return v

    @field_validator("max_attempts")
    @classmethod
    def check_max_attempts(cls, v):
        if v < 1:
            raise ValueError("CARDLINK_MAX_ATTEMPTS must be at least 1")
        return v

    def model_post_init(self, __context) -> None:
        self.dev = DevLoginConfig()
        self.push = PushConfig()

    def resolved_storage_path(self) -> Path:
        """Return the absolute storage file path."""
        return self.storage_path.expanduser()

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@dataclass(frozen=True)
class AppManifest:
    """
    Extra fields from an app.json style manifest.

    ``runtime_extra`` is ``expo.extra``; ``legacy_extra`` is the top-level
    ``extra`` block older manifests carry.
    """

    runtime_extra: Dict[str, Any]
    legacy_extra: Dict[str, Any]

    @classmethod
    def empty(cls) -> "AppManifest":
        return cls(runtime_extra={}, legacy_extra={})

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AppManifest":
        expo = raw.get("expo") or {}
        return cls(
            runtime_extra=dict(expo.get("extra") or {}),
            legacy_extra=dict(raw.get("extra") or {}),
        )

    @classmethod
    def from_file(cls, path: Path) -> "AppManifest":
        """Load a manifest; a missing or malformed file is a configuration error."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ConfigurationError(
                f"App config not found: {path}", details={"path": str(path)}
            ) from e
        except ValueError as e:
            raise ConfigurationError(
                f"App config is not valid JSON: {path}", details={"path": str(path)}
            ) from e
        if not isinstance(raw, dict):
            raise ConfigurationError(f"App config must be a JSON object: {path}")
        return cls.from_dict(raw)


@dataclass(frozen=True)
class ClientConfig:
    """Everything the request client needs, resolved once at startup."""

    base_url: str
    api_prefix: str = DEFAULT_API_PREFIX
    timeout: float = 60.0
    max_attempts: int = 3
    backoff_step: float = 2.0

    def url_for(self, path: str) -> str:
        """Build the full URL for a backend route."""
        if not path.startswith("/"):
            path = f"/{path}"
        return f"{self.base_url}{self.api_prefix}{path}"


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def resolve_api_base(
    explicit: Optional[str], manifest: Optional[AppManifest] = None
) -> Tuple[str, str]:
    """
    Pick the backend origin from layered sources.

    Order: explicit environment value, runtime config extra field, legacy
    manifest extra field, production fallback. The first non-empty value wins.

    Returns:
        Tuple of (base URL without trailing slash, name of the winning source)
    """
    manifest = manifest or AppManifest.empty()
    sources: List[Tuple[str, Any]] = [
        ("env:EXPO_PUBLIC_API_BASE", explicit),
        ("runtime:EXPO_PUBLIC_API_BASE", manifest.runtime_extra.get("EXPO_PUBLIC_API_BASE")),
        ("manifest:API_BASE", manifest.legacy_extra.get("API_BASE")),
        ("runtime:API_BASE", manifest.runtime_extra.get("API_BASE")),
    ]

    for name, value in sources:
        value = _clean(value)
        if value:
            logger.debug("API base resolved", source=name, base=value)
            return value.rstrip("/"), name

    logger.debug("No API base configured, using production", base=PRODUCTION_URL)
    return PRODUCTION_URL, "fallback"


def build_client_config(
    settings: Optional[Settings] = None, manifest: Optional[AppManifest] = None
) -> ClientConfig:
    """Resolve settings and manifest into the request client's configuration."""
    settings = settings or get_settings()
    if manifest is None and settings.app_config_path:
        manifest = AppManifest.from_file(settings.app_config_path.expanduser())

    base_url, source = resolve_api_base(settings.api_base, manifest)
    logger.info("Client configured", base_url=base_url, source=source)

    return ClientConfig(
        base_url=base_url,
        api_prefix=settings.api_prefix,
        timeout=settings.request_timeout,
        max_attempts=settings.max_attempts,
        backoff_step=settings.backoff_step,
    )


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def validate_required_settings(for_workflow: str = "api") -> List[str]:
    """
    Validate that required settings are present for a workflow.

    Args:
        for_workflow: "api", "dev-login" or "push"

    Returns:
        List of missing or invalid settings
    """
    missing = []
    try:
        config = get_settings()

        if for_workflow == "api":
            if config.app_config_path and not config.app_config_path.expanduser().exists():
                missing.append("CARDLINK_APP_CONFIG (file not found)")

        elif for_workflow == "dev-login":
            if not config.dev.token and not (config.dev.email and config.dev.password):
                missing.append("EXPO_PUBLIC_DEV_TOKEN or EXPO_PUBLIC_DEV_EMAIL/PASSWORD")

        elif for_workflow == "push":
            if not config.push.project_id:
                missing.append("EAS_PROJECT_ID")

    except Exception as e:
        missing.append(f"Configuration error: {e}")

    return missing


def print_configuration_summary(client_config: Optional[ClientConfig] = None):
    """Print a summary of the current configuration for debugging."""
    try:
        config = get_settings()
        client_config = client_config or build_client_config(config)
        print("=== CardLink Configuration Summary ===")
        print(f"API Base: {client_config.base_url}")
        print(f"API Prefix: {client_config.api_prefix or '(none)'}")
        print(f"Timeout: {client_config.timeout}s")
        print(f"Max Attempts: {client_config.max_attempts}")
        print(f"Backoff Step: {client_config.backoff_step}s")
        print(f"App Version: {config.app_version} ({config.platform})")
        print(f"Storage: {config.resolved_storage_path()}")
        print()
        print(f"Dev Token: {'✓' if config.dev.token else '✗'}")
        print(f"Dev Login: {'✓' if config.dev.email and config.dev.password else '✗'}")
        print(f"Push Project: {'✓' if config.push.project_id else '✗'}")
        print("=" * 38)
    except Exception as e:
        print(f"Error loading configuration: {e}")
