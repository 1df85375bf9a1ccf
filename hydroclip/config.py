"""Global configuration using Pydantic settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_GRAPHQL_ENDPOINT = "https://live.orcasound.net/graphql"


class Settings(BaseSettings):
    """Application wide settings loaded from environment variables."""

    graphql_endpoint: str = DEFAULT_GRAPHQL_ENDPOINT
    http_timeout: float = 30.0
    ffmpeg_binary: str = "ffmpeg"
    output_bitrate: str = "192k"
    transcoder_backend: str = "ffmpeg"
    window_minutes: float = Field(default=3.0, ge=0)
    candidate_padding_seconds: float = Field(default=15.0, ge=0)
    minimum_detections: int = Field(default=1, ge=0)
    sort_order: str = "desc"
    output_dir: Path = Field(default_factory=lambda: Path("clips"))

    model_config = SettingsConfigDict(
        env_prefix="HYDROCLIP_",
        env_file=".env",
        case_sensitive=False,
    )

    @property
    def clips_dir(self) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self.output_dir


_settings: Optional[Settings] = None

_ENV_PREFIX: str = (Settings.model_config.get("env_prefix") or "").upper()
_ENV_PATH = Path(Settings.model_config.get("env_file") or ".env")


@dataclass
class EnvironmentSetting:
    """A configuration field, the variable that overrides it and where its value came from."""

    field: str
    env_name: str
    value: Any
    default: Any
    overridden: bool


class EnvironmentSettingError(RuntimeError):
    """Raised when an override names an unknown field or fails validation."""


class _OverrideFile:
    """The ``KEY=value`` lines of the overrides file; comments and blank lines are kept."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.lines: List[str] = path.read_text().splitlines() if path.exists() else []

    @staticmethod
    def _name(line: str) -> Optional[str]:
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            return None
        return stripped.split("=", 1)[0].strip()

    def names(self) -> List[str]:
        return [name for name in map(self._name, self.lines) if name]

    def put(self, env_name: str, value: Optional[str]) -> None:
        self.lines = [line for line in self.lines if self._name(line) != env_name]
        if value is not None:
            self.lines.append(f"{env_name}={value}")

    def save(self) -> None:
        if self.lines:
            self.path.write_text("\n".join(self.lines) + "\n")
        elif self.path.exists():
            self.path.unlink()


def _env_name(field: str) -> str:
    return f"{_ENV_PREFIX}{field.upper()}"


def _default_of(field: str) -> Any:
    info = Settings.model_fields[field]
    if info.default_factory is not None:  # type: ignore[truthy-function]
        return info.default_factory()
    return info.default


def list_environment_settings(settings: Optional[Settings] = None) -> Iterable[EnvironmentSetting]:
    """Yield every field with its variable name, current value and default."""

    settings = settings or get_settings()
    persisted = set(_OverrideFile(_ENV_PATH).names())
    for name in Settings.model_fields:
        env_name = _env_name(name)
        yield EnvironmentSetting(
            field=name,
            env_name=env_name,
            value=getattr(settings, name),
            default=_default_of(name),
            overridden=env_name in os.environ or env_name in persisted,
        )


def _apply_override(field: str, raw_value: Optional[str]) -> Settings:
    if field not in Settings.model_fields:
        raise EnvironmentSettingError(f"Unknown setting: {field}")
    if raw_value is not None:
        # Validate the single value before the process environment is touched.
        try:
            Settings(_env_file=None, **{field: raw_value})
        except ValidationError as exc:
            raise EnvironmentSettingError(f"Invalid value for {field}: {raw_value!r}") from exc

    env_name = _env_name(field)
    if raw_value is None:
        os.environ.pop(env_name, None)
    else:
        os.environ[env_name] = raw_value

    overrides = _OverrideFile(_ENV_PATH)
    overrides.put(env_name, raw_value)
    overrides.save()

    global _settings
    _settings = Settings()
    return _settings


def update_environment_setting(field: str, raw_value: str) -> Settings:
    """Validate ``raw_value``, persist it to ``.env`` and reload configuration."""

    return _apply_override(field, raw_value)


def clear_environment_setting(field: str) -> Settings:
    """Remove the override for ``field`` from the environment and ``.env``."""

    return _apply_override(field, None)


def get_settings() -> Settings:
    """Return a singleton instance of the application settings."""

    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


__all__ = [
    "DEFAULT_GRAPHQL_ENDPOINT",
    "Settings",
    "EnvironmentSetting",
    "EnvironmentSettingError",
    "clear_environment_setting",
    "get_settings",
    "list_environment_settings",
    "update_environment_setting",
]
