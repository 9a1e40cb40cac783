"""Runtime settings and YAML configuration loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .platforms.types import PlatformType

# Load .env file
load_dotenv()

PROJECT_ROOT = Path(__file__).parent.parent.parent


def resolve_env(value: Any) -> Any:
    """Resolve ENV:VAR_NAME to the environment variable value.

    Example:
        resolve_env("ENV:CLOUDINARY_API_KEY") -> "1234"
        resolve_env("literal_value") -> "literal_value"
    """
    if isinstance(value, str) and value.startswith("ENV:"):
        return os.getenv(value[4:], "")
    return value


class MarketerSettings(BaseSettings):
    """Process-level settings, overridable with MARKETER_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="MARKETER_", extra="ignore")

    data_dir: Path = Field(default_factory=lambda: Path.home() / ".social_marketer")
    logs_dir: Path = PROJECT_ROOT / "logs"
    config_path: Path = PROJECT_ROOT / "config" / "marketer.yaml"
    callback_port: int = 8989
    callback_timeout_seconds: float = 300.0
    http_timeout_seconds: float = 60.0

    @property
    def secrets_path(self) -> Path:
        return self.data_dir / "secrets.json"

    @property
    def records_path(self) -> Path:
        return self.data_dir / "posts.json"

    @property
    def run_lock_path(self) -> Path:
        return self.data_dir / "run.lock"

    @property
    def media_dir(self) -> Path:
        return self.data_dir / "media"


class PlatformSettings(BaseModel):
    """Per-platform settings from the YAML file."""

    enabled: bool = True
    api_version: str | None = None
    options: dict[str, Any] = Field(default_factory=dict)

    @field_validator("options", mode="before")
    @classmethod
    def _resolve_options(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return {key: resolve_env(item) for key, item in value.items()}
        return value

    def option(self, key: str, default: Any = None) -> Any:
        value = self.options.get(key)
        return default if value in (None, "") else value


class ScheduleConfig(BaseModel):
    """Daily trigger time."""

    hour: int = Field(default=9, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)


class FeedConfig(BaseModel):
    """Remote content feed."""

    url: str = "https://www.wisdombook.life/feed/daily.xml"
    fallback_urls: list[str] = Field(default_factory=lambda: [
        "https://www.wisdombook.life/feed/wisdom.xml",
    ])
    intro_link: str = "https://www.wisdombook.life"
    intro_text: str | None = None
    timeout_seconds: float = 30.0


class SchedulerConfig(BaseModel):
    """Cycle behaviour."""

    max_concurrency: int = Field(default=1, ge=1)
    intro_interval_days: int = Field(default=90, ge=1)


class MediaConfig(BaseModel):
    """Quote card rendering."""

    width: int = 1080
    height: int = 1350
    background_start: str = "#1f2a44"
    background_end: str = "#4b2c5e"
    text_color: str = "#ffffff"
    fonts_dir: Path | None = None


def _default_platforms() -> dict[str, PlatformSettings]:
    return {platform.value: PlatformSettings() for platform in PlatformType}


class MarketerConfig(BaseModel):
    """Full application configuration."""

    platforms: dict[str, PlatformSettings] = Field(default_factory=_default_platforms)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    feed: FeedConfig = Field(default_factory=FeedConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    media: MediaConfig = Field(default_factory=MediaConfig)

    @field_validator("platforms", mode="after")
    @classmethod
    def _known_platforms(cls, value: dict[str, PlatformSettings]) -> dict[str, PlatformSettings]:
        unknown = [name for name in value if name not in PlatformType.values()]
        if unknown:
            raise ValueError(f"Unknown platforms in config: {', '.join(unknown)}")
        # Platforms missing from the file keep their defaults
        merged = _default_platforms()
        merged.update(value)
        return merged

    def platform(self, platform: PlatformType) -> PlatformSettings:
        return self.platforms[platform.value]

    def enabled_platforms(self) -> list[PlatformType]:
        """Enabled platforms in declaration order of PlatformType."""
        return [p for p in PlatformType if self.platforms[p.value].enabled]


def load_config(config_path: Path | None = None) -> MarketerConfig:
    """Load configuration from YAML, falling back to defaults."""
    if config_path is None:
        config_path = MarketerSettings().config_path

    if not config_path.exists():
        return MarketerConfig()

    with open(config_path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    return MarketerConfig(**data)


def save_schedule(config_path: Path, hour: int, minute: int) -> None:
    """Persist a new trigger time into the YAML file, keeping other keys."""
    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    schedule = ScheduleConfig(hour=hour, minute=minute)
    data["schedule"] = schedule.model_dump()

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, sort_keys=False)
