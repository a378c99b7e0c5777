"""
Run configuration and publication profile.

Settings can be loaded from a JSON file (same shape as the model fields)
and are then overridden by command-line flags. Both models reject unknown
keys and validate values on load and on assignment.
"""

import json
import os
from typing import Any, Dict, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/58.0.3029.110 Safari/537.3"
)

WEEKLY = "weekly"
DAILY = "daily"


class PublicationProfile(BaseModel):
    """Everything that ties the pipeline to one newspaper on one viewer."""

    title: str = "Cedar Rapids Evening Gazette"
    host: str = "cedarrapids.advantage-preservation.com"
    keyword: str = "gazette"
    archive_start_year: int = Field(default=1920, ge=1)
    ordering_key: str = "k1"
    filename_stem: str = "evening_gazette_usa_iowa_cedar_rapids"
    locale: str = "english"
    user_agent: str = DEFAULT_USER_AGENT
    viewport: Tuple[int, int] = (2005, 1277)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v.strip()

    @property
    def merged_stem(self) -> str:
        return self.title.replace(" ", "_")


class RunConfig(BaseModel):
    output_dir: str = "archive"
    log_dir: str = "logs"
    run_mode: str = WEEKLY
    headless: bool = True
    navigation_timeout: float = Field(default=30.0, gt=0)
    frame_timeout: float = Field(default=10.0, gt=0)
    discovery_timeout: float = Field(default=15.0, gt=0)
    control_timeout: float = Field(default=10.0, gt=0)
    download_timeout: float = Field(default=30.0, gt=0)
    poll_interval: float = Field(default=0.5, gt=0)
    settle_seconds: float = Field(default=0.0, ge=0)
    page_delay: float = Field(default=1.0, ge=0)
    page_retries: int = Field(default=0, ge=0)
    image_dpi: int = Field(default=600, gt=0)
    image_size: Tuple[int, int] = (2400, 3600)
    force: bool = False
    probe: bool = True
    profile: PublicationProfile = Field(default_factory=PublicationProfile)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("run_mode")
    @classmethod
    def validate_run_mode(cls, v: str) -> str:
        if v not in (WEEKLY, DAILY):
            raise ValueError(f"run_mode must be '{WEEKLY}' or '{DAILY}'")
        return v

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump()


def _describe(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err["loc"]) or "settings"
        problems.append(f"{where}: {err['msg']}")
    return "; ".join(problems)


def config_from_dict(data: Any) -> RunConfig:
    """
    Build a RunConfig from plain data.

    Raises:
        ConfigError: on unknown keys or values of the wrong type or range
    """
    try:
        return RunConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid settings: {_describe(e)}") from e


def load_config(path: str) -> RunConfig:
    """
    Load settings from a JSON file.

    Args:
        path: Path to the settings file

    Returns:
        RunConfig with file values applied over the defaults
    """
    if not os.path.exists(path):
        raise ConfigError(f"Settings file not found: {path}")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Could not read settings from {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Settings file must hold a JSON object: {path}")
    return config_from_dict(data)
