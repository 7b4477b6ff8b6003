"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import Literal, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.slot_generator import BusinessHours, SlotGrid


class BusinessHoursConfig(BaseModel):
    """Daily bookable window."""
    open_hour: int = 8
    close_hour: int = 18

    @field_validator("open_hour", "close_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "BusinessHoursConfig":
        """Ensure the window opens before it closes."""
        if self.close_hour <= self.open_hour:
            raise ValueError("close_hour must be later than open_hour")
        return self

    def get_open_time(self) -> time:
        return time(hour=self.open_hour, minute=0)

    def get_close_time(self) -> time:
        return time(hour=self.close_hour, minute=0)


class DefaultsConfig(BaseModel):
    """Default settings for availability queries."""
    grid: str = "half_hour"
    max_duration_hours: int = 8

    @field_validator("grid")
    @classmethod
    def validate_grid(cls, value: str) -> str:
        SlotGrid.from_name(value)
        return value.strip().lower()

    @field_validator("max_duration_hours")
    @classmethod
    def validate_max_duration(cls, value: int) -> int:
        if not 1 <= value <= 24:
            raise ValueError(f"max_duration_hours must be between 1 and 24, got {value}")
        return value

    def get_grid(self) -> SlotGrid:
        return SlotGrid.from_name(self.grid)


class StoreConfig(BaseModel):
    """Which room store to talk to."""
    backend: Literal["memory", "rest"] = "memory"
    data_file: Optional[Path] = None
    url: str = ""
    api_key: str = ""
    timeout_seconds: float = 30

    @model_validator(mode="after")
    def validate_rest_settings(self) -> "StoreConfig":
        """The REST backend needs an endpoint and a key."""
        if self.backend == "rest" and not (self.url and self.api_key):
            raise ValueError("store.url and store.api_key are required for the rest backend")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    business_hours: BusinessHoursConfig = Field(default_factory=BusinessHoursConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def get_business_hours(self) -> BusinessHours:
        return BusinessHours(
            open_time=self.business_hours.get_open_time(),
            close_time=self.business_hours.get_close_time(),
            timezone=self.timezone,
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)

        # Relative seed files are resolved next to the config file.
        data_file = config.store.data_file
        if data_file is not None and not data_file.is_absolute():
            config.store.data_file = config_path.parent / data_file

        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of roombook/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
