"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import BusinessHours, DayOfWeek
from .domain.timezone_resolver import is_valid_timezone


class RuleDefaultsConfig(BaseModel):
    """Defaults provisioned for tenants that have no execution rules yet."""
    start_hour: int = 8
    end_hour: int = 21
    days_of_week: List[str] = Field(
        default_factory=lambda: ["MONDAY", "TUESDAY", "WEDNESDAY", "THURSDAY", "FRIDAY"]
    )
    resubmission_detection_window_hours: int = 24
    resubmission_reschedule_delay_hours: int = 24

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, value: List[str]) -> List[str]:
        """Ensure weekday names are valid and deduplicated."""
        invalid = [day for day in value if DayOfWeek.parse(day) is None]
        if invalid:
            raise ValueError(f"days_of_week contains unknown weekdays: {invalid}")
        # Preserve order while removing duplicates
        deduped: List[str] = []
        for day in value:
            name = DayOfWeek.parse(day).value
            if name not in deduped:
                deduped.append(name)
        return deduped

    @field_validator("resubmission_detection_window_hours", "resubmission_reschedule_delay_hours")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("Hour windows must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "RuleDefaultsConfig":
        """Ensure the window opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self

    def business_hours(self) -> BusinessHours:
        return BusinessHours(
            start_hour=self.start_hour,
            end_hour=self.end_hour,
            days_of_week=frozenset(DayOfWeek(day) for day in self.days_of_week),
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "UTC"
    log_level: str = "INFO"
    rules_cache_ttl_seconds: int = 300
    business_hours_timezone: str = "America/New_York"
    schedule_timezone: str = "UTC"
    default_slot_duration_minutes: int = 30
    data_file: Optional[Path] = None
    defaults: RuleDefaultsConfig = Field(default_factory=RuleDefaultsConfig)

    @field_validator("timezone", "business_hours_timezone", "schedule_timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        if not is_valid_timezone(value):
            raise ValueError(f"Unknown IANA timezone: {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("rules_cache_ttl_seconds", "default_slot_duration_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

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
        if config.data_file is not None and not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
