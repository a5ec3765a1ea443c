"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.exceptions import ValidationError
from .domain.models import AvailabilityTemplate, DayAvailability, Resource, Weekday, closed_day


def _validate_timezone(name: str) -> str:
    try:
        pendulum.timezone(name)
    except Exception as exc:
        raise ValueError(f"Unknown time zone: '{name}'") from exc
    return name


class DefaultsConfig(BaseModel):
    """Default settings for slot generation."""
    slot_duration_minutes: int = 60
    horizon_days: int = 30
    open_hour: int = 8
    close_hour: int = 22

    @field_validator("slot_duration_minutes", "horizon_days")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations and horizons are positive."""
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("open_hour", "close_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DefaultsConfig":
        """Ensure the default window opens before it closes."""
        if self.close_hour <= self.open_hour:
            raise ValueError("close_hour must be later than open_hour")
        return self

    def get_open_time(self) -> time:
        return time(hour=self.open_hour, minute=0)

    def get_close_time(self) -> time:
        return time(hour=self.close_hour, minute=0)

    def closed_day(self) -> DayAvailability:
        """Template entry for a weekday the configuration does not mention."""
        return closed_day(self.get_open_time(), self.get_close_time())


class DayHoursConfig(BaseModel):
    """Opening hours of one weekday."""
    enabled: bool = True
    open: time
    close: time

    @field_validator("open", "close", mode="before")
    @classmethod
    def parse_sexagesimal(cls, value: Any) -> Any:
        # YAML 1.1 reads an unquoted 9:30 as the base-60 integer 570
        if isinstance(value, int) and not isinstance(value, bool):
            hours, minutes = divmod(value, 60)
            return time(hour=hours, minute=minutes)
        return value

    @model_validator(mode="after")
    def validate_window(self) -> "DayHoursConfig":
        if self.enabled and self.open >= self.close:
            raise ValueError(f"open ({self.open}) must be before close ({self.close})")
        return self

    def to_domain(self) -> DayAvailability:
        return DayAvailability(enabled=self.enabled, open=self.open, close=self.close)


class ResourceConfig(BaseModel):
    """A bookable resource and its weekly hours."""
    id: str
    owner_id: str
    name: str = ""
    timezone: Optional[str] = None  # falls back to AppConfig.timezone
    hours: Dict[str, Optional[DayHoursConfig]] = Field(default_factory=dict)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _validate_timezone(value) if value else value

    @field_validator("hours")
    @classmethod
    def validate_weekdays(cls, value: Dict[str, Optional[DayHoursConfig]]) -> Dict[str, Optional[DayHoursConfig]]:
        """Ensure keys are weekday names and no weekday is given twice."""
        seen: set[Weekday] = set()
        for key in value:
            try:
                weekday = Weekday.parse(key)
            except ValidationError as exc:
                raise ValueError(str(exc)) from exc
            if weekday in seen:
                raise ValueError(f"Weekday configured twice: {weekday.label}")
            seen.add(weekday)
        return value

    def display_name(self) -> str:
        return self.name or self.id

    def to_template(self, defaults: DefaultsConfig) -> AvailabilityTemplate:
        """
        Build the seven-day template. Weekdays that are missing or set to
        null are closed.
        """
        days = {
            Weekday.parse(key): hours.to_domain()
            for key, hours in self.hours.items()
            if hours is not None
        }
        return AvailabilityTemplate.from_mapping(days, default=defaults.closed_day())

    def to_resource(self, default_timezone: str) -> Resource:
        return Resource(
            id=self.id,
            owner_id=self.owner_id,
            name=self.name,
            timezone=self.timezone or default_timezone,
        )


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = "sqlite:///./courtbook.db"
    timezone: str = "Europe/Ljubljana"
    storage_timeout_seconds: float = 5.0
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    resources: List[ResourceConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    @field_validator("storage_timeout_seconds")
    @classmethod
    def validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("storage_timeout_seconds must be greater than zero")
        return value

    @field_validator("resources")
    @classmethod
    def validate_resources(cls, value: List[ResourceConfig]) -> List[ResourceConfig]:
        """Ensure resource ids are unique."""
        seen_ids: set[str] = set()
        for resource in value:
            if resource.id in seen_ids:
                raise ValueError(f"Duplicate resource id detected: {resource.id}")
            seen_ids.add(resource.id)
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

        return cls(**data)

    def find_resource(self, identifier: str) -> Optional[ResourceConfig]:
        """Find a resource by id or by (case-insensitive) name."""
        for resource in self.resources:
            if resource.id == identifier:
                return resource
        for resource in self.resources:
            if resource.name and resource.name.lower() == identifier.lower():
                return resource
        return None

    def resolve_resource(self, identifier: str) -> ResourceConfig:
        """
        Resolve a resource identifier (id or name).

        Raises:
            ValueError: If identifier cannot be resolved
        """
        resource = self.find_resource(identifier)
        if resource is None:
            raise ValueError(
                f"Unknown resource: '{identifier}'. "
                f"Use a resource id or name from the configuration."
            )
        return resource

    def resource_timezone(self, resource: ResourceConfig) -> str:
        return resource.timezone or self.timezone


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
