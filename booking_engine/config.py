"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from datetime import time
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain.models import (
    WEEKDAY_NAMES,
    DaySchedule,
    OperatingHours,
    RateSchedule,
    Resource,
)
from .domain.slot_calculator import ALLOWED_GRANULARITIES

logger = logging.getLogger(__name__)


class DefaultsConfig(BaseModel):
    """Default settings for availability and pricing."""
    slot_granularity_minutes: int = 60
    consecutive_granularity_minutes: int = 30
    reprice_tolerance_hours: float = 0.5
    day_threshold_hours: float = 24

    @field_validator("slot_granularity_minutes", "consecutive_granularity_minutes")
    @classmethod
    def validate_granularity(cls, value: int) -> int:
        """Ensure granularity is one of the supported slot lengths."""
        if value not in ALLOWED_GRANULARITIES:
            raise ValueError(f"Granularity must be one of {ALLOWED_GRANULARITIES}, got {value}")
        return value

    @field_validator("reprice_tolerance_hours")
    @classmethod
    def validate_tolerance(cls, value: float) -> float:
        if value < 0:
            raise ValueError("reprice_tolerance_hours must not be negative")
        return value

    @field_validator("day_threshold_hours")
    @classmethod
    def validate_threshold(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("day_threshold_hours must be greater than zero")
        return value


class DayHoursConfig(BaseModel):
    """Opening hours for one weekday."""
    model_config = ConfigDict(populate_by_name=True)

    open_time: time = Field(default=time(9, 0), alias="open")
    close_time: time = Field(default=time(18, 0), alias="close")
    closed: bool = False

    @field_validator("open_time", "close_time", mode="before")
    @classmethod
    def coerce_sexagesimal(cls, value: Any) -> Any:
        """
        Accept unquoted YAML times.

        YAML 1.1 reads ``10:00`` as the base-60 integer 600.
        """
        if isinstance(value, int) and not isinstance(value, bool):
            hours, minutes = divmod(value, 60)
            return time(hour=hours, minute=minutes)
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DayHoursConfig":
        """Ensure an open day opens before it closes."""
        if not self.closed and self.close_time <= self.open_time:
            raise ValueError("close must be later than open")
        return self

    def to_schedule(self) -> DaySchedule:
        return DaySchedule(
            open_time=self.open_time,
            close_time=self.close_time,
            closed=self.closed,
        )


class ResourceConfig(BaseModel):
    """Bookable space configuration."""
    id: str
    name: str
    capacity: int = 1
    available: bool = True
    price_per_hour: Decimal = Decimal("0")
    price_per_day: Decimal = Decimal("0")
    day_threshold_hours: Optional[float] = None
    opening_hours: Dict[int, DayHoursConfig] = Field(default_factory=dict)

    @field_validator("capacity")
    @classmethod
    def validate_capacity(cls, value: int) -> int:
        if value < 1:
            raise ValueError("capacity must be at least 1")
        return value

    @field_validator("price_per_hour", "price_per_day")
    @classmethod
    def validate_price(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise ValueError("prices must not be negative")
        return value

    @field_validator("opening_hours", mode="before")
    @classmethod
    def normalize_weekdays(cls, value: Any) -> Any:
        """Accept weekday names (``monday``) or indexes (0=Monday) as keys."""
        if not isinstance(value, dict):
            return value

        normalized: Dict[int, Any] = {}
        for key, hours in value.items():
            weekday = _parse_weekday(key)
            if weekday in normalized:
                raise ValueError(f"Weekday {WEEKDAY_NAMES[weekday]} configured twice")
            normalized[weekday] = hours
        return normalized

    def to_resource(self, timezone: str, defaults: DefaultsConfig) -> Resource:
        """Build the domain resource. Unconfigured weekdays are closed."""
        schedules = {
            weekday: (
                self.opening_hours[weekday].to_schedule()
                if weekday in self.opening_hours
                else DaySchedule(closed=True)
            )
            for weekday in range(7)
        }
        threshold = self.day_threshold_hours or defaults.day_threshold_hours

        return Resource(
            resource_id=self.id,
            name=self.name,
            capacity=self.capacity,
            available=self.available,
            operating_hours=OperatingHours(schedules=schedules, timezone=timezone),
            rates=RateSchedule(
                price_per_hour=self.price_per_hour,
                price_per_day=self.price_per_day,
                day_threshold_hours=threshold,
            ),
        )


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Paris"
    database_url: str = "sqlite:///bookings.db"
    log_level: str = "WARNING"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    resources: List[ResourceConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA identifier."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("resources")
    @classmethod
    def validate_resources(cls, value: List[ResourceConfig]) -> List[ResourceConfig]:
        """Ensure resource ids are unique."""
        seen: set[str] = set()
        for resource in value:
            if resource.id in seen:
                raise ValueError(f"Duplicate resource id detected: {resource.id}")
            seen.add(resource.id)
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
        logger.debug("Loaded %d resource(s) from %s", len(config.resources), config_path)
        return config

    def find_resource(self, resource_id: str) -> ResourceConfig | None:
        """Find a resource by its id."""
        for resource in self.resources:
            if resource.id == resource_id:
                return resource
        return None

    def build_resources(self) -> List[Resource]:
        """Convert every configured resource into its domain model."""
        return [
            resource.to_resource(self.timezone, self.defaults)
            for resource in self.resources
        ]


def _parse_weekday(key: Any) -> int:
    if isinstance(key, int) and not isinstance(key, bool):
        weekday = key
    elif isinstance(key, str) and key.strip().isdigit():
        weekday = int(key.strip())
    elif isinstance(key, str) and key.strip().lower() in WEEKDAY_NAMES:
        return WEEKDAY_NAMES.index(key.strip().lower())
    else:
        raise ValueError(f"Unknown weekday: {key!r}")

    if weekday not in range(7):
        raise ValueError(f"Weekday index must be between 0 and 6, got {weekday}")
    return weekday


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
