"""
Configuration management using Pydantic models loaded from YAML.
"""

from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import (
    AvailabilityWindow,
    BlockedDate,
    DayOfWeek,
    Schedule,
    SchedulingSettings,
    SlotReservation,
    validate_windows,
)


def _validate_timezone(value: str) -> str:
    try:
        pendulum.timezone(value)
    except (ValueError, KeyError) as exc:
        raise ValueError(f"Unknown timezone: {value!r}") from exc
    return value


class SchedulingSettingsConfig(BaseModel):
    """Notice period and buffers, in minutes."""
    minimum_notice_minutes: int = 1440
    before_event_buffer: int = 15
    after_event_buffer: int = 15

    @field_validator("minimum_notice_minutes", "before_event_buffer", "after_event_buffer")
    @classmethod
    def validate_non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Scheduling settings must not be negative")
        return value

    def to_settings(self) -> SchedulingSettings:
        return SchedulingSettings(
            minimum_notice_minutes=self.minimum_notice_minutes,
            before_event_buffer=self.before_event_buffer,
            after_event_buffer=self.after_event_buffer,
        )


class DefaultsConfig(BaseModel):
    """Default settings for slot search."""
    duration_minutes: int = 60
    step_minutes: int = 15
    months_ahead: int = 2
    scheduling: SchedulingSettingsConfig = Field(default_factory=SchedulingSettingsConfig)

    @field_validator("duration_minutes", "step_minutes", "months_ahead")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations and horizons are positive."""
        if value <= 0:
            raise ValueError("Value must be greater than zero")
        return value

    @field_validator("step_minutes")
    @classmethod
    def validate_step_divides_hour(cls, value: int) -> int:
        if value > 0 and 60 % value:
            raise ValueError("step_minutes must divide 60 (e.g. 5, 10, 15, 20, 30, 60)")
        return value


class AvailabilityWindowConfig(BaseModel):
    """One weekly window as the expert entered it."""
    day_of_week: DayOfWeek
    start_time: str
    end_time: str

    def to_window(self) -> AvailabilityWindow:
        return AvailabilityWindow(
            day_of_week=self.day_of_week,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class ScheduleConfig(BaseModel):
    """Weekly schedule; all times are wall-clock times in ``timezone``."""
    timezone: str
    availabilities: List[AvailabilityWindowConfig] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        return _validate_timezone(value)

    @model_validator(mode="after")
    def validate_availabilities(self) -> "ScheduleConfig":
        """Reject malformed, cross-midnight or overlapping windows on write."""
        validate_windows([window.to_window() for window in self.availabilities])
        return self


class BlockedDateConfig(BaseModel):
    """A day off. Without a timezone the schedule's timezone applies."""
    date: date
    timezone: Optional[str] = None
    reason: str = ""

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        return _validate_timezone(value)


class ReservationConfig(BaseModel):
    """A held slot. Naive timestamps are read as UTC."""
    start_time: datetime
    expires_at: datetime
    guest_email: str = ""

    def to_reservation(self) -> SlotReservation:
        return SlotReservation(
            start_time=pendulum.instance(self.start_time),
            expires_at=pendulum.instance(self.expires_at),
            guest_email=self.guest_email,
        )


class ExpertConfig(BaseModel):
    """Expert configuration."""
    id: str
    name: str
    email: str
    calendar_id: str = ""  # Optional: for mock data mapping
    duration_minutes: Optional[int] = None
    schedule: Optional[ScheduleConfig] = None
    settings: Optional[SchedulingSettingsConfig] = None
    blocked_dates: List[BlockedDateConfig] = Field(default_factory=list)
    reservations: List[ReservationConfig] = Field(default_factory=list)

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: Optional[int]) -> Optional[int]:
        """Ensure event duration is positive."""
        if value is not None and value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    def to_schedule(self) -> Optional[Schedule]:
        if self.schedule is None:
            return None
        return Schedule(
            owner_id=self.id,
            timezone=self.schedule.timezone,
            availabilities=[window.to_window() for window in self.schedule.availabilities],
        )

    def to_blocked_dates(self) -> List[BlockedDate]:
        fallback = self.schedule.timezone if self.schedule else "UTC"
        return [
            BlockedDate(date=entry.date, timezone=entry.timezone or fallback, reason=entry.reason)
            for entry in self.blocked_dates
        ]


class AppConfig(BaseModel):
    """Application configuration."""
    client_id: str = ""
    tenant_id: str = ""
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    experts: List[ExpertConfig] = Field(default_factory=list)

    @field_validator("experts")
    @classmethod
    def validate_experts(cls, value: List[ExpertConfig]) -> List[ExpertConfig]:
        """Ensure expert ids and emails are unique."""
        seen_ids: set[str] = set()
        seen_emails: set[str] = set()
        for expert in value:
            id_key = expert.id.lower()
            email_key = expert.email.lower()
            if id_key in seen_ids:
                raise ValueError(f"Duplicate expert id detected: {expert.id}")
            if email_key in seen_emails:
                raise ValueError(f"Duplicate expert email detected: {expert.email}")
            seen_ids.add(id_key)
            seen_emails.add(email_key)
        return value

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"

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

    def find_expert(self, identifier: str) -> ExpertConfig | None:
        """Find an expert by id, name or email (case-insensitive)."""
        key = identifier.lower()
        for expert in self.experts:
            if key in (expert.id.lower(), expert.name.lower(), expert.email.lower()):
                return expert
        return None

    def resolve_expert(self, identifier: str) -> ExpertConfig:
        """
        Resolve an identifier to a configured expert.

        Raises:
            ValueError: If identifier cannot be resolved
        """
        expert = self.find_expert(identifier)
        if expert is None:
            raise ValueError(
                f"Unknown expert identifier: '{identifier}'. "
                f"Use a configured id, name or email address."
            )
        return expert

    def duration_for(self, expert: ExpertConfig) -> int:
        return expert.duration_minutes or self.defaults.duration_minutes

    def settings_for(self, expert: ExpertConfig) -> SchedulingSettings:
        return (expert.settings or self.defaults.scheduling).to_settings()


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
