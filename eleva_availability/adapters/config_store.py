"""
Schedule read model backed by the YAML configuration.
"""

from typing import List, Optional

from pendulum import DateTime

from ..config import AppConfig
from ..domain.models import BlockedDate, Schedule, SchedulingSettings, SlotReservation


class ConfigScheduleStore:
    """
    Serves schedules, settings, blocked dates and reservations per expert.

    Lookups accept the expert's id, name or email.
    """

    def __init__(self, config: AppConfig):
        self.config = config

    def get_schedule(self, owner_id: str) -> Optional[Schedule]:
        expert = self.config.find_expert(owner_id)
        return expert.to_schedule() if expert else None

    def get_settings(self, owner_id: str) -> SchedulingSettings:
        expert = self.config.find_expert(owner_id)
        if expert is None:
            return self.config.defaults.scheduling.to_settings()
        return self.config.settings_for(expert)

    def get_blocked_dates(self, owner_id: str) -> List[BlockedDate]:
        expert = self.config.find_expert(owner_id)
        return expert.to_blocked_dates() if expert else []

    def get_active_reservations(self, owner_id: str, now: DateTime) -> List[SlotReservation]:
        """Reservations that have not expired at ``now``."""
        expert = self.config.find_expert(owner_id)
        if expert is None:
            return []
        reservations = [entry.to_reservation() for entry in expert.reservations]
        return [reservation for reservation in reservations if reservation.is_active(now)]

    def get_calendar_email(self, owner_id: str) -> Optional[str]:
        expert = self.config.find_expert(owner_id)
        return expert.email if expert else None
