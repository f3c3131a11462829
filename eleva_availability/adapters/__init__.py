"""
Adapters layer - External integrations (calendar free/busy, schedule store).
"""

from .config_store import ConfigScheduleStore
from .graph_authenticator import GraphAuthenticator
from .graph_client import GraphCalendarClient
from .mock_calendar_client import MockCalendarClient

__all__ = ["ConfigScheduleStore", "GraphAuthenticator", "GraphCalendarClient", "MockCalendarClient"]
