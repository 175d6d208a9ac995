"""Tracking service interface and the Beeminder implementation."""

from .provider import TrackingService, DatapointRequest, Datapoint, Goal, daily_request_id
from .beeminder import BeeminderClient

__all__ = [
    "TrackingService",
    "DatapointRequest",
    "Datapoint",
    "Goal",
    "daily_request_id",
    "BeeminderClient",
]
