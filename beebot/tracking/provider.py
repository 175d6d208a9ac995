"""Service-agnostic tracking interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

REQUEST_ID_FORMAT = "BOT_%Y-%m-%d"


def daily_request_id(now: Optional[datetime] = None) -> str:
    """Idempotency key for today's data point, e.g. ``BOT_2024-05-01``.

    Uses the local calendar day, so every submission on the same day carries
    the same key and the service updates that day's point instead of adding
    another one.
    """
    return (now or datetime.now()).strftime(REQUEST_ID_FORMAT)


class DatapointRequest(BaseModel):
    """Outbound data point. ``None`` fields are left out of the request."""

    value: float
    comment: Optional[str] = None
    timestamp: Optional[int] = None
    daystamp: Optional[str] = None
    request_id: Optional[str] = Field(default=None, serialization_alias="requestid")

    def to_form(self, auth_token: str) -> dict[str, str]:
        """Flatten to form fields, adding the auth token."""
        fields = self.model_dump(by_alias=True, exclude_none=True)
        form = {key: str(val) for key, val in fields.items()}
        form["auth_token"] = auth_token
        return form


class Datapoint(BaseModel):
    """A data point as confirmed by the service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    timestamp: int
    daystamp: str
    value: float
    comment: Optional[str] = None
    updated_at: int
    request_id: Optional[str] = Field(default=None, alias="requestid")


class Goal(BaseModel):
    """Snapshot of a goal's aggregate state."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    slug: str
    graph_url: str
    safe_buf: int = Field(alias="safebuf")


class TrackingService(ABC):
    """Abstract base class for tracking services."""

    @abstractmethod
    async def create_data_point(
        self,
        value: float,
        comment: Optional[str] = None,
        timestamp: Optional[int] = None,
        daystamp: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Datapoint:
        """Submit one data point.

        Raises:
            SubmissionError: Network failure, non-2xx status, or malformed body.
        """
        ...

    @abstractmethod
    async def get_goal(self) -> Goal:
        """Fetch the current goal status.

        Raises:
            FetchError: Network failure, non-2xx status, or malformed body.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Service name shown in room messages."""
        ...
