"""Beeminder API client."""

import logging
from typing import Optional

import httpx
from pydantic import ValidationError

from ..errors import FetchError, SubmissionError
from .provider import TrackingService, DatapointRequest, Datapoint, Goal

logger = logging.getLogger("beebot.beeminder")


def _status_text(resp: httpx.Response) -> str:
    """Format a status line like ``500 Internal Server Error``."""
    return f"{resp.status_code} {resp.reason_phrase}".strip()


class BeeminderClient(TrackingService):
    """Posts data points to, and reads status of, a single Beeminder goal.

    API reference: https://api.beeminder.com/
    """

    def __init__(
        self,
        username: str,
        goal: str,
        auth_token: str,
        base_url: str = "https://www.beeminder.com/api/v1",
        timeout: Optional[float] = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.username = username
        self.goal = goal
        self._auth_token = auth_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "Beeminder"

    @property
    def goal_url(self) -> str:
        return f"{self.base_url}/users/{self.username}/goals/{self.goal}.json"

    @property
    def datapoints_url(self) -> str:
        return f"{self.base_url}/users/{self.username}/goals/{self.goal}/datapoints.json"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def create_data_point(
        self,
        value: float,
        comment: Optional[str] = None,
        timestamp: Optional[int] = None,
        daystamp: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> Datapoint:
        point = DatapointRequest(
            value=value,
            comment=comment,
            timestamp=timestamp,
            daystamp=daystamp,
            request_id=request_id,
        )
        logger.debug(f"POST {self.goal}: value={value} requestid={request_id}")

        try:
            async with self._client() as client:
                resp = await client.post(self.datapoints_url, data=point.to_form(self._auth_token))
        except httpx.HTTPError as e:
            raise SubmissionError(f"Failed to POST to Beeminder: {e}") from e

        if not resp.is_success:
            raise SubmissionError(f"Failed to POST to Beeminder. Returned: {_status_text(resp)}")

        try:
            datapoint = Datapoint.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise SubmissionError(f"Failed to deserialize response: {e}") from e

        logger.info(f"Created data point {datapoint.id} ({datapoint.value} on {datapoint.daystamp})")
        return datapoint

    async def get_goal(self) -> Goal:
        logger.debug(f"GET {self.goal}")

        try:
            async with self._client() as client:
                resp = await client.get(self.goal_url, params={"auth_token": self._auth_token})
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to GET Beeminder: {e}") from e

        if not resp.is_success:
            raise FetchError(f"Failed to GET Beeminder. Returned: {_status_text(resp)}")

        try:
            goal = Goal.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise FetchError(f"Failed to deserialize response: {e}") from e

        logger.info(f"Goal {goal.slug}: safebuf={goal.safe_buf}")
        return goal
