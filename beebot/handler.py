"""Message-driven update protocol.

One inbound message runs through:
    parse -> submit -> acknowledge -> pause -> fetch status -> report

Each step either continues or ends the cycle. Tracking failures are reported
to the room; failures to send a reply are only logged.
"""

import asyncio
import html
import logging
from typing import Awaitable, Callable, Optional

from .errors import FetchError, ParseError, ReplySendError, SubmissionError
from .messaging.base import MessageHandler, Room
from .parser import parse_value
from .tracking.provider import Goal, TrackingService, daily_request_id

logger = logging.getLogger("beebot.handler")

DEFAULT_STATUS_DELAY = 30.0


def format_goal_status(goal: Goal) -> tuple[str, str]:
    """Build the plain and HTML variants of the status report."""
    plain = f"You have {goal.safe_buf} days of buffer. See the graph at {goal.graph_url}"
    rich = (
        f"You have {goal.safe_buf} days of buffer. "
        f'See <a href="{html.escape(goal.graph_url)}">the graph</a> for more.'
    )
    return plain, rich


class UpdateProtocolHandler(MessageHandler):
    """Posts numeric room messages as data points and reports goal status."""

    def __init__(
        self,
        tracking: TrackingService,
        status_delay: float = DEFAULT_STATUS_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        request_id_factory: Callable[[], str] = daily_request_id,
    ):
        self.tracking = tracking
        self.status_delay = status_delay
        self._sleep = sleep
        self._request_id = request_id_factory

    async def _reply(self, room: Room, body: str, rich: Optional[str] = None) -> bool:
        """Send a reply, logging instead of raising on failure. Returns success."""
        try:
            await room.send(body, rich)
        except ReplySendError as e:
            logger.error(f"Error responding to message in {room.room_id}: {e}")
            return False
        return True

    async def handle_text_message(self, room: Room, body: str) -> None:
        try:
            value = parse_value(body)
        except ParseError:
            # Ordinary conversation, not a measurement
            return

        logger.info(f"Got value {value} in {room.room_id}")

        try:
            await self.tracking.create_data_point(value, request_id=self._request_id())
        except SubmissionError as e:
            logger.warning(f"Upload failed: {e}")
            await self._reply(room, f"Failed to update {self.tracking.name}: {e}")
            return

        acked = await self._reply(
            room,
            f"Uploaded new datapoint to {self.tracking.name}. Waiting to get new goal stats...",
        )
        if not acked:
            return

        # Give the service time to recompute the goal
        await self._sleep(self.status_delay)

        try:
            goal = await self.tracking.get_goal()
        except FetchError as e:
            logger.warning(f"Goal fetch failed: {e}")
            await self._reply(room, f"Failed to get goal details: {e}")
            return

        plain, rich = format_goal_status(goal)
        await self._reply(room, plain, rich)
