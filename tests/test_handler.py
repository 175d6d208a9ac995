"""Tests for the message-driven update protocol."""

from unittest.mock import DEFAULT, call

import httpx
import pytest

from beebot.errors import FetchError, ReplySendError, SubmissionError
from beebot.handler import UpdateProtocolHandler, format_goal_status
from beebot.tracking.beeminder import BeeminderClient
from beebot.tracking.provider import Goal

ACK = "Uploaded new datapoint to Beeminder. Waiting to get new goal stats..."


def _handler(tracking, sleep, delay=30.0):
    return UpdateProtocolHandler(
        tracking,
        status_delay=delay,
        sleep=sleep,
        request_id_factory=lambda: "BOT_2024-05-01",
    )


class TestFormatGoalStatus:
    def test_plain_and_html(self, goal):
        plain, rich = format_goal_status(goal)
        assert plain == "You have 3 days of buffer. See the graph at https://x/g.svg"
        assert rich == 'You have 3 days of buffer. See <a href="https://x/g.svg">the graph</a> for more.'

    def test_url_is_escaped_in_html(self):
        goal = Goal(slug="g", safebuf=0, graph_url='https://x/g.svg?a=1&b="2"')
        _, rich = format_goal_status(goal)
        assert 'href="https://x/g.svg?a=1&amp;b=&quot;2&quot;"' in rich

    def test_negative_buffer(self):
        goal = Goal(slug="g", safebuf=-1, graph_url="https://x/g.svg")
        plain, _ = format_goal_status(goal)
        assert "-1 days" in plain


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_scenario_a(self, room, tracking, no_sleep):
        """' 42.5 ' is uploaded, acknowledged, and followed by a status report."""
        await _handler(tracking, no_sleep).handle_text_message(room, " 42.5 ")

        tracking.create_data_point.assert_awaited_once_with(42.5, request_id="BOT_2024-05-01")
        no_sleep.assert_awaited_once_with(30.0)
        tracking.get_goal.assert_awaited_once()

        assert room.send.await_count == 2
        assert room.send.await_args_list[0] == call(ACK, None)
        plain, rich = room.send.await_args_list[1].args
        assert "3" in plain
        assert "https://x/g.svg" in plain
        assert '<a href="https://x/g.svg">' in rich

    @pytest.mark.asyncio
    async def test_configured_delay_is_used(self, room, tracking, no_sleep):
        await _handler(tracking, no_sleep, delay=0.5).handle_text_message(room, "1")
        no_sleep.assert_awaited_once_with(0.5)

    @pytest.mark.asyncio
    async def test_default_request_id_is_daily(self, room, tracking, no_sleep):
        handler = UpdateProtocolHandler(tracking, sleep=no_sleep)
        await handler.handle_text_message(room, "1")
        request_id = tracking.create_data_point.await_args.kwargs["request_id"]
        assert request_id.startswith("BOT_")
        assert len(request_id) == len("BOT_YYYY-MM-DD")

    @pytest.mark.asyncio
    async def test_fetch_happens_after_pause(self, room, tracking):
        order = []
        tracking.create_data_point.side_effect = lambda *a, **k: order.append("submit")

        async def fake_sleep(seconds):
            order.append("sleep")

        async def fake_get_goal():
            order.append("fetch")
            return Goal(slug="g", safebuf=1, graph_url="https://x/g.svg")

        tracking.get_goal = fake_get_goal
        await _handler(tracking, fake_sleep).handle_text_message(room, "3")
        assert order == ["submit", "sleep", "fetch"]


class TestNotANumber:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", ["hello", "", "   ", "42 pushups"])
    async def test_scenario_b(self, room, tracking, no_sleep, body):
        """Non-numeric messages cause no replies and no network calls."""
        await _handler(tracking, no_sleep).handle_text_message(room, body)

        room.send.assert_not_awaited()
        tracking.create_data_point.assert_not_awaited()
        tracking.get_goal.assert_not_awaited()
        no_sleep.assert_not_awaited()


class TestSubmitFailure:
    @pytest.mark.asyncio
    async def test_single_failure_reply(self, room, tracking, no_sleep):
        tracking.create_data_point.side_effect = SubmissionError("Failed to POST to Beeminder")

        await _handler(tracking, no_sleep).handle_text_message(room, "10")

        room.send.assert_awaited_once_with("Failed to update Beeminder: Failed to POST to Beeminder", None)
        no_sleep.assert_not_awaited()
        tracking.get_goal.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scenario_c_http_500(self, room, no_sleep):
        """A 500 from Beeminder yields exactly one failure reply and no fetch."""
        calls = []

        def respond(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(500)

        client = BeeminderClient(
            "alice", "pushups", "tok", transport=httpx.MockTransport(respond)
        )
        await _handler(client, no_sleep).handle_text_message(room, "10")

        room.send.assert_awaited_once()
        body = room.send.await_args.args[0]
        assert body.startswith("Failed to update Beeminder")
        assert "500" in body
        no_sleep.assert_not_awaited()
        assert len(calls) == 1
        assert calls[0].method == "POST"

    @pytest.mark.asyncio
    async def test_failure_reply_send_error_is_swallowed(self, room, tracking, no_sleep):
        tracking.create_data_point.side_effect = SubmissionError("boom")
        room.send.side_effect = ReplySendError("room gone")

        await _handler(tracking, no_sleep).handle_text_message(room, "10")

        room.send.assert_awaited_once()
        no_sleep.assert_not_awaited()


class TestAcknowledgeFailure:
    @pytest.mark.asyncio
    async def test_stops_before_pause(self, room, tracking, no_sleep):
        room.send.side_effect = ReplySendError("forbidden")

        await _handler(tracking, no_sleep).handle_text_message(room, "10")

        tracking.create_data_point.assert_awaited_once()
        room.send.assert_awaited_once_with(ACK, None)
        no_sleep.assert_not_awaited()
        tracking.get_goal.assert_not_awaited()


class TestFetchFailure:
    @pytest.mark.asyncio
    async def test_single_failure_reply_no_status(self, room, tracking, no_sleep):
        tracking.get_goal.side_effect = FetchError("Failed to GET Beeminder. Returned: 503 Service Unavailable")

        await _handler(tracking, no_sleep).handle_text_message(room, "10")

        assert room.send.await_args_list == [
            call(ACK, None),
            call("Failed to get goal details: Failed to GET Beeminder. Returned: 503 Service Unavailable", None),
        ]

    @pytest.mark.asyncio
    async def test_status_send_failure_is_swallowed(self, room, tracking, no_sleep):
        room.send.side_effect = [None, ReplySendError("timeout")]

        await _handler(tracking, no_sleep).handle_text_message(room, "10")

        assert room.send.await_count == 2
        tracking.get_goal.assert_awaited_once()


class TestIsolation:
    @pytest.mark.asyncio
    async def test_cycles_are_independent(self, room, tracking, no_sleep):
        handler = _handler(tracking, no_sleep)
        tracking.create_data_point.side_effect = [SubmissionError("down"), DEFAULT]

        await handler.handle_text_message(room, "1")
        await handler.handle_text_message(room, "2")

        assert tracking.create_data_point.await_count == 2
        tracking.get_goal.assert_awaited_once()
