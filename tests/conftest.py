"""Pytest configuration and shared fixtures."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from beebot.tracking.provider import Datapoint, Goal


@pytest.fixture
def room():
    """A room whose send() always succeeds."""
    room = MagicMock()
    room.room_id = "!room:example.org"
    room.send = AsyncMock(return_value=None)
    return room


@pytest.fixture
def datapoint():
    return Datapoint(
        id="5f2c1a",
        timestamp=1714550400,
        daystamp="20240501",
        value=42.5,
        updated_at=1714550401,
        requestid="BOT_2024-05-01",
    )


@pytest.fixture
def goal():
    return Goal(slug="pushups", safebuf=3, graph_url="https://x/g.svg")


@pytest.fixture
def tracking(datapoint, goal):
    """A tracking service where every call succeeds."""
    service = MagicMock()
    service.name = "Beeminder"
    service.create_data_point = AsyncMock(return_value=datapoint)
    service.get_goal = AsyncMock(return_value=goal)
    return service


@pytest.fixture
def no_sleep():
    return AsyncMock(return_value=None)


@pytest.fixture
def config_values():
    return {
        "beeminder_username": "alice",
        "beeminder_goal": "pushups",
        "beeminder_auth_token": "bm-token",
        "matrix_homeserver_url": "https://matrix.example.org",
        "matrix_username": "beebot",
        "matrix_password": "hunter2",
    }
