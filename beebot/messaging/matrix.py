"""Matrix channel adapter (client-server API over httpx).

Session lifecycle:
    1. Password login
    2. Initial /sync; its timeline is discarded so history is never replayed
    3. Long-poll /sync loop; every new m.text message in a joined room is
       handed to the MessageHandler in its own task
"""

import asyncio
import logging
import uuid
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ..errors import ReplySendError, StartupError
from .base import MessageHandler, Room

logger = logging.getLogger("beebot.matrix")

API_PREFIX = "/_matrix/client/v3"
HTML_FORMAT = "org.matrix.custom.html"


class MatrixError(Exception):
    """A Matrix API call failed."""
    pass


class MatrixClient:
    """Minimal Matrix client: login, sync, send."""

    def __init__(
        self,
        homeserver_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.homeserver_url = homeserver_url.rstrip("/")
        self.timeout = timeout
        self.access_token: Optional[str] = None
        self.user_id: Optional[str] = None
        self._http = httpx.AsyncClient(
            base_url=self.homeserver_url + API_PREFIX,
            timeout=timeout,
            transport=transport,
        )

    def _headers(self) -> dict:
        if not self.access_token:
            return {}
        return {"Authorization": f"Bearer {self.access_token}"}

    async def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        try:
            resp = await self._http.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            raise MatrixError(f"{method} {path} failed: {e}") from e

        if not resp.is_success:
            detail = ""
            try:
                data = resp.json()
            except ValueError:
                data = None
            if isinstance(data, dict) and "errcode" in data:
                detail = f" ({data['errcode']}: {data.get('error')})"
            raise MatrixError(f"{method} {path} returned {resp.status_code}{detail}")

        try:
            data = resp.json()
        except ValueError as e:
            raise MatrixError(f"{method} {path} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise MatrixError(f"{method} {path} returned unexpected payload")
        return data

    async def login(self, username: str, password: str, device_name: Optional[str] = None) -> str:
        """Log in with a password and remember the access token. Returns the user id."""
        body: dict[str, Any] = {
            "type": "m.login.password",
            "identifier": {"type": "m.id.user", "user": username},
            "password": password,
        }
        if device_name:
            body["initial_device_display_name"] = device_name

        data = await self._request("POST", "/login", json=body)
        try:
            self.access_token = data["access_token"]
            self.user_id = data["user_id"]
        except KeyError as e:
            raise MatrixError(f"Login response missing {e}") from e
        logger.info(f"Logged in as {self.user_id}")
        return self.user_id

    async def sync(self, since: Optional[str] = None, timeout_ms: int = 0) -> dict[str, Any]:
        params: dict[str, Any] = {"timeout": timeout_ms}
        if since:
            params["since"] = since
        # Long-poll: the request must outlive the server-side wait
        request_timeout = self.timeout + timeout_ms / 1000
        return await self._request("GET", "/sync", params=params, timeout=request_timeout)

    async def send_message(self, room_id: str, content: dict[str, Any]) -> str:
        """Send an m.room.message event. Returns the new event id."""
        txn_id = uuid.uuid4().hex
        path = f"/rooms/{quote(room_id, safe='')}/send/m.room.message/{txn_id}"
        data = await self._request("PUT", path, json=content)
        return data.get("event_id", "")

    async def close(self):
        await self._http.aclose()


class MatrixRoom(Room):
    """A joined Matrix room."""

    def __init__(self, client: MatrixClient, room_id: str):
        self._client = client
        self._room_id = room_id

    @property
    def room_id(self) -> str:
        return self._room_id

    async def send(self, body: str, html: Optional[str] = None) -> None:
        content: dict[str, Any] = {"msgtype": "m.text", "body": body}
        if html is not None:
            content["format"] = HTML_FORMAT
            content["formatted_body"] = html
        try:
            event_id = await self._client.send_message(self._room_id, content)
        except MatrixError as e:
            raise ReplySendError(str(e)) from e
        logger.debug(f"Sent {event_id} to {self._room_id}")

    def __repr__(self) -> str:
        return f"MatrixRoom({self._room_id!r})"


def extract_text_messages(payload: dict[str, Any], own_user_id: Optional[str] = None) -> list[tuple[str, str]]:
    """Pull ``(room_id, body)`` pairs for text messages out of a /sync payload.

    Only joined rooms are considered. Messages sent by ``own_user_id`` are skipped.
    """
    messages = []
    rooms = payload.get("rooms")
    joined = rooms.get("join") if isinstance(rooms, dict) else None
    if not isinstance(joined, dict):
        return messages
    for room_id, room in joined.items():
        timeline = room.get("timeline") if isinstance(room, dict) else None
        events = timeline.get("events") if isinstance(timeline, dict) else None
        if not isinstance(events, list):
            continue
        for event in events:
            if not isinstance(event, dict) or event.get("type") != "m.room.message":
                continue
            if own_user_id and event.get("sender") == own_user_id:
                continue
            content = event.get("content")
            if not isinstance(content, dict):
                continue
            body = content.get("body")
            if content.get("msgtype") != "m.text" or not isinstance(body, str):
                continue
            messages.append((room_id, body))
    return messages


class MatrixSession:
    """Logs in, syncs, and routes room messages to a MessageHandler."""

    def __init__(
        self,
        client: MatrixClient,
        handler: MessageHandler,
        username: str,
        password: str,
        device_name: Optional[str] = "Beeminder",
        sync_timeout_ms: int = 30_000,
        retry_interval: float = 5.0,
    ):
        self.client = client
        self.handler = handler
        self._username = username
        self._password = password
        self._device_name = device_name
        self.sync_timeout_ms = sync_timeout_ms
        self.retry_interval = retry_interval
        self.since: Optional[str] = None
        self._running = False
        self._tasks: set[asyncio.Task] = set()

    async def start(self):
        """Log in and perform the initial sync.

        Raises:
            StartupError: Login or the initial sync failed.
        """
        try:
            await self.client.login(self._username, self._password, self._device_name)
        except MatrixError as e:
            raise StartupError(f"Failed to login to Matrix: {e}") from e

        # Skip everything that happened before the bot came up
        try:
            payload = await self.client.sync(timeout_ms=0)
        except MatrixError as e:
            raise StartupError(f"Failed initial Matrix sync: {e}") from e
        self.since = payload.get("next_batch")
        if not self.since:
            raise StartupError("Initial Matrix sync returned no sync token")
        logger.info("Initial sync done, listening for messages.")

    async def sync_once(self) -> int:
        """Run one /sync round and dispatch its messages. Returns how many were dispatched."""
        payload = await self.client.sync(since=self.since, timeout_ms=self.sync_timeout_ms)
        self.since = payload.get("next_batch") or self.since

        messages = extract_text_messages(payload, own_user_id=self.client.user_id)
        for room_id, body in messages:
            self._dispatch(MatrixRoom(self.client, room_id), body)
        return len(messages)

    def _dispatch(self, room: Room, body: str):
        task = asyncio.create_task(self.handler.handle_text_message(room, body))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Message handler crashed: {type(exc).__name__}: {exc}", exc_info=exc)

    async def run(self):
        """Sync until stop() is called."""
        self._running = True
        while self._running:
            try:
                count = await self.sync_once()
                if count:
                    logger.debug(f"Dispatched {count} message(s)")
            except MatrixError as e:
                logger.warning(f"Matrix sync failed: {e}; retrying in {self.retry_interval}s")
                await asyncio.sleep(self.retry_interval)
            except Exception as e:
                logger.error(f"Unexpected error in sync loop: {type(e).__name__}: {e}", exc_info=True)
                await asyncio.sleep(self.retry_interval)

    def stop(self):
        self._running = False

    @property
    def pending(self) -> int:
        """Number of message cycles still in flight."""
        return len(self._tasks)

    async def close(self):
        """Stop syncing and drop in-flight message cycles."""
        self.stop()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.client.close()
