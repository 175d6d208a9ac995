"""beebot runtime: wire settings, Beeminder, and the Matrix session together."""

import asyncio
import logging
import os

from .config import BeebotSettings
from .handler import UpdateProtocolHandler
from .messaging.matrix import MatrixClient, MatrixSession
from .tracking.beeminder import BeeminderClient

_log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("beebot")


def configure_logging(log_file: str | None = None, debug: bool = False):
    """Log to stderr, and to ``log_file`` when given."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(os.path.expanduser(log_file), encoding="utf-8"))

    logging.basicConfig(level=logging.INFO, format=_log_format, handlers=handlers)
    if debug:
        logging.getLogger("beebot").setLevel(logging.DEBUG)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def build_session(settings: BeebotSettings) -> MatrixSession:
    """Create the Matrix session with the update protocol as its handler."""
    tracking = BeeminderClient(
        username=settings.beeminder_username,
        goal=settings.beeminder_goal,
        auth_token=settings.beeminder_auth_token.get_secret_value(),
        base_url=settings.beeminder_base_url,
        timeout=settings.http_timeout,
    )
    handler = UpdateProtocolHandler(tracking, status_delay=settings.status_delay)
    client = MatrixClient(settings.matrix_homeserver_url, timeout=settings.http_timeout)
    return MatrixSession(
        client,
        handler,
        username=settings.matrix_username,
        password=settings.matrix_password.get_secret_value(),
        device_name=settings.matrix_device_name,
        sync_timeout_ms=settings.matrix_sync_timeout_ms,
        retry_interval=settings.matrix_retry_interval,
    )


async def run(settings: BeebotSettings):
    """Main run loop.

    Raises:
        StartupError: Matrix login or initial sync failed.
    """
    session = build_session(settings)
    try:
        await session.start()
        logger.info(
            f"beebot is running for goal {settings.beeminder_username}/{settings.beeminder_goal}. "
            "Press Ctrl+C to stop."
        )
        await session.run()
    finally:
        if session.pending:
            logger.info(f"Dropping {session.pending} message(s) still in progress.")
        await session.close()


def main(settings: BeebotSettings):
    """Blocking entry point."""
    asyncio.run(run(settings))
