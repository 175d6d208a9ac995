"""Channel-agnostic messaging interfaces."""

from abc import ABC, abstractmethod
from typing import Optional


class Room(ABC):
    """A chat room the bot can reply into."""

    @property
    @abstractmethod
    def room_id(self) -> str:
        ...

    @abstractmethod
    async def send(self, body: str, html: Optional[str] = None) -> None:
        """Send one message, optionally with an HTML rendering.

        Raises:
            ReplySendError: The message could not be delivered.
        """
        ...


class MessageHandler(ABC):
    """Receives inbound text messages from a messaging session."""

    @abstractmethod
    async def handle_text_message(self, room: Room, body: str) -> None:
        """Handle one text message that arrived in ``room``.

        Must not raise: every failure ends inside the handler.
        """
        ...
