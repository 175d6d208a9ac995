"""Messaging interfaces and the Matrix session that drives them."""

from .base import Room, MessageHandler
from .matrix import MatrixClient, MatrixRoom, MatrixSession

__all__ = [
    "Room",
    "MessageHandler",
    "MatrixClient",
    "MatrixRoom",
    "MatrixSession",
]
