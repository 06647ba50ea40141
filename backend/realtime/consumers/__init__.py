"""Realtime consumers for WebSocket communication."""

from .base import BaseConsumer
from .notification_consumer import NotificationConsumer

__all__ = [
    "BaseConsumer",
    "NotificationConsumer",
]
