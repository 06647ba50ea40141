"""Base WebSocket consumer with shared functionality for all consumers."""

import logging
from typing import Dict, Any, Set

from asgiref.sync import sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from realtime.notifications import user_group
from realtime.presence import get_presence_registry

logger = logging.getLogger(__name__)


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Base consumer with shared connection management and helper methods.

    Every authenticated connection joins user_<id> and is registered in the
    presence registry until it disconnects.

    Subclasses should override:
        - on_connect(): extra groups / greeting
        - handle_message(msg_type, data): handle incoming messages
    """

    async def connect(self):
        self.user = self.scope["user"]

        if self.user.is_anonymous:
            await self.close()
            return

        # Basic attributes available to all consumers
        self.user_id = getattr(self.user, "id", None)
        self.role = getattr(self.user, "role", None)

        # Track joined groups for cleanup
        self.joined_groups: Set[str] = set()

        # Personal group (useful for targeted server->user messages)
        await self._join_group(user_group(self.user_id))

        await self.accept()
        await sync_to_async(get_presence_registry().register)(self.user_id, self.channel_name)
        await self.on_connect()

    async def on_connect(self):
        """Override in subclass for custom connect logic."""
        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def disconnect(self, close_code):
        """Leave all joined groups and drop presence on disconnect."""
        if not hasattr(self, "joined_groups"):
            return  # rejected before accept
        try:
            await sync_to_async(get_presence_registry().unregister)(self.channel_name)
            for group in list(self.joined_groups):
                await self._leave_group(group)
            await self.on_disconnect(close_code)
        except Exception:
            logger.exception("Error during disconnect for user %s", getattr(self, 'user_id', 'unknown'))

    async def on_disconnect(self, close_code):
        """Override in subclass for custom disconnect logic."""
        pass

    async def receive_json(self, data: Dict[str, Any]):
        """Route incoming messages to appropriate handlers."""
        msg_type = data.get("type")
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, data)
        except Exception:
            logger.exception("Error handling message type %s", msg_type)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        """Override in subclass to handle specific message types."""
        await self.send_error(f"Unknown message type: {msg_type}")

    # ---------------------- Group Management Helpers ----------------------

    async def _join_group(self, group_name: str):
        """Join a channel group and track it."""
        await self.channel_layer.group_add(group_name, self.channel_name)
        self.joined_groups.add(group_name)

    async def _leave_group(self, group_name: str):
        """Leave a channel group and untrack it."""
        await self.channel_layer.group_discard(group_name, self.channel_name)
        self.joined_groups.discard(group_name)

    # ---------------------- Response Helpers ----------------------

    async def send_error(self, message: str):
        """Send an error message to the client."""
        await self.send_json({
            "type": "error",
            "message": message,
        })

    async def send_success(self, event_type: str, **kwargs):
        """Send a success response to the client."""
        await self.send_json({
            "type": event_type,
            **kwargs,
        })

    async def forward_event(self, event):
        """Relay a domain event as {"type": "<event-name>", **data}."""
        await self.send_json({
            "type": event.get("event"),
            **(event.get("data") or {}),
        })

    # ---------------------- Domain Event Handlers ----------------------
    # These handle group_send events from realtime.notifications

    async def new_service_nearby(self, event):
        """Sent to a caregiver when a service near them is posted."""
        await self.forward_event(event)

    async def caregiver_interested(self, event):
        """Sent to a family when a caregiver answers their offer."""
        await self.forward_event(event)

    async def service_confirmed(self, event):
        """Sent to the caregiver the family selected."""
        await self.forward_event(event)

    async def service_cancelled(self, event):
        """Sent to the assigned caregiver when the family cancels."""
        await self.forward_event(event)

    async def payment_received(self, event):
        await self.forward_event(event)

    async def payment_released(self, event):
        await self.forward_event(event)

    async def chat_message(self, event):
        """Sent to the other party of a service when a chat message arrives."""
        await self.forward_event(event)
