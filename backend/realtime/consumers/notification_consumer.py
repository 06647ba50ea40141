"""Notification consumer shared by families and caregivers."""

import logging
from typing import Dict, Any

from asgiref.sync import sync_to_async

from accounts.models import User
from realtime.notifications import caregiver_group
from realtime.presence import get_presence_registry
from .base import BaseConsumer

logger = logging.getLogger(__name__)


class NotificationConsumer(BaseConsumer):
    """
    WebSocket consumer for /ws/notifications/.

    Caregivers additionally join caregiver_<id>, where service offers are
    pushed. Incoming messages:
        - register: (re)confirm presence for this connection
        - ping:     keepalive, renews the presence lease
    """

    async def on_connect(self):
        if self.role == User.ROLE_CAREGIVER:
            await self._join_group(caregiver_group(self.user_id))
            logger.info("Caregiver %s online (%s)", self.user_id, self.channel_name)

        await self.send_json({
            "type": "connection_established",
            "user_id": self.user_id,
            "role": self.role,
        })

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "register":
            # Identity comes from the authenticated scope, never the payload
            await sync_to_async(get_presence_registry().register)(self.user_id, self.channel_name)
            await self.send_success("registered", status="ok", user_id=self.user_id)
        elif msg_type == "ping":
            # heartbeat keeps the presence lease alive
            await sync_to_async(get_presence_registry().touch)(self.channel_name)
            await self.send_success("pong")
        else:
            await self.send_error(f"Unknown message type: {msg_type}")
