"""
Notification helpers for sending WebSocket messages to connected clients.

Every domain event is delivered through Channels groups:
    - user_<user_id>       every connected user (families and caregivers)
    - caregiver_<user_id>  a caregiver's private offer channel

Event names on the wire use dashes ("new-service-nearby"); the group_send
"type" is the matching consumer handler name ("new_service_nearby").
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.core.serializers.json import DjangoJSONEncoder

logger = logging.getLogger(__name__)

NEW_SERVICE_NEARBY = "new-service-nearby"
CAREGIVER_INTERESTED = "caregiver-interested"
SERVICE_CONFIRMED = "service-confirmed"
SERVICE_CANCELLED = "service-cancelled"
PAYMENT_RECEIVED = "payment-received"
PAYMENT_RELEASED = "payment-released"
CHAT_MESSAGE = "chat-message"

DOMAIN_EVENTS = (
    NEW_SERVICE_NEARBY,
    CAREGIVER_INTERESTED,
    SERVICE_CONFIRMED,
    SERVICE_CANCELLED,
    PAYMENT_RECEIVED,
    PAYMENT_RELEASED,
    CHAT_MESSAGE,
)


def handler_name(event: str) -> str:
    return event.replace("-", "_")


def user_group(user_id) -> str:
    return f"user_{user_id}"


def caregiver_group(user_id) -> str:
    return f"caregiver_{user_id}"


def _jsonable(data: Dict[str, Any]) -> Dict[str, Any]:
    # datetimes and Decimals must survive the channel layer's msgpack encoding
    return json.loads(json.dumps(data, cls=DjangoJSONEncoder))


def _group_send(group: str, event: str, data: Dict[str, Any]) -> bool:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.warning("No channel layer available for %s -> %s", event, group)
        return False

    payload = {
        "type": handler_name(event),
        "event": event,
        "data": _jsonable(data),
    }
    logger.debug("WS -> %s: %s", group, payload)
    async_to_sync(channel_layer.group_send)(group, payload)
    return True


def emit_to_user(user_id, event: str, data: Dict[str, Any]) -> bool:
    """
    Send an event to every connection of a user: user_<user_id>

    Raises whatever the channel layer raises; callers decide whether a
    failed push matters.
    """
    if not user_id:
        return False
    return _group_send(user_group(user_id), event, data)


def emit_to_caregiver(user_id, event: str, data: Dict[str, Any]) -> bool:
    """Send an event to a caregiver's private offer channel: caregiver_<user_id>"""
    if not user_id:
        return False
    return _group_send(caregiver_group(user_id), event, data)


def notify_user(user_id, event: str, data: Dict[str, Any]) -> bool:
    """Best-effort variant of emit_to_user: failures are logged and reported as False."""
    try:
        return emit_to_user(user_id, event, data)
    except Exception:
        logger.exception("Failed to emit '%s' to user %s", event, user_id)
        return False
