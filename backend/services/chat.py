"""
Chat between a family and the caregiver assigned to their service.

Only the two parties of the service can read or write its messages, and only
once a caregiver has been assigned. A new message is pushed to the other
party when they are connected, otherwise they get an email.
"""

import logging
from typing import Any, Dict, Optional

from accounts.models import User
from care_services.models import CareService, ChatMessage
from realtime.notifications import CHAT_MESSAGE, notify_user
from realtime.presence import get_presence_registry
from services.messaging import email
from services.service_management.exceptions import (
    InvalidServiceStateError,
    NotServiceOwnerError,
    ServiceNotFoundError,
    ServiceValidationError,
)

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000
EMAIL_PREVIEW_LENGTH = 140


def _message_payload(message: ChatMessage) -> Dict[str, Any]:
    return {
        "id": message.id,
        "service_id": message.service_id,
        "sender_id": message.sender_id,
        "content": message.content,
        "is_read": message.is_read,
        "created_at": message.created_at,
    }


def _get_chat_service(user: User, service_id) -> CareService:
    try:
        service = CareService.objects.select_related("family", "caregiver").get(id=service_id)
    except CareService.DoesNotExist:
        raise ServiceNotFoundError("Service not found")

    if user.id not in (service.family_id, service.caregiver_id):
        raise NotServiceOwnerError("Not your service")
    if service.caregiver_id is None:
        raise InvalidServiceStateError("Chat opens once a caregiver is assigned")
    return service


def _other_party(service: CareService, user: User) -> User:
    return service.caregiver if user.id == service.family_id else service.family


def get_messages(user: User, service_id) -> Dict[str, Any]:
    """Messages of the service, oldest first, plus the latest one as a summary."""
    service = _get_chat_service(user, service_id)
    messages = list(service.messages.all())

    last: Optional[ChatMessage] = messages[-1] if messages else None
    return {
        "service_id": service.id,
        "messages": messages,
        "last_message": last,
        "unread": sum(1 for m in messages if not m.is_read and m.sender_id != user.id),
    }


def add_message(user: User, service_id, content: str) -> ChatMessage:
    content = (content or "").strip()
    if not content:
        raise ServiceValidationError("Message cannot be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ServiceValidationError(f"Message is longer than {MAX_MESSAGE_LENGTH} characters")

    service = _get_chat_service(user, service_id)
    message = ChatMessage.objects.create(service=service, sender=user, content=content)
    logger.info("Chat message %s on service %s from user %s", message.id, service.id, user.id)

    _deliver(service, message, _other_party(service, user))
    return message


def mark_as_read(user: User, service_id) -> int:
    """Marks the other party's unread messages as read; returns how many changed."""
    service = _get_chat_service(user, service_id)
    return (
        ChatMessage.objects
        .filter(service=service, is_read=False)
        .exclude(sender=user)
        .update(is_read=True)
    )


def _deliver(service: CareService, message: ChatMessage, recipient: User) -> None:
    if get_presence_registry().is_online(recipient.id):
        if notify_user(recipient.id, CHAT_MESSAGE, _message_payload(message)):
            return

    if not recipient.email:
        return
    preview = message.content
    if len(preview) > EMAIL_PREVIEW_LENGTH:
        preview = preview[:EMAIL_PREVIEW_LENGTH - 3] + "..."
    try:
        email.send_chat_message_email(
            recipient.email,
            recipient.display_name,
            service_id=service.id,
            sender_name=message.sender.display_name,
            preview=preview,
        )
    except Exception:
        logger.exception("Failed to email user %s about chat message %s", recipient.id, message.id)
