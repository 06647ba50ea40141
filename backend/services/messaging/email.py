"""
Transactional email for the matching and payment flows.

Every function sends one message through Django's configured email backend
and raises on failure; callers decide whether a failed delivery matters
(in the matching flows it never does).
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.core.mail import send_mail

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "[CareHub] "


def _service_url(service_id) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/services/{service_id}"


def _format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "to be arranged"
    return value.strftime("%Y-%m-%d %H:%M")


def _send(to_email: str, subject: str, body: str) -> None:
    send_mail(
        subject=SUBJECT_PREFIX + subject,
        message=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        recipient_list=[to_email],
        fail_silently=False,
    )
    logger.info("Email '%s' sent to %s", subject, to_email)


def send_service_nearby_email(
    to_email: str,
    caregiver_name: str,
    *,
    service_id,
    service_type: str,
    patient_name: str,
    distance_km: float,
    scheduled_date: Optional[datetime],
    duration_hours: int,
) -> None:
    body = (
        f"Hi {caregiver_name},\n\n"
        f"A family {distance_km:.1f} km away is looking for help with {service_type}.\n\n"
        f"Patient: {patient_name}\n"
        f"Date: {_format_date(scheduled_date)}\n"
        f"Duration: {duration_hours} h\n\n"
        f"Let them know if you are interested: {_service_url(service_id)}\n"
    )
    _send(to_email, f"New {service_type} request near you", body)


def send_caregiver_interested_email(
    to_email: str,
    family_name: str,
    *,
    service_id,
    service_type: str,
    caregiver_name: str,
) -> None:
    body = (
        f"Hi {family_name},\n\n"
        f"{caregiver_name} is interested in your {service_type} request.\n"
        f"Review the candidates and pick your caregiver: {_service_url(service_id)}\n"
    )
    _send(to_email, "A caregiver is interested in your request", body)


def send_caregiver_selected_email(
    to_email: str,
    caregiver_name: str,
    *,
    service_id,
    service_type: str,
    family_name: str,
    patient_name: str,
) -> None:
    body = (
        f"Hi {caregiver_name},\n\n"
        f"{family_name} selected you for their {service_type} request (patient: {patient_name}).\n"
        f"You will be notified once the payment is confirmed: {_service_url(service_id)}\n"
    )
    _send(to_email, "You have been selected", body)


def send_service_cancelled_email(
    to_email: str,
    caregiver_name: str,
    *,
    service_id,
    service_type: str,
    reason: str,
) -> None:
    body = (
        f"Hi {caregiver_name},\n\n"
        f"The {service_type} service you were assigned to was cancelled by the family.\n"
        f"Reason: {reason or 'not given'}\n"
    )
    _send(to_email, "Service cancelled", body)


def send_payment_received_email(
    to_email: str,
    caregiver_name: str,
    *,
    service_id,
    service_type: str,
    family_name: str,
    amount: Decimal,
) -> None:
    body = (
        f"Hi {caregiver_name},\n\n"
        f"{family_name} paid {amount} for the {service_type} service. "
        f"The funds are held until the service is completed.\n"
        f"Details: {_service_url(service_id)}\n"
    )
    _send(to_email, "Payment received, you can start the service", body)


def send_payment_released_email(
    to_email: str,
    caregiver_name: str,
    *,
    service_id,
    net_amount: Decimal,
) -> None:
    body = (
        f"Hi {caregiver_name},\n\n"
        f"{net_amount} has been released to you for service #{service_id}. Thank you!\n"
    )
    _send(to_email, "Payment released", body)


def send_chat_message_email(
    to_email: str,
    recipient_name: str,
    *,
    service_id,
    sender_name: str,
    preview: str,
) -> None:
    body = (
        f"Hi {recipient_name},\n\n"
        f"{sender_name} sent you a message:\n\n"
        f"  {preview}\n\n"
        f"Reply here: {_service_url(service_id)}\n"
    )
    _send(to_email, f"New message from {sender_name}", body)
