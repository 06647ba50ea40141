"""
Escrow payments for care services.

    checkout  -> family pays amount + family commission through the gateway
    webhook / confirm -> payment approved, money is held by the platform
    release   -> admin releases the net amount to the caregiver once the
                 service is completed
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict

from django.conf import settings
from django.db.models import Q
from django.utils import timezone

from accounts.models import User
from care_services.models import CareService
from realtime.notifications import PAYMENT_RECEIVED, PAYMENT_RELEASED, notify_user
from services.messaging import email
from services.service_management.exceptions import (
    InvalidServiceStateError,
    NotServiceOwnerError,
    PaymentError,
    ServiceNotFoundError,
)
from .gateway import PaymentGatewayError, get_payment_gateway

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
PAYABLE_STATUSES = (CareService.PAYMENT_PENDING, CareService.PAYMENT_FAILED)


def _money(value) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_amounts(hourly_rate, duration_hours) -> Dict[str, Decimal]:
    """
    Split a service price between family, caregiver and platform.

    Both sides pay PLATFORM_COMMISSION_RATE of the service amount: the family
    on top of it, the caregiver out of it.
    """
    rate = Decimal(settings.PLATFORM_COMMISSION_RATE)
    service_amount = _money(Decimal(hourly_rate) * (duration_hours or 1))
    commission = _money(service_amount * rate)
    return {
        "service_amount": service_amount,
        "family_commission": commission,
        "caregiver_commission": commission,
        "caregiver_receives": service_amount - commission,
        "total": service_amount + commission,
    }


def _get_service(service_id) -> CareService:
    try:
        return CareService.objects.select_related("family", "caregiver").get(id=service_id)
    except CareService.DoesNotExist:
        raise ServiceNotFoundError("Service not found")


def create_checkout(family: User, service_id) -> Dict[str, Any]:
    """
    Create a gateway checkout for the service's assigned caregiver.

    Raises:
        ServiceNotFoundError, NotServiceOwnerError
        InvalidServiceStateError: no caregiver assigned yet
        PaymentError: already paid, rate missing or gateway failure
    """
    service = _get_service(service_id)
    if service.family_id != family.id:
        raise NotServiceOwnerError("Not your service")
    if service.caregiver_id is None:
        raise InvalidServiceStateError("No caregiver assigned")
    if service.payment_status not in PAYABLE_STATUSES:
        raise PaymentError(f"Payment already {service.payment_status}")

    profile = service.caregiver.caregiver_profile
    if not profile.hourly_rate or profile.hourly_rate <= 0:
        raise PaymentError("Caregiver hourly rate not set")

    amounts = calculate_amounts(profile.hourly_rate, service.duration_hours)

    from services.matching import service_type_label
    try:
        preference = get_payment_gateway().create_preference(
            reference=str(service.id),
            title=f"Care service: {service_type_label(service.service_type)}",
            description=f"Care for {service.patient_name or 'patient'} - {service.duration_hours}h",
            amount=amounts["total"],
            currency=settings.PAYMENT_CURRENCY,
            back_url=f"{settings.FRONTEND_URL}/family/services/{service.id}",
            notification_url=f"{settings.BACKEND_URL}/api/payments/webhook/",
            metadata={"service_id": service.id, "family_user_id": family.id},
        )
    except PaymentGatewayError as exc:
        raise PaymentError(str(exc)) from exc

    CareService.objects.filter(id=service.id).update(
        amount=amounts["service_amount"],
        commission_family=amounts["family_commission"],
        commission_caregiver=amounts["caregiver_commission"],
        net_amount=amounts["caregiver_receives"],
        payment_preference_id=preference["id"] or "",
        updated_at=timezone.now(),
    )

    logger.info(
        "Created checkout %s for service %s, total %s %s",
        preference["id"], service.id, amounts["total"], settings.PAYMENT_CURRENCY
    )

    return {
        "preference_id": preference["id"],
        "init_point": preference["init_point"],
        "sandbox_init_point": preference["sandbox_init_point"],
        "total_amount": amounts["total"],
        "breakdown": amounts,
    }


def _mark_held(service_id, payment: Dict[str, Any]) -> bool:
    """Record an approved payment; returns False when it was already recorded."""
    updated = CareService.objects.filter(
        id=service_id,
        payment_status__in=PAYABLE_STATUSES,
    ).update(
        payment_status=CareService.PAYMENT_HELD,
        payment_reference=str(payment.get("id", "")),
        updated_at=timezone.now(),
    )
    if not updated:
        logger.info("Payment for service %s already recorded", service_id)
        return False

    service = _get_service(service_id)
    amount = payment.get("transaction_amount")
    data = {"service_id": service.id, "amount": amount}

    notify_user(service.family_id, PAYMENT_RECEIVED, data)
    if service.caregiver is not None:
        notify_user(service.caregiver_id, PAYMENT_RECEIVED, data)
        if service.caregiver.email:
            from services.matching import service_type_label
            try:
                email.send_payment_received_email(
                    service.caregiver.email,
                    service.caregiver.display_name,
                    service_id=service.id,
                    service_type=service_type_label(service.service_type),
                    family_name=service.family.display_name,
                    amount=amount or 0,
                )
            except Exception:
                logger.exception("Failed to email caregiver %s about payment", service.caregiver_id)

    logger.info("Payment approved for service %s, now held", service_id)
    return True


def handle_payment_webhook(body: Dict[str, Any]) -> Dict[str, str]:
    """Process a gateway notification; always answers so the gateway stops retrying."""
    logger.info("Payment webhook received: %s", body)

    if body.get("type") != "payment":
        return {"status": "ignored"}

    payment_id = (body.get("data") or {}).get("id")
    if not payment_id:
        return {"status": "ignored"}

    try:
        payment = get_payment_gateway().get_payment(payment_id)
    except PaymentGatewayError:
        logger.exception("Could not fetch payment %s", payment_id)
        return {"status": "error"}

    logger.info(
        "Payment %s: status=%s ref=%s",
        payment_id, payment.get("status"), payment.get("external_reference")
    )

    reference = payment.get("external_reference")
    if payment.get("status") == "approved" and reference:
        if not str(reference).isdigit() or not CareService.objects.filter(id=reference).exists():
            logger.warning("Payment %s references unknown service %s", payment_id, reference)
            return {"status": "ignored"}
        _mark_held(reference, payment)

    return {"status": "ok"}


def confirm_payment(user: User, service_id) -> Dict[str, Any]:
    """Look the payment up directly when the webhook did not arrive."""
    service = _get_service(service_id)
    if service.family_id != user.id:
        raise NotServiceOwnerError("Not your service")

    if service.payment_status in (CareService.PAYMENT_HELD, CareService.PAYMENT_RELEASED):
        return {"status": "already_paid", "payment_status": service.payment_status}

    if not service.payment_preference_id:
        return {"status": "no_preference", "payment_status": service.payment_status}

    try:
        payments = get_payment_gateway().search_payments(str(service.id))
    except PaymentGatewayError as exc:
        logger.warning("Payment search failed for service %s: %s", service.id, exc)
        return {"status": "search_failed", "payment_status": service.payment_status}

    approved = next((p for p in payments if p.get("status") == "approved"), None)
    if approved:
        _mark_held(service.id, approved)
        return {"status": "confirmed", "payment_status": CareService.PAYMENT_HELD}

    if any(p.get("status") in ("pending", "in_process") for p in payments):
        return {"status": "pending", "payment_status": service.payment_status}

    return {"status": "not_found", "payment_status": service.payment_status}


def release_payment(service_id) -> Dict[str, Any]:
    """Admin action: pay the caregiver out of escrow for a completed service."""
    service = _get_service(service_id)
    if service.payment_status != CareService.PAYMENT_HELD:
        raise PaymentError("Payment not in escrow")
    if service.status != CareService.STATUS_COMPLETED:
        raise InvalidServiceStateError("Service not completed")

    released_at = timezone.now()
    updated = CareService.objects.filter(
        id=service.id,
        payment_status=CareService.PAYMENT_HELD,
        status=CareService.STATUS_COMPLETED,
    ).update(payment_status=CareService.PAYMENT_RELEASED, released_at=released_at, updated_at=released_at)
    if not updated:
        raise PaymentError("Payment was released by another request")

    if service.caregiver is not None:
        notify_user(service.caregiver_id, PAYMENT_RELEASED, {
            "service_id": service.id,
            "net_amount": service.net_amount,
        })
        if service.caregiver.email:
            try:
                email.send_payment_released_email(
                    service.caregiver.email,
                    service.caregiver.display_name,
                    service_id=service.id,
                    net_amount=service.net_amount or 0,
                )
            except Exception:
                logger.exception("Failed to email caregiver %s about released payment", service.caregiver_id)

    logger.info("Payment released for service %s: %s", service.id, service.net_amount)
    return {
        "status": CareService.PAYMENT_RELEASED,
        "net_amount": service.net_amount,
        "released_at": released_at,
    }


def get_payment_status(user: User, service_id) -> Dict[str, Any]:
    service = _get_service(service_id)
    if user.role != User.ROLE_ADMIN and user.id not in (service.family_id, service.caregiver_id):
        raise NotServiceOwnerError("Not your service")
    return {
        "service_id": service.id,
        "amount": service.amount,
        "payment_status": service.payment_status,
        "payment_reference": service.payment_reference,
        "commission_family": service.commission_family,
        "commission_caregiver": service.commission_caregiver,
        "net_amount": service.net_amount,
        "released_at": service.released_at,
    }


def list_payment_history(user: User):
    """Services with a payment in flight or settled, plus accepted ones awaiting payment."""
    owner = Q(family=user) if user.role == User.ROLE_FAMILY else Q(caregiver=user)
    return (
        CareService.objects.filter(owner)
        .filter(
            Q(payment_status__in=[
                CareService.PAYMENT_HELD,
                CareService.PAYMENT_RELEASED,
            ])
            | Q(status=CareService.STATUS_ACCEPTED)
            | ~Q(payment_preference_id="")
        )
        .order_by("-updated_at")
    )
