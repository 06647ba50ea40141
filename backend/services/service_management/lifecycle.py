"""
Core care service lifecycle operations.

Status flow:
    pending -> matched -> accepted -> in_progress -> completed
    cancelled is reachable from every non-terminal status.

Each status change is a compare-and-swap on (id, status, version), so two
concurrent requests cannot both move the same service.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import User
from caregivers.models import CaregiverProfile
from care_services.models import CareService, ServiceNotification, ServiceType
from common.background import submit_task
from common.utils import is_valid_coordinate
from realtime.notifications import (
    CAREGIVER_INTERESTED,
    SERVICE_CANCELLED,
    SERVICE_CONFIRMED,
    notify_user,
)
from realtime.presence import get_presence_registry
from services.messaging import email
from .exceptions import (
    CaregiverNotFoundError,
    ConcurrentUpdateError,
    InvalidServiceStateError,
    NotificationNotFoundError,
    NotServiceOwnerError,
    ServiceNotFoundError,
    ServiceValidationError,
)

logger = logging.getLogger(__name__)

# Fields a family may change while the service is still pending
EDITABLE_FIELDS = frozenset({
    "patient_name",
    "patient_age",
    "patient_condition",
    "special_needs",
    "notes",
    "address",
    "scheduled_date",
    "duration_hours",
})


@dataclass
class ServiceResult:
    """Result object for service operations."""
    success: bool
    service: Optional[CareService] = None
    message: str = ""
    extra: Optional[Dict[str, Any]] = None


# ===================== Lookup Helpers =====================

def _get_service(service_id) -> CareService:
    try:
        return CareService.objects.select_related("family", "caregiver").get(id=service_id)
    except CareService.DoesNotExist:
        raise ServiceNotFoundError("Service not found")


def _get_family_service(family: User, service_id) -> CareService:
    service = _get_service(service_id)
    if service.family_id != family.id:
        raise NotServiceOwnerError("Not your service")
    return service


def _get_assigned_service(caregiver: User, service_id) -> CareService:
    service = _get_service(service_id)
    if service.caregiver_id != caregiver.id:
        raise NotServiceOwnerError("Not your service: you are not the assigned caregiver")
    return service


def _get_caregiver_profile(user: User) -> CaregiverProfile:
    try:
        return user.caregiver_profile
    except CaregiverProfile.DoesNotExist:
        raise CaregiverNotFoundError("Caregiver profile not found")


def _require_status(service: CareService, expected: Iterable[str], action: str) -> None:
    expected = tuple(expected)
    if service.status not in expected:
        raise InvalidServiceStateError(
            f"Cannot {action}: service is {service.status}, expected {' or '.join(expected)}"
        )


def _transition(service: CareService, expected: Iterable[str], new_status: str, **changes) -> CareService:
    """
    Move a service to a new status if nobody else moved it first.

    Raises:
        ConcurrentUpdateError: the row no longer matches the status/version we read
    """
    updated = CareService.objects.filter(
        id=service.id,
        status__in=tuple(expected),
        version=service.version,
    ).update(
        status=new_status,
        version=F("version") + 1,
        updated_at=timezone.now(),
        **changes,
    )
    if not updated:
        raise ConcurrentUpdateError("Service was modified by another request, please retry")

    service.refresh_from_db()
    logger.info("Service %s -> %s", service.id, new_status)
    return service


def _clean_location(lat, lng):
    if lat is None and lng is None:
        return None, None
    if not is_valid_coordinate(lat, lng):
        raise ServiceValidationError("Location must be a valid latitude/longitude pair")
    return lat, lng


# ===================== Family Operations =====================

@transaction.atomic
def create_service(
    family: User,
    service_type: str,
    scheduled_date,
    duration_hours: int = 1,
    patient_name: str = "",
    patient_age: Optional[int] = None,
    patient_condition: str = "",
    special_needs: str = "",
    address: str = "",
    location_latitude=None,
    location_longitude=None,
    notes: str = "",
) -> ServiceResult:
    """
    Create a new care request and queue the nearby-caregiver fan-out.

    The fan-out runs in the background after commit; its outcome never
    reaches the family.

    Raises:
        ServiceValidationError: unknown service type, bad duration or location
    """
    if service_type not in ServiceType.values:
        raise ServiceValidationError(f"Unknown service type: {service_type}")
    if not duration_hours or int(duration_hours) < 1:
        raise ServiceValidationError("Duration must be at least one hour")

    lat, lng = _clean_location(location_latitude, location_longitude)

    # Fall back to the family's saved address/location
    profile = getattr(family, "family_profile", None)
    if lat is None and profile is not None and profile.location_latitude is not None:
        lat, lng = profile.location_latitude, profile.location_longitude
        address = address or profile.address

    service = CareService.objects.create(
        family=family,
        service_type=service_type,
        scheduled_date=scheduled_date,
        duration_hours=duration_hours,
        patient_name=patient_name,
        patient_age=patient_age,
        patient_condition=patient_condition,
        special_needs=special_needs,
        address=address,
        location_latitude=lat,
        location_longitude=lng,
        notes=notes,
        status=CareService.STATUS_PENDING,
    )

    if not service.has_location:
        logger.warning("Service %s created without a location; no caregivers will be notified", service.id)

    from care_services.tasks import notify_nearby_caregivers_task
    submit_task(notify_nearby_caregivers_task, service.id)

    return ServiceResult(
        success=True,
        service=service,
        message="Request created. Notifying nearby caregivers...",
    )


def update_service(family: User, service_id, **fields) -> ServiceResult:
    """Edit free-text and schedule fields of a pending service."""
    unknown = set(fields) - EDITABLE_FIELDS
    if unknown:
        raise ServiceValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
    if "duration_hours" in fields and int(fields["duration_hours"]) < 1:
        raise ServiceValidationError("Duration must be at least one hour")

    service = _get_family_service(family, service_id)
    _require_status(service, [CareService.STATUS_PENDING], "edit the service")

    if fields:
        updated = CareService.objects.filter(
            id=service.id, status=CareService.STATUS_PENDING
        ).update(updated_at=timezone.now(), **fields)
        if not updated:
            raise ConcurrentUpdateError("Service was modified by another request, please retry")
        service.refresh_from_db()

    return ServiceResult(success=True, service=service, message="Service updated")


@transaction.atomic
def delete_service(family: User, service_id) -> ServiceResult:
    """Delete a pending service together with its pending offers."""
    service = _get_family_service(family, service_id)
    _require_status(service, [CareService.STATUS_PENDING], "delete the service")

    removed, _ = service.notifications.filter(status=ServiceNotification.STATUS_PENDING).delete()
    deleted, _ = CareService.objects.filter(id=service.id, status=CareService.STATUS_PENDING).delete()
    if not deleted:
        raise ConcurrentUpdateError("Service was modified by another request, please retry")

    logger.info("Service %s deleted by family %s (%d pending offers removed)", service_id, family.id, removed)
    return ServiceResult(success=True, message="Service deleted", extra={"notifications_removed": removed})


def select_caregiver(family: User, service_id, caregiver_id) -> ServiceResult:
    """
    Family picks one of the caregivers who answered the offer.

    The chosen offer becomes accepted, every other interested offer is
    declined, then the payment checkout is created and the caregiver told.

    Args:
        family: Family user who owns the service
        service_id: CareService id
        caregiver_id: CaregiverProfile id of the chosen caregiver
    """
    with transaction.atomic():
        service = _get_family_service(family, service_id)
        _require_status(service, [CareService.STATUS_MATCHED], "select a caregiver")

        try:
            profile = CaregiverProfile.objects.select_related("user").get(id=caregiver_id)
        except CaregiverProfile.DoesNotExist:
            raise CaregiverNotFoundError("Caregiver not found")

        chosen = (
            service.notifications
            .filter(
                caregiver=profile,
                status__in=[ServiceNotification.STATUS_INTERESTED, ServiceNotification.STATUS_PENDING],
            )
            # "interested" sorts before "pending"; then the latest round
            .order_by("status", "-matching_round")
            .first()
        )
        if chosen is None:
            raise NotificationNotFoundError("This caregiver has no open offer for the service")

        _transition(
            service,
            [CareService.STATUS_MATCHED],
            CareService.STATUS_ACCEPTED,
            caregiver=profile.user,
        )

        now = timezone.now()
        chosen.status = ServiceNotification.STATUS_ACCEPTED
        chosen.responded_at = now
        chosen.save(update_fields=["status", "responded_at"])

        declined = (
            service.notifications
            .exclude(id=chosen.id)
            .filter(status=ServiceNotification.STATUS_INTERESTED)
            .update(status=ServiceNotification.STATUS_DECLINED, responded_at=now)
        )

    logger.info(
        "Family %s selected caregiver %s for service %s (%d other candidates declined)",
        family.id, profile.id, service.id, declined
    )

    checkout = None
    try:
        from services.payments import create_checkout
        checkout = create_checkout(family, service.id)
    except Exception:
        logger.exception("Checkout creation failed for service %s; the family can retry it", service.id)

    _notify_caregiver_selected(service, profile)

    return ServiceResult(
        success=True,
        service=service,
        message="Caregiver selected",
        extra={"declined_candidates": declined, "checkout": checkout},
    )


def cancel_service(family: User, service_id, reason: str = "") -> ServiceResult:
    """Cancel a non-terminal service; the assigned caregiver (if any) is released."""
    service = _get_family_service(family, service_id)
    open_statuses = [s for s, _ in CareService.STATUS_CHOICES if s not in CareService.TERMINAL_STATUSES]
    _require_status(service, open_statuses, "cancel the service")

    previous_caregiver = service.caregiver
    _transition(
        service,
        open_statuses,
        CareService.STATUS_CANCELLED,
        caregiver=None,
        cancelled_at=timezone.now(),
        cancellation_reason=reason or "",
    )

    if previous_caregiver is not None:
        _notify_caregiver_cancelled(service, previous_caregiver, reason)

    return ServiceResult(
        success=True,
        service=service,
        message="Service cancelled",
        extra={"was_assigned": previous_caregiver is not None},
    )


# ===================== Caregiver Operations =====================

def respond_to_service(caregiver: User, service_id, interested: bool) -> ServiceResult:
    """
    Caregiver answers an offer. Interest does not assign the caregiver; it
    only makes them a candidate the family can select.
    """
    profile = _get_caregiver_profile(caregiver)

    with transaction.atomic():
        service = _get_service(service_id)
        notification = (
            service.notifications
            .filter(caregiver=profile)
            .order_by("-matching_round")
            .first()
        )
        if notification is None:
            raise NotificationNotFoundError("Notification not found")

        _require_status(
            service,
            [CareService.STATUS_PENDING, CareService.STATUS_MATCHED],
            "respond to the offer",
        )
        if notification.status == ServiceNotification.STATUS_ACCEPTED:
            raise InvalidServiceStateError("Offer was already accepted")

        notification.status = (
            ServiceNotification.STATUS_INTERESTED if interested else ServiceNotification.STATUS_DECLINED
        )
        notification.responded_at = timezone.now()
        notification.save(update_fields=["status", "responded_at"])

        if interested:
            # Conditional update: a concurrent interest may already have matched it
            CareService.objects.filter(
                id=service.id, status=CareService.STATUS_PENDING
            ).update(
                status=CareService.STATUS_MATCHED,
                version=F("version") + 1,
                updated_at=timezone.now(),
            )
            service.refresh_from_db()

    if interested:
        _notify_family_interest(service, profile)
        logger.info("Caregiver %s interested in service %s", profile.id, service.id)
    else:
        logger.info("Caregiver %s declined service %s", profile.id, service.id)

    return ServiceResult(
        success=True,
        service=service,
        message="Interest registered" if interested else "Offer declined",
        extra={"status": notification.status},
    )


def start_service(caregiver: User, service_id) -> ServiceResult:
    """Assigned caregiver starts an accepted service."""
    service = _get_assigned_service(caregiver, service_id)
    _require_status(service, [CareService.STATUS_ACCEPTED], "start the service")

    _transition(
        service,
        [CareService.STATUS_ACCEPTED],
        CareService.STATUS_IN_PROGRESS,
        actual_start=timezone.now(),
    )
    return ServiceResult(success=True, service=service, message="Service started")


@transaction.atomic
def finish_service(caregiver: User, service_id) -> ServiceResult:
    """Assigned caregiver finishes an in-progress service."""
    service = _get_assigned_service(caregiver, service_id)
    _require_status(service, [CareService.STATUS_IN_PROGRESS], "finish the service")
    if service.actual_end is not None:
        raise InvalidServiceStateError("Service already has an end time")

    _transition(
        service,
        [CareService.STATUS_IN_PROGRESS],
        CareService.STATUS_COMPLETED,
        actual_end=timezone.now(),
    )

    # Update caregiver counters
    CaregiverProfile.objects.filter(user_id=caregiver.id).update(total_services=F("total_services") + 1)
    User.objects.filter(id=caregiver.id).update(completed_services=F("completed_services") + 1)

    return ServiceResult(success=True, service=service, message="Service completed")


# ===================== Queries =====================

def list_family_services(family: User):
    return (
        CareService.objects.filter(family=family)
        .select_related("caregiver__caregiver_profile")
        .order_by("-created_at")
    )


def get_service_for_user(user: User, service_id) -> CareService:
    """Service visible to its family, its caregiver, offered caregivers and admins."""
    service = _get_service(service_id)
    if user.role == User.ROLE_ADMIN or user.is_staff:
        return service
    if service.family_id == user.id or service.caregiver_id == user.id:
        return service
    if service.notifications.filter(caregiver__user_id=user.id).exists():
        return service
    raise NotServiceOwnerError("Not your service")


def list_candidates(family: User, service_id):
    """Offers the family can choose from (interested first, then pending)."""
    service = _get_family_service(family, service_id)
    return (
        service.notifications
        .filter(status__in=[ServiceNotification.STATUS_INTERESTED, ServiceNotification.STATUS_PENDING])
        .select_related("caregiver__user")
        .order_by("status", "distance_km")
    )


def list_caregiver_jobs(caregiver: User) -> Dict[str, Any]:
    """Open offers for this caregiver plus the services assigned to them."""
    profile = _get_caregiver_profile(caregiver)

    available = (
        CareService.objects.filter(
            notifications__caregiver=profile,
            notifications__status__in=[
                ServiceNotification.STATUS_PENDING,
                ServiceNotification.STATUS_INTERESTED,
            ],
            status__in=[CareService.STATUS_PENDING, CareService.STATUS_MATCHED],
            caregiver__isnull=True,
        )
        .distinct()
        .order_by("-created_at")
    )
    mine = (
        CareService.objects.filter(
            caregiver=caregiver,
            status__in=CareService.ASSIGNED_STATUSES,
        )
        .order_by("-scheduled_date")
    )
    return {"available": available, "mine": mine}


# ===================== Notification Helpers =====================

def _notify_family_interest(service: CareService, profile: CaregiverProfile) -> None:
    """Push to the family if online, otherwise email them."""
    from services.matching import service_type_label

    family = service.family
    type_label = service_type_label(service.service_type)
    caregiver_name = profile.user.display_name

    if get_presence_registry().is_online(family.id):
        notify_user(family.id, CAREGIVER_INTERESTED, {
            "service_id": service.id,
            "service_type": type_label,
            "caregiver_name": caregiver_name,
            "caregiver_id": profile.id,
        })
        return

    if not family.email:
        return
    try:
        email.send_caregiver_interested_email(
            family.email,
            family.display_name,
            service_id=service.id,
            service_type=type_label,
            caregiver_name=caregiver_name,
        )
    except Exception:
        logger.exception("Failed to email family %s about interested caregiver", family.id)


def _notify_caregiver_selected(service: CareService, profile: CaregiverProfile) -> None:
    from services.matching import service_type_label

    notify_user(profile.user_id, SERVICE_CONFIRMED, {"service_id": service.id})

    if not profile.user.email:
        return
    try:
        email.send_caregiver_selected_email(
            profile.user.email,
            profile.user.display_name,
            service_id=service.id,
            service_type=service_type_label(service.service_type),
            family_name=service.family.display_name,
            patient_name=service.patient_name or "the patient",
        )
    except Exception:
        logger.exception("Failed to email caregiver %s about selection", profile.id)


def _notify_caregiver_cancelled(service: CareService, caregiver: User, reason: str) -> None:
    from services.matching import service_type_label

    notify_user(caregiver.id, SERVICE_CANCELLED, {"service_id": service.id, "reason": reason})

    if not caregiver.email:
        return
    try:
        email.send_service_cancelled_email(
            caregiver.email,
            caregiver.display_name,
            service_id=service.id,
            service_type=service_type_label(service.service_type),
            reason=reason,
        )
    except Exception:
        logger.exception("Failed to email caregiver %s about cancellation", caregiver.id)
