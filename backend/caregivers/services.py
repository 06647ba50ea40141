import logging

from django.db import transaction
from django.utils import timezone

from caregivers.models import CaregiverProfile
from common.utils import is_valid_coordinate
from services.service_management.exceptions import CaregiverNotFoundError, ServiceValidationError

logger = logging.getLogger(__name__)


# CAREGIVER AVAILABILITY
def update_caregiver_availability(profile: CaregiverProfile, is_available: bool):
    """
    Toggle whether the caregiver takes new offers.
    Unavailable caregivers are skipped by the nearby lookup.
    """
    profile.is_available = bool(is_available)
    profile.save(update_fields=["is_available"])
    logger.info("Caregiver %s availability -> %s", profile.id, profile.is_available)
    return profile


def update_caregiver_location(profile: CaregiverProfile, lat, lon, service_radius=None):
    """
    Update caregiver location (and optionally the radius they cover, in meters).
    """
    if not is_valid_coordinate(lat, lon):
        raise ServiceValidationError("Location must be a valid latitude/longitude pair")
    if service_radius is not None and int(service_radius) <= 0:
        raise ServiceValidationError("Service radius must be positive")

    profile.current_latitude = lat
    profile.current_longitude = lon
    profile.last_location_update = timezone.now()
    fields = ["current_latitude", "current_longitude", "last_location_update"]
    if service_radius is not None:
        profile.service_radius = int(service_radius)
        fields.append("service_radius")

    profile.save(update_fields=fields)
    return profile


# ADMIN VERIFICATION
def list_pending_caregivers():
    return (
        CaregiverProfile.objects.select_related("user")
        .filter(verification_status=CaregiverProfile.VERIFICATION_PENDING)
        .order_by("-created_at")
    )


@transaction.atomic
def verify_caregiver(caregiver_id, approved: bool):
    """Approve or reject a caregiver; only verified caregivers receive offers."""
    try:
        profile = CaregiverProfile.objects.select_for_update().get(id=caregiver_id)
    except CaregiverProfile.DoesNotExist:
        raise CaregiverNotFoundError("Caregiver not found")

    profile.verification_status = (
        CaregiverProfile.VERIFICATION_VERIFIED if approved else CaregiverProfile.VERIFICATION_REJECTED
    )
    profile.save(update_fields=["verification_status"])
    logger.info("Caregiver %s %s", profile.id, profile.verification_status)
    return profile
