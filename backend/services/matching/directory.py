"""
Nearby-caregiver directory lookup.

Evaluates every eligible caregiver (available, verified, located) and keeps
those whose own service radius reaches the service location, closest first.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.conf import settings

from caregivers.models import CaregiverProfile
from common.utils import distance_km, is_valid_coordinate

logger = logging.getLogger(__name__)


@dataclass
class NearbyCaregiver:
    """A caregiver that can be offered a service, with its distance to it."""
    caregiver_id: int
    user_id: int
    email: str
    name: str
    distance: float  # km, one decimal
    specialties: List[str] = field(default_factory=list)
    rating: float = 0.0


def find_nearby_caregivers(lat, lng, service_type: Optional[str] = None) -> List[NearbyCaregiver]:
    """
    Build the ordered candidate list for one location.

    Args:
        lat: Service latitude
        lng: Service longitude
        service_type: Optional service type code; caregivers declaring
            specialties must list it

    Returns:
        List of NearbyCaregiver sorted by distance (closest first)
    """
    if not is_valid_coordinate(lat, lng):
        logger.warning("Nearby caregiver lookup skipped: invalid location (%s, %s)", lat, lng)
        return []

    lat = float(lat)
    lng = float(lng)
    default_radius = getattr(settings, "MATCHING_DEFAULT_RADIUS_METERS", 30000)

    # Fetch every caregiver that could take work right now
    eligible = (
        CaregiverProfile.objects.select_related("user")
        .filter(
            is_available=True,
            verification_status=CaregiverProfile.VERIFICATION_VERIFIED,
            current_latitude__isnull=False,
            current_longitude__isnull=False,
        )
    )

    candidates: List[NearbyCaregiver] = []
    for profile in eligible:
        distance = distance_km(
            lat,
            lng,
            float(profile.current_latitude),
            float(profile.current_longitude),
        )

        # service_radius is stored in meters
        radius_km = (profile.service_radius or default_radius) / 1000
        if distance > radius_km:
            continue

        specialties = list(profile.specialties or [])
        if service_type and specialties and service_type not in specialties:
            continue

        candidates.append(NearbyCaregiver(
            caregiver_id=profile.id,
            user_id=profile.user_id,
            email=profile.user.email,
            name=profile.user.display_name,
            distance=round(distance, 1),
            specialties=specialties,
            rating=float(profile.rating or 0),
        ))

    # Sort closest -> farthest
    candidates.sort(key=lambda item: item.distance)

    logger.info(
        "Found %d nearby caregivers for location (%s, %s) type=%s",
        len(candidates), lat, lng, service_type or "any"
    )
    return candidates
