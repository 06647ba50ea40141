"""
Notification fan-out for new care services.

For every nearby caregiver:
1. Push a "new-service-nearby" event if the caregiver is online
2. Otherwise (or if the push fails) send an email with the same summary
3. Record a ServiceNotification row whatever happened to the delivery

Success means "offer recorded": delivery failures are logged per recipient
and never stop the rest of the batch.
"""

import logging
from typing import Any, Dict, Iterable

from django.db.models import F

from care_services.models import CareService, ServiceNotification, ServiceType
from realtime.notifications import NEW_SERVICE_NEARBY, emit_to_caregiver
from realtime.presence import PresenceRegistry, get_presence_registry
from services.messaging import email
from .directory import NearbyCaregiver, find_nearby_caregivers

logger = logging.getLogger(__name__)

# Services in any other status are no longer looking for caregivers
OPEN_STATUSES = (CareService.STATUS_PENDING, CareService.STATUS_MATCHED)


def service_type_label(code: str) -> str:
    try:
        return ServiceType(code).label
    except ValueError:
        return code


def build_service_summary(service: CareService) -> Dict[str, Any]:
    """Summary shared by the push payload and the email."""
    return {
        "service_id": service.id,
        "service_type": service_type_label(service.service_type),
        "patient_name": service.patient_name or "Not specified",
        "family_name": service.family.display_name,
        "scheduled_date": service.scheduled_date,
        "duration": service.duration_hours,
    }


def _deliver(candidate: NearbyCaregiver, summary: Dict[str, Any], registry: PresenceRegistry) -> str:
    """Deliver one offer; returns the channel recorded on the notification."""
    online = registry.is_online(candidate.user_id)
    pushed = False
    if online:
        try:
            pushed = emit_to_caregiver(
                candidate.user_id,
                NEW_SERVICE_NEARBY,
                {**summary, "distance": candidate.distance},
            )
        except Exception:
            logger.exception(
                "Push of service %s to caregiver %s failed, falling back to email",
                summary["service_id"], candidate.caregiver_id
            )
        if pushed:
            return ServiceNotification.VIA_WEBSOCKET

    try:
        email.send_service_nearby_email(
            candidate.email,
            candidate.name,
            service_id=summary["service_id"],
            service_type=summary["service_type"],
            patient_name=summary["patient_name"],
            distance_km=candidate.distance,
            scheduled_date=summary["scheduled_date"],
            duration_hours=summary["duration"],
        )
    except Exception:
        logger.exception(
            "Failed to email caregiver %s about service %s",
            candidate.caregiver_id, summary["service_id"]
        )

    # An attempted push that fell through to email counts as both
    if online:
        return ServiceNotification.VIA_BOTH
    return ServiceNotification.VIA_EMAIL


def notify_nearby_caregivers(service_id, exclude_caregiver_ids: Iterable[int] = ()) -> Dict[str, int]:
    """
    Offer a service to every nearby caregiver.

    Args:
        service_id: CareService primary key
        exclude_caregiver_ids: CaregiverProfile ids that must not be offered
            the service this round (re-match suppression)

    Returns:
        {"notified": <number of candidates processed>}
    """
    service = CareService.objects.select_related("family").filter(id=service_id).first()
    if service is None:
        logger.warning("Service %s not found, nothing to notify", service_id)
        return {"notified": 0}

    if not service.has_location:
        logger.warning("Service %s has no location, nothing to notify", service_id)
        return {"notified": 0}

    if service.status not in OPEN_STATUSES:
        logger.info("Service %s is %s, skipping fan-out", service_id, service.status)
        return {"notified": 0}

    candidates = find_nearby_caregivers(
        service.location_latitude,
        service.location_longitude,
        service.service_type,
    )

    excluded = set(exclude_caregiver_ids or ())
    if excluded:
        candidates = [c for c in candidates if c.caregiver_id not in excluded]

    if not candidates:
        logger.info("No nearby caregivers found for service %s", service_id)
        return {"notified": 0}

    # Open a new matching round so rows stay unique per (service, caregiver, round)
    CareService.objects.filter(id=service.id).update(matching_rounds=F("matching_rounds") + 1)
    service.refresh_from_db(fields=["matching_rounds"])
    matching_round = service.matching_rounds

    registry = get_presence_registry()
    summary = build_service_summary(service)

    notified = 0
    for candidate in candidates:
        notified_via = _deliver(candidate, summary, registry)

        ServiceNotification.objects.create(
            service=service,
            caregiver_id=candidate.caregiver_id,
            distance_km=candidate.distance,
            notified_via=notified_via,
            matching_round=matching_round,
        )
        notified += 1

    logger.info(
        "Notified %d caregivers for service %s (round %d)",
        notified, service_id, matching_round
    )
    return {"notified": notified}
