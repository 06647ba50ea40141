"""
Periodic re-matching of under-served pending services.

Runs from Celery beat (care_services.tasks) and from the
`rematch_pending_services` management command.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Set

from django.conf import settings
from django.db.models import Count, QuerySet
from django.utils import timezone

from care_services.models import CareService, ServiceNotification
from .fanout import notify_nearby_caregivers

logger = logging.getLogger(__name__)


@dataclass
class RematchResult:
    checked: int = 0
    notified: int = 0
    failed_service_ids: List[int] = field(default_factory=list)


def services_needing_rematch(now: Optional[datetime] = None) -> QuerySet:
    """Pending services from the trailing window with fewer offers than the threshold."""
    now = now or timezone.now()
    window_start = now - timedelta(days=settings.REMATCH_WINDOW_DAYS)
    return (
        CareService.objects.filter(
            status=CareService.STATUS_PENDING,
            created_at__gte=window_start,
        )
        .annotate(notification_count=Count("notifications"))
        .filter(notification_count__lt=settings.REMATCH_MAX_NOTIFICATIONS)
        .order_by("created_at")
    )


def recently_notified_caregiver_ids(service_id, now: Optional[datetime] = None) -> Set[int]:
    """Caregivers already offered this service inside the suppression window."""
    minutes = settings.REMATCH_SUPPRESSION_MINUTES
    if minutes <= 0:
        return set()
    cutoff = (now or timezone.now()) - timedelta(minutes=minutes)
    return set(
        ServiceNotification.objects.filter(service_id=service_id, created_at__gte=cutoff)
        .values_list("caregiver_id", flat=True)
    )


def rematch_pending_services(now: Optional[datetime] = None) -> RematchResult:
    """
    Re-run fan-out for every under-served pending service.

    One service failing never stops the sweep for the others.

    Returns:
        RematchResult with the number of services checked, caregivers
        notified and the ids of services whose re-match raised.
    """
    now = now or timezone.now()
    result = RematchResult()

    for service in services_needing_rematch(now):
        result.checked += 1
        try:
            outcome = notify_nearby_caregivers(
                service.id,
                exclude_caregiver_ids=recently_notified_caregiver_ids(service.id, now),
            )
            result.notified += outcome["notified"]
        except Exception:
            logger.exception("Failed to re-match service %s", service.id)
            result.failed_service_ids.append(service.id)

    if result.checked:
        logger.info(
            "Re-checked %d pending services, notified %d caregivers (%d failed)",
            result.checked, result.notified, len(result.failed_service_ids)
        )
    else:
        logger.info("No pending services need re-matching")

    return result
