"""
Reviews and platform statistics.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from django.db import IntegrityError, transaction
from django.db.models import Avg, Count

from accounts.models import User
from caregivers.models import CaregiverProfile
from care_services.models import CareService, Review
from families.models import FamilyProfile
from services.service_management.exceptions import (
    InvalidServiceStateError,
    NotServiceOwnerError,
    ServiceNotFoundError,
    ServiceValidationError,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (
    CareService.STATUS_PENDING,
    CareService.STATUS_MATCHED,
    CareService.STATUS_ACCEPTED,
    CareService.STATUS_IN_PROGRESS,
)


@transaction.atomic
def create_review(family: User, service_id, rating: int, comment: str = "", is_public: bool = True) -> Review:
    """
    Family reviews the caregiver of a completed service.

    The caregiver's rating becomes the mean of all their reviews, rounded to
    one decimal, and total_reviews is recounted.
    """
    if not 1 <= int(rating) <= 5:
        raise ServiceValidationError("Rating must be between 1 and 5")

    try:
        service = CareService.objects.select_related("caregiver").get(id=service_id)
    except CareService.DoesNotExist:
        raise ServiceNotFoundError("Service not found")

    if service.family_id != family.id:
        raise NotServiceOwnerError("Not your service")
    if service.status != CareService.STATUS_COMPLETED or service.caregiver is None:
        raise InvalidServiceStateError("Only completed services can be reviewed")

    profile = service.caregiver.caregiver_profile
    try:
        with transaction.atomic():
            review = Review.objects.create(
                service=service,
                family=family,
                caregiver=profile,
                rating=int(rating),
                comment=comment or "",
                is_public=is_public,
            )
    except IntegrityError:
        raise InvalidServiceStateError("Service was already reviewed")

    stats = Review.objects.filter(caregiver=profile).aggregate(avg=Avg("rating"), total=Count("id"))
    average = Decimal(str(stats["avg"] or 0)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
    CaregiverProfile.objects.filter(id=profile.id).update(rating=average, total_reviews=stats["total"])

    logger.info("Review %s for caregiver %s: rating now %s (%d reviews)", review.id, profile.id, average, stats["total"])
    return review


def list_caregiver_reviews(caregiver_id):
    return (
        Review.objects.filter(caregiver_id=caregiver_id, is_public=True)
        .select_related("family")
        .order_by("-created_at")
    )


def get_stats():
    """Platform counters for the admin dashboard."""
    return {
        "total_users": User.objects.count(),
        "total_caregivers": CaregiverProfile.objects.count(),
        "total_families": FamilyProfile.objects.count(),
        "total_services": CareService.objects.count(),
        "active_services": CareService.objects.filter(status__in=ACTIVE_STATUSES).count(),
        "pending_verifications": CaregiverProfile.objects.filter(
            verification_status=CaregiverProfile.VERIFICATION_PENDING
        ).count(),
    }


def list_active_services():
    return (
        CareService.objects.filter(status__in=ACTIVE_STATUSES)
        .select_related("family", "caregiver")
        .order_by("-created_at")
    )
