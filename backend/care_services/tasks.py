"""Celery tasks for care service background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def notify_nearby_caregivers_task(service_id: int, exclude_caregiver_ids=None):
    """
    Offer a freshly created service to nearby caregivers.

    Queued by create_service once the service row is committed. Failures are
    logged here; the family never sees them.
    """
    from services.matching import notify_nearby_caregivers

    try:
        result = notify_nearby_caregivers(service_id, exclude_caregiver_ids or ())
        logger.info(f"Fan-out for service {service_id} done: {result['notified']} caregivers")
        return result
    except Exception:
        logger.exception(f"Fan-out failed for service {service_id}")
        return {"notified": 0}


@shared_task
def rematch_pending_services_task():
    """
    Periodic sweep (Celery beat) re-offering pending services that got
    too few offers.
    """
    from services.matching import rematch_pending_services

    result = rematch_pending_services()
    return {
        "checked": result.checked,
        "notified": result.notified,
        "failed": result.failed_service_ids,
    }
