"""
Fire-and-forget submission of background work.

Work is queued on Celery only after the surrounding database transaction
commits, so a worker never sees rows that were rolled back. Submission
failures (broker down, serialization errors) are logged and never reach
the request that triggered them.
"""

import logging

from django.db import transaction

logger = logging.getLogger(__name__)


def submit_task(task, *args, **kwargs) -> None:
    """Queue ``task.delay(*args, **kwargs)`` once the current transaction commits."""

    def _send():
        try:
            task.delay(*args, **kwargs)
        except Exception:
            logger.exception("Failed to submit background task %s args=%s", task.name, args)

    transaction.on_commit(_send)

