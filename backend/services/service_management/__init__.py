"""
Service management - Core care service lifecycle operations.

This module handles:
    - Creating, editing and deleting care requests
    - Caregiver responses to offers
    - Family selection of a caregiver
    - Starting, finishing and cancelling services
    - Querying services for families and caregivers
"""

from .lifecycle import (
    ServiceResult,
    create_service,
    update_service,
    delete_service,
    select_caregiver,
    cancel_service,
    respond_to_service,
    start_service,
    finish_service,
    list_family_services,
    list_candidates,
    get_service_for_user,
    list_caregiver_jobs,
)

from .exceptions import (
    ServiceManagementError,
    ServiceNotFoundError,
    NotServiceOwnerError,
    NotificationNotFoundError,
    CaregiverNotFoundError,
    FamilyNotFoundError,
    InvalidServiceStateError,
    ConcurrentUpdateError,
    ServiceValidationError,
    PaymentError,
)

__all__ = [
    # Lifecycle operations
    "ServiceResult",
    "create_service",
    "update_service",
    "delete_service",
    "select_caregiver",
    "cancel_service",
    "respond_to_service",
    "start_service",
    "finish_service",
    # Queries
    "list_family_services",
    "list_candidates",
    "get_service_for_user",
    "list_caregiver_jobs",
    # Exceptions
    "ServiceManagementError",
    "ServiceNotFoundError",
    "NotServiceOwnerError",
    "NotificationNotFoundError",
    "CaregiverNotFoundError",
    "FamilyNotFoundError",
    "InvalidServiceStateError",
    "ConcurrentUpdateError",
    "ServiceValidationError",
    "PaymentError",
]
