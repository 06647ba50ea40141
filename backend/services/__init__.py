"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - service_management: Care service lifecycle operations
    - matching: Nearby caregiver lookup, offer fan-out and re-matching
    - payments: Escrow checkout, webhook, confirmation and release
    - reviews: Caregiver reviews and platform statistics
    - chat: Messages between a family and its assigned caregiver
    - messaging: Transactional emails
"""

# Expose commonly used functions at package level
from .matching import (
    find_nearby_caregivers,
    notify_nearby_caregivers,
    rematch_pending_services,
)
from .service_management import (
    create_service,
    respond_to_service,
    select_caregiver,
    cancel_service,
    start_service,
    finish_service,
    ServiceManagementError,
    ServiceNotFoundError,
    InvalidServiceStateError,
    ConcurrentUpdateError,
)

__all__ = [
    # Matching
    "find_nearby_caregivers",
    "notify_nearby_caregivers",
    "rematch_pending_services",
    # Service management
    "create_service",
    "respond_to_service",
    "select_caregiver",
    "cancel_service",
    "start_service",
    "finish_service",
    # Exceptions
    "ServiceManagementError",
    "ServiceNotFoundError",
    "InvalidServiceStateError",
    "ConcurrentUpdateError",
]
