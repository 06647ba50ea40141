"""
Caregiver matching and offer fan-out service.

This module handles:
    - Finding verified, available caregivers near a service
    - Fanning a new service out to them (push or email) and recording offers
    - Periodically re-matching pending services that attracted too few offers
"""

from .directory import NearbyCaregiver, find_nearby_caregivers
from .fanout import notify_nearby_caregivers, service_type_label
from .rematch import RematchResult, rematch_pending_services

__all__ = [
    "NearbyCaregiver",
    "find_nearby_caregivers",
    "notify_nearby_caregivers",
    "service_type_label",
    "RematchResult",
    "rematch_pending_services",
]
