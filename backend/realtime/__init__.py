"""
Realtime app for WebSocket delivery of care service events.

This app provides:
- A notification consumer for families and caregivers
- The online-presence registry used to pick push vs. email delivery
- Notification helpers for sending real-time updates
- JWT/Cookie authentication middleware for WebSocket connections

Key Components:
    - presence.py: PresenceRegistry (in-memory or Redis backed)
    - consumers/: WebSocket consumers
    - notifications.py: Domain event helpers

Usage:
    from realtime.consumers import NotificationConsumer
    from realtime.notifications import emit_to_caregiver, notify_user
    from realtime.presence import get_presence_registry
"""
