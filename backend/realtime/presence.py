"""
Online-presence registry.

Tracks which users currently hold an open WebSocket connection. It is only
used to choose a delivery channel (push vs. email) and is never authoritative
for business state.

Two implementations:
- InMemoryPresenceRegistry: process-local dicts. Rebuilt empty on restart,
  so every user reads as offline until they reconnect.
- RedisPresenceRegistry: same contract backed by Redis, for deployments
  where the ASGI process and Celery workers must agree on who is online.
  Connections are leased, so they never outlive the process that owns them.
"""

from __future__ import annotations

import logging
import socket
import threading
import time
from typing import Callable, Dict, Optional, Set

import redis
from django.conf import settings
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Interface shared by every presence backend."""

    def register(self, user_id, connection_id: str) -> None:
        raise NotImplementedError

    def touch(self, connection_id: str) -> None:
        """Heartbeat from a live connection."""
        raise NotImplementedError

    def unregister(self, connection_id: str) -> Optional[str]:
        """Drop a connection; returns the user id it belonged to, if known."""
        raise NotImplementedError

    def is_online(self, user_id) -> bool:
        raise NotImplementedError

    def online_count(self) -> int:
        raise NotImplementedError

    def reset_instance(self) -> int:
        """Forget connections this process held before it (re)started."""
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryPresenceRegistry(PresenceRegistry):
    def __init__(self):
        self._connections_by_user: Dict[str, Set[str]] = {}
        self._user_by_connection: Dict[str, str] = {}
        self._lock = threading.Lock()

    def register(self, user_id, connection_id: str) -> None:
        user_key = str(user_id)
        with self._lock:
            self._connections_by_user.setdefault(user_key, set()).add(connection_id)
            self._user_by_connection[connection_id] = user_key
        logger.info("User %s registered connection %s", user_key, connection_id)

    def touch(self, connection_id: str) -> None:
        # connections live exactly as long as the process
        pass

    def unregister(self, connection_id: str) -> Optional[str]:
        with self._lock:
            user_key = self._user_by_connection.pop(connection_id, None)
            if user_key is None:
                return None
            connections = self._connections_by_user.get(user_key)
            if connections is not None:
                connections.discard(connection_id)
                if not connections:
                    del self._connections_by_user[user_key]
                    logger.info("User %s went offline", user_key)
        return user_key

    def is_online(self, user_id) -> bool:
        return bool(self._connections_by_user.get(str(user_id)))

    def online_count(self) -> int:
        return len(self._connections_by_user)

    def reset_instance(self) -> int:
        with self._lock:
            dropped = len(self._user_by_connection)
        self.clear()
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._connections_by_user.clear()
            self._user_by_connection.clear()


# Redis key names
REDIS_PRESENCE_CONFIG = {
    "USER_CONNECTIONS_PREFIX": "presence:user:",      # ZSET connection id -> lease expiry
    "CONNECTION_OWNER_KEY": "presence:connections",   # HASH connection id -> user id
    "INSTANCE_CONNECTIONS_PREFIX": "presence:instance:",  # SET of connection ids per process
}


def get_redis_client() -> redis.Redis:
    """Get Redis client for presence bookkeeping."""
    return redis.Redis.from_url(
        getattr(settings, 'REDIS_PRESENCE_URL', settings.REDIS_URL),
        decode_responses=True
    )


class RedisPresenceRegistry(PresenceRegistry):
    """
    Presence shared through Redis.

    Every connection holds a lease of PRESENCE_TTL_SECONDS, renewed by the
    client's heartbeat (register/ping). A connection whose process died stops
    counting once its lease runs out, and a restarted process drops every
    connection it owned before (see reset_instance).
    """

    def __init__(self, client: Optional[redis.Redis] = None, instance_id: Optional[str] = None,
                 ttl: Optional[int] = None, clock: Callable[[], float] = time.time):
        self.redis = client or get_redis_client()
        self.config = REDIS_PRESENCE_CONFIG
        self.instance_id = instance_id or getattr(settings, "PRESENCE_INSTANCE_ID", None) or socket.gethostname()
        self.ttl = ttl or getattr(settings, "PRESENCE_TTL_SECONDS", 90)
        self.clock = clock

    def _user_key(self, user_id) -> str:
        return f"{self.config['USER_CONNECTIONS_PREFIX']}{user_id}"

    def _instance_key(self) -> str:
        return f"{self.config['INSTANCE_CONNECTIONS_PREFIX']}{self.instance_id}"

    def register(self, user_id, connection_id: str) -> None:
        pipe = self.redis.pipeline()
        now = self.clock()
        pipe.zremrangebyscore(self._user_key(user_id), "-inf", now)
        pipe.zadd(self._user_key(user_id), {connection_id: now + self.ttl})
        pipe.hset(self.config["CONNECTION_OWNER_KEY"], connection_id, str(user_id))
        pipe.sadd(self._instance_key(), connection_id)
        pipe.execute()
        logger.info("User %s registered connection %s on %s", user_id, connection_id, self.instance_id)

    def touch(self, connection_id: str) -> None:
        user_id = self.redis.hget(self.config["CONNECTION_OWNER_KEY"], connection_id)
        if user_id is None:
            return
        self.redis.zadd(self._user_key(user_id), {connection_id: self.clock() + self.ttl}, xx=True)

    def _drop(self, connection_id: str) -> Optional[str]:
        user_id = self.redis.hget(self.config["CONNECTION_OWNER_KEY"], connection_id)
        pipe = self.redis.pipeline()
        if user_id is not None:
            pipe.zrem(self._user_key(user_id), connection_id)
        pipe.hdel(self.config["CONNECTION_OWNER_KEY"], connection_id)
        pipe.srem(self._instance_key(), connection_id)
        pipe.execute()
        return user_id

    def unregister(self, connection_id: str) -> Optional[str]:
        user_id = self._drop(connection_id)
        if user_id is not None and not self.is_online(user_id):
            logger.info("User %s went offline", user_id)
        return user_id

    def is_online(self, user_id) -> bool:
        return self.redis.zcount(self._user_key(user_id), self.clock(), "+inf") > 0

    def online_count(self) -> int:
        user_ids = set(self.redis.hvals(self.config["CONNECTION_OWNER_KEY"]))
        return sum(1 for user_id in user_ids if self.is_online(user_id))

    def reset_instance(self) -> int:
        connections = self.redis.smembers(self._instance_key())
        for connection_id in connections:
            self._drop(connection_id)
        self.redis.delete(self._instance_key())
        if connections:
            logger.info("Dropped %d stale connections of %s", len(connections), self.instance_id)
        return len(connections)

    def clear(self) -> None:
        user_ids = set(self.redis.hvals(self.config["CONNECTION_OWNER_KEY"]))
        for user_id in user_ids:
            self.redis.delete(self._user_key(user_id))
        for key in self.redis.scan_iter(f"{self.config['INSTANCE_CONNECTIONS_PREFIX']}*"):
            self.redis.delete(key)
        self.redis.delete(self.config["CONNECTION_OWNER_KEY"])


_registry: Optional[PresenceRegistry] = None


def get_presence_registry() -> PresenceRegistry:
    """Process-wide registry built from settings.PRESENCE_REGISTRY_CLASS."""
    global _registry
    if _registry is None:
        registry_class = import_string(
            getattr(settings, "PRESENCE_REGISTRY_CLASS", "realtime.presence.InMemoryPresenceRegistry")
        )
        _registry = registry_class()
    return _registry


def set_presence_registry(registry: Optional[PresenceRegistry]) -> None:
    """Swap the process-wide registry (None resets to the configured class)."""
    global _registry
    _registry = registry


def reset_presence_on_startup() -> None:
    """Called once by the ASGI entrypoint: a fresh process owns no connections."""
    try:
        get_presence_registry().reset_instance()
    except redis.RedisError:
        logger.exception("Could not reset presence for this process")
